"""Response wrapper that keeps the pooled connection until it is closed."""

from typing import Iterable, Optional

import httpx

from fcrepo_tx.core.headers import ATOMIC_ID, LOCATION
from fcrepo_tx.core.uri_utils import extract_transaction_location
from fcrepo_tx.exceptions import TransportError, UnexpectedStatusError


class FcrepoResponse:
    """A repository response backed by a streaming httpx response.

    The underlying connection stays checked out of the pool until `close()`
    is called, so always use it as a context manager:

        with client.get(uri) as response:
            ...
    """

    def __init__(self, response: httpx.Response, uri: Optional[str] = None):
        self._response = response
        self._uri = uri or str(response.request.url)
        self._body: Optional[bytes] = None
        self._closed = False

    def __enter__(self) -> "FcrepoResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<FcrepoResponse [{self.status_code}] {self._uri}>"

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def closed(self) -> bool:
        return self._closed

    def header_value(self, name: str) -> Optional[str]:
        """Get a header value, or None if absent."""
        return self._response.headers.get(name)

    @property
    def location(self) -> Optional[str]:
        return self.header_value(LOCATION)

    @property
    def body(self) -> bytes:
        """Read (once) and return the response body.

        Raises:
            TransportError: If the connection fails while the body is streamed.
        """
        if self._body is None:
            try:
                self._body = self._response.read()
            except httpx.TransportError as e:
                raise TransportError(
                    f"Reading response body from {self._uri} failed: {e}", uri=self._uri, detail=str(e)
                ) from e
        return self._body

    @property
    def transaction_reference(self) -> Optional[str]:
        """The transaction location echoed by the server, if any.

        Prefers the Atomic-ID header; falls back to a Location header that
        points inside a transaction.
        """
        atomic_id = self.header_value(ATOMIC_ID)
        if atomic_id:
            return atomic_id
        return extract_transaction_location(self.location)

    def raise_for_status(self, expected: Iterable[int], operation: str) -> None:
        """Raise UnexpectedStatusError unless the status code is one of `expected`."""
        expected = tuple(expected)
        if self.status_code in expected:
            return
        body = self.body if not self._closed else None
        raise UnexpectedStatusError(
            f"{operation} failed for {self._uri}: expected status {', '.join(map(str, expected))}, "
            f"got {self.status_code}",
            status_code=self.status_code,
            body=body,
            uri=self._uri,
        )

    def close(self) -> None:
        """Release the pooled connection. Safe to call more than once."""
        if self._closed:
            return
        self._response.close()
        self._closed = True
