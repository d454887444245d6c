"""Base (non-transactional) client for a Fedora-style repository."""

import logging
from typing import TYPE_CHECKING, Dict, Optional

import httpx

from fcrepo_tx.core.resource_request import ResourceRequest
from fcrepo_tx.core.response import FcrepoResponse
from fcrepo_tx.exceptions import TransportError
from fcrepo_tx.settings import Settings
from fcrepo_tx.transaction.decorator import TransactionRouting
from fcrepo_tx.transaction.identity import TransactionURI
from fcrepo_tx.transaction.operations import TransactionOperations

if TYPE_CHECKING:
    from fcrepo_tx.transaction.session import TransactionalSession

logger = logging.getLogger(__name__)


class FcrepoClient:
    """Sends resource requests over a shared, connection-pooled httpx client.

    The httpx client may be supplied by the caller (shared, not closed here)
    or created from settings (owned, closed by `close()`).
    """

    def __init__(
        self,
        http_client: httpx.Client,
        owns_http_client: bool = False,
        default_routing: TransactionRouting = TransactionRouting.PATH,
        keep_alive_interval: Optional[float] = None,
    ) -> None:
        self.http_client = http_client
        self._owns_http_client = owns_http_client
        self.default_routing = TransactionRouting(default_routing)
        self.keep_alive_interval = keep_alive_interval

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FcrepoClient":
        """Build a client (and its own httpx connection pool) from environment settings."""
        settings = settings or Settings()
        credentials = settings.credentials
        http_client = httpx.Client(
            auth=httpx.BasicAuth(*credentials) if credentials else None,
            timeout=settings.get_timeout(),
        )
        return cls(
            http_client,
            owns_http_client=True,
            default_routing=TransactionRouting(settings.get_tx_routing()),
            keep_alive_interval=settings.get_tx_keep_alive_interval(),
        )

    def __enter__(self) -> "FcrepoClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http_client:
            self.http_client.close()

    def perform(self, request: ResourceRequest) -> FcrepoResponse:
        """Send `request` and return a response that must be closed by the caller."""
        logger.debug(f"Sending {request.method} request to {request.uri}")
        try:
            response = self.http_client.send(request.to_httpx(self.http_client), stream=True)
        except httpx.TransportError as e:
            logger.error(f"Transport error during {request.method} {request.uri}: {e}")
            raise TransportError(
                f"{request.method} {request.uri} failed: {e}", uri=request.uri, detail=str(e)
            ) from e
        logger.debug(f"Received status {response.status_code} for {request.method} {request.uri}")
        return FcrepoResponse(response, uri=request.uri)

    def request(
        self,
        method: str,
        uri: str,
        headers: Optional[Dict[str, str]] = None,
        content: Optional[bytes] = None,
    ) -> FcrepoResponse:
        return self.perform(ResourceRequest(method=method, uri=uri, headers=headers or {}, body=content))

    def get(self, uri: str, headers: Optional[Dict[str, str]] = None) -> FcrepoResponse:
        return self.request("GET", uri, headers=headers)

    def head(self, uri: str, headers: Optional[Dict[str, str]] = None) -> FcrepoResponse:
        return self.request("HEAD", uri, headers=headers)

    def put(
        self, uri: str, headers: Optional[Dict[str, str]] = None, content: Optional[bytes] = None
    ) -> FcrepoResponse:
        return self.request("PUT", uri, headers=headers, content=content)

    def post(
        self, uri: str, headers: Optional[Dict[str, str]] = None, content: Optional[bytes] = None
    ) -> FcrepoResponse:
        return self.request("POST", uri, headers=headers, content=content)

    def patch(
        self, uri: str, headers: Optional[Dict[str, str]] = None, content: Optional[bytes] = None
    ) -> FcrepoResponse:
        return self.request("PATCH", uri, headers=headers, content=content)

    def delete(self, uri: str, headers: Optional[Dict[str, str]] = None) -> FcrepoResponse:
        return self.request("DELETE", uri, headers=headers)

    # --- Transactions ---
    def transaction(self) -> TransactionOperations:
        """Entry point for the transaction lifecycle calls (start, commit, rollback, keep-alive, status)."""
        return TransactionOperations(self)

    def transactional_client(
        self,
        transaction_uri: TransactionURI,
        routing: Optional[TransactionRouting] = None,
    ) -> "TransactionalSession":
        """Wrap an already started transaction in a session bound to this client."""
        return self.transaction().session(transaction_uri, routing=routing)
