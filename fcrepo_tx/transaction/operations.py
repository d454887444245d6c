"""Request builders and calls for the five transaction lifecycle verbs."""

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field

from fcrepo_tx.core.headers import ATOMIC_EXPIRES, EXPIRES
from fcrepo_tx.core.logging import log_transaction_event
from fcrepo_tx.core.resource_request import ResourceRequest
from fcrepo_tx.core.response import FcrepoResponse
from fcrepo_tx.core.uri_utils import TX_SEGMENT, join_uri
from fcrepo_tx.exceptions import FcrepoClientError, ProtocolError, UnexpectedStatusError
from fcrepo_tx.transaction.decorator import TransactionRouting
from fcrepo_tx.transaction.expiry import TransactionExpiry
from fcrepo_tx.transaction.identity import TransactionURI
from fcrepo_tx.transaction.session import TransactionalSession

if TYPE_CHECKING:
    from fcrepo_tx.client import FcrepoClient

logger = logging.getLogger(__name__)

CREATED = 201
NO_CONTENT = 204


# --- Request builders ---


def start_request(repository_root: str) -> ResourceRequest:
    """POST to the repository's transaction endpoint."""
    return ResourceRequest(method="POST", uri=join_uri(repository_root, TX_SEGMENT))


def commit_request(transaction_uri: TransactionURI) -> ResourceRequest:
    return ResourceRequest(method="PUT", uri=transaction_uri.location)


def rollback_request(transaction_uri: TransactionURI) -> ResourceRequest:
    return ResourceRequest(method="DELETE", uri=transaction_uri.location)


def keep_alive_request(transaction_uri: TransactionURI) -> ResourceRequest:
    return ResourceRequest(method="POST", uri=transaction_uri.location)


def status_request(transaction_uri: TransactionURI) -> ResourceRequest:
    return ResourceRequest(method="GET", uri=transaction_uri.location)


class TransactionInfo(BaseModel):
    """Result of starting a transaction."""

    model_config = ConfigDict(frozen=True)

    transaction_uri: TransactionURI = Field()
    expiry: TransactionExpiry = Field()
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class TransactionOperations:
    """Performs transaction lifecycle calls through a shared base client.

    Holds no per-transaction state; one instance may serve any number of
    transactions.
    """

    def __init__(self, client: "FcrepoClient") -> None:
        self.client = client

    def _perform(self, request: ResourceRequest, expected: int, operation: str) -> FcrepoResponse:
        response = self.client.perform(request)
        try:
            response.raise_for_status((expected,), operation)
        except UnexpectedStatusError as e:
            response.close()
            if e.is_gone:
                logger.warning(f"Transaction at {request.uri} no longer exists on the server ({operation})")
            raise
        except BaseException:
            response.close()
            raise
        return response

    def start(self, repository_root: str) -> TransactionInfo:
        """Open a transaction against `repository_root`.

        Raises:
            UnexpectedStatusError: If the server does not answer 201 Created.
            ProtocolError: If the Location or Expires header is missing or malformed.
            TransportError: If no response was obtained.
        """
        issued_at = datetime.now(UTC)
        with self._perform(start_request(repository_root), CREATED, "Start transaction") as response:
            transaction_uri = TransactionURI.from_response(response)
            expiry = self._read_expiry(response, EXPIRES)
        log_transaction_event(transaction_uri.location, "started", {"expires_at": str(expiry)}, logging.INFO)
        return TransactionInfo(transaction_uri=transaction_uri, expiry=expiry, issued_at=issued_at)

    def commit(self, transaction_uri: TransactionURI) -> None:
        """Apply every operation made in the transaction. The identity is unusable afterwards."""
        with self._perform(commit_request(transaction_uri), NO_CONTENT, "Commit transaction"):
            pass
        log_transaction_event(transaction_uri.location, "committed", level=logging.INFO)

    def rollback(self, transaction_uri: TransactionURI) -> None:
        """Discard every operation made in the transaction. The identity is unusable afterwards."""
        with self._perform(rollback_request(transaction_uri), NO_CONTENT, "Rollback transaction"):
            pass
        log_transaction_event(transaction_uri.location, "rolled back", level=logging.INFO)

    def keep_alive(self, transaction_uri: TransactionURI) -> TransactionExpiry:
        """Renew the lease and return the new expiry reported in Atomic-Expires."""
        with self._perform(keep_alive_request(transaction_uri), NO_CONTENT, "Keep transaction alive") as response:
            expiry = self._read_expiry(response, ATOMIC_EXPIRES)
        log_transaction_event(transaction_uri.location, "renewed", {"expires_at": str(expiry)})
        return expiry

    def status(self, transaction_uri: TransactionURI) -> TransactionExpiry:
        """Return the current expiry without renewing the lease."""
        with self._perform(status_request(transaction_uri), NO_CONTENT, "Transaction status") as response:
            expiry = self._read_expiry(response, ATOMIC_EXPIRES)
        log_transaction_event(transaction_uri.location, "status", {"expires_at": str(expiry)})
        return expiry

    def session(
        self,
        transaction_uri: TransactionURI,
        routing: Optional[TransactionRouting] = None,
        expiry: Optional[TransactionExpiry] = None,
        keep_alive_interval: Optional[float] = None,
    ) -> TransactionalSession:
        """Wrap an existing transaction in a session.

        Routing and keep-alive interval default to the base client's configuration.
        """
        if routing is None:
            routing = self.client.default_routing
        if keep_alive_interval is None:
            keep_alive_interval = self.client.keep_alive_interval
        return TransactionalSession(
            self.client,
            transaction_uri,
            operations=self,
            routing=routing,
            expiry=expiry,
            keep_alive_interval=keep_alive_interval,
        )

    def start_session(
        self,
        repository_root: str,
        routing: Optional[TransactionRouting] = None,
        keep_alive_interval: Optional[float] = None,
    ) -> TransactionalSession:
        """Start a transaction and wrap it in a session in one call.

        Arguments are checked before anything is sent. If the session still
        cannot be built once the transaction exists, the transaction is
        rolled back before the error propagates.

        Raises:
            ValueError: If the keep-alive interval is not positive.
        """
        if keep_alive_interval is None:
            keep_alive_interval = self.client.keep_alive_interval
        if keep_alive_interval is not None and keep_alive_interval <= 0:
            raise ValueError(f"Keep-alive interval must be positive, got {keep_alive_interval}")
        info = self.start(repository_root)
        try:
            return self.session(
                info.transaction_uri, routing=routing, expiry=info.expiry, keep_alive_interval=keep_alive_interval
            )
        except BaseException as e:
            logger.error(f"Could not open session for {info.transaction_uri}, rolling back: {e!r}")
            try:
                self.rollback(info.transaction_uri)
            except FcrepoClientError as rollback_error:
                logger.exception(f"Rollback of orphaned transaction {info.transaction_uri} failed")
                e.add_note(f"Rollback of transaction {info.transaction_uri} failed: {rollback_error!r}")
            raise

    @staticmethod
    def _read_expiry(response: FcrepoResponse, header_name: str) -> TransactionExpiry:
        try:
            return TransactionExpiry.from_headers(response.headers, header_name)
        except ProtocolError as e:
            e.uri = response.uri
            raise
