"""A scoped session that runs resource operations inside one transaction."""

import logging
from typing import TYPE_CHECKING, Callable, Dict, Optional

from psygnal import Signal

from fcrepo_tx.core.logging import log_transaction_event
from fcrepo_tx.core.resource_request import ResourceRequest
from fcrepo_tx.core.response import FcrepoResponse
from fcrepo_tx.exceptions import InvalidStateError, ProtocolError, UnexpectedStatusError
from fcrepo_tx.transaction.decorator import TransactionalRequestDecorator, TransactionRouting
from fcrepo_tx.transaction.expiry import TransactionExpiry
from fcrepo_tx.transaction.identity import TransactionURI
from fcrepo_tx.transaction.keep_alive import TransactionKeepAlive
from fcrepo_tx.transaction.state import TransactionState

if TYPE_CHECKING:
    from fcrepo_tx.client import FcrepoClient
    from fcrepo_tx.transaction.operations import TransactionOperations

logger = logging.getLogger(__name__)

KEEP_ALIVE_JOIN_TIMEOUT = 5.0
"""Seconds to wait for an in-flight renewal before a finalize call is sent."""


class TransactionalSession:
    """Exposes the base client's resource operations, scoped to one transaction.

    Every request is passed through a `TransactionalRequestDecorator` before
    it reaches the base client. The session is finalized at most once:

        with client.transaction().start_session(root) as session:
            with session.put(f"{root}/c1"):
                pass
            session.commit()

    Leaving the `with` block while still OPEN rolls the transaction back.
    One session is meant to be used by one caller at a time; independent
    sessions may share the same base client concurrently.

    Attributes:
        state_changed: Signal emitted with (old_state, new_state) on every transition.
    """

    state_changed = Signal(TransactionState, TransactionState)

    def __init__(
        self,
        client: "FcrepoClient",
        transaction_uri: TransactionURI,
        operations: Optional["TransactionOperations"] = None,
        routing: TransactionRouting = TransactionRouting.PATH,
        expiry: Optional[TransactionExpiry] = None,
        keep_alive_interval: Optional[float] = None,
    ) -> None:
        self.client = client
        self.operations = operations or client.transaction()
        self.decorator = TransactionalRequestDecorator(transaction_uri, routing)
        self._transaction_uri = transaction_uri
        self._state = TransactionState.OPEN
        self._expiry = expiry
        self._keep_alive_interval = keep_alive_interval
        self._keep_alive: Optional[TransactionKeepAlive] = None
        self._start_keep_alive()

    def __enter__(self) -> "TransactionalSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            self.close()
        except Exception as rollback_error:
            if exc is None:
                raise
            # keep the original error primary
            logger.exception(f"Rollback on scope exit failed for transaction {self._transaction_uri}")
            exc.add_note(f"Rollback of transaction {self._transaction_uri} on scope exit failed: {rollback_error!r}")
        return False

    def __repr__(self) -> str:
        return f"<TransactionalSession {self._transaction_uri} [{self._state.value}]>"

    @property
    def transaction_uri(self) -> TransactionURI:
        return self._transaction_uri

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is TransactionState.OPEN

    @property
    def expiry(self) -> Optional[TransactionExpiry]:
        """The most recently observed expiry, if any call has reported one."""
        return self._expiry

    def _require_open(self, operation: str) -> None:
        if not self.is_open:
            raise InvalidStateError(
                f"Cannot {operation}: transaction {self._transaction_uri} is {self._state.value}",
                uri=self._transaction_uri.location,
            )

    def _check_keep_alive(self) -> None:
        """Surface a background renewal failure with the type it was raised as."""
        if self._keep_alive is None or not self._keep_alive.failed.is_set():
            return
        error = self._keep_alive.exception
        detail = f"Keep-alive failed for transaction {self._transaction_uri}: {error}"
        if isinstance(error, UnexpectedStatusError):
            raise UnexpectedStatusError(
                detail, status_code=error.status_code, body=error.body, uri=self._transaction_uri.location
            ) from error
        raise type(error)(detail, uri=self._transaction_uri.location) from error

    def _start_keep_alive(self) -> None:
        if self._keep_alive_interval is None:
            return
        self._keep_alive = TransactionKeepAlive(self.operations, self._transaction_uri, self._keep_alive_interval)
        self._keep_alive.start()

    def _stop_keep_alive(self) -> None:
        """Stop renewals and wait for one already in flight to finish."""
        if self._keep_alive is None:
            return
        self._keep_alive.stop()
        self._keep_alive.join(timeout=KEEP_ALIVE_JOIN_TIMEOUT)
        if self._keep_alive.is_alive():
            logger.warning(f"Keep-alive thread for {self._transaction_uri} did not stop within {KEEP_ALIVE_JOIN_TIMEOUT}s")

    def _transition(self, new_state: TransactionState) -> None:
        old_state = self._state
        self._state = new_state
        log_transaction_event(
            self._transaction_uri.location,
            "state changed",
            {"from_state": old_state.value, "to_state": new_state.value},
        )
        self.state_changed.emit(old_state, new_state)

    # --- Resource operations ---
    def perform(self, request: ResourceRequest) -> FcrepoResponse:
        """Send `request` inside the transaction. The caller must close the response.

        Raises:
            InvalidStateError: If the session is already committed or rolled back.
            ProtocolError: If the server echoes a different transaction.
        """
        self._require_open(f"{request.method} {request.uri}")
        self._check_keep_alive()
        decorated = self.decorator(request)
        response = self.client.perform(decorated)
        reference = response.transaction_reference
        if reference is not None and not self._transaction_uri.same_transaction(reference):
            response.close()
            raise ProtocolError(
                f"Response for {decorated.uri} references transaction {reference}, "
                f"expected {self._transaction_uri}",
                uri=decorated.uri,
            )
        return response

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

    # --- Lease ---
    def keep_alive(self) -> TransactionExpiry:
        """Renew the lease. The returned expiry should be strictly later than the previous one."""
        self._require_open("keep alive")
        previous = self._expiry
        expiry = self.operations.keep_alive(self._transaction_uri)
        if previous is not None and not expiry.is_after(previous):
            logger.warning(
                f"Keep-alive for {self._transaction_uri} did not extend expiry ({previous} -> {expiry})"
            )
        self._expiry = expiry
        return expiry

    def status(self) -> TransactionExpiry:
        """Fetch the current expiry without renewing the lease."""
        self._require_open("check status")
        self._expiry = self.operations.status(self._transaction_uri)
        return self._expiry

    # --- Finalization ---
    def commit(self) -> None:
        """Commit the transaction. No-op if already committed.

        Raises:
            InvalidStateError: If the transaction was already rolled back.
        """
        if self._state is TransactionState.COMMITTED:
            return
        self._require_open("commit")
        self._finalize(TransactionState.COMMITTED, self.operations.commit)

    def rollback(self) -> None:
        """Roll back the transaction. No-op if already rolled back.

        Raises:
            InvalidStateError: If the transaction was already committed.
        """
        if self._state is TransactionState.ROLLED_BACK:
            return
        self._require_open("roll back")
        self._finalize(TransactionState.ROLLED_BACK, self.operations.rollback)

    def close(self) -> None:
        """Roll back if still open; otherwise do nothing."""
        if self.is_open:
            logger.info(f"Rolling back unfinalized transaction {self._transaction_uri}")
            self._finalize(TransactionState.ROLLED_BACK, self.operations.rollback, resume_keep_alive=False)

    def _finalize(
        self,
        new_state: TransactionState,
        finalizer: Callable[[TransactionURI], None],
        resume_keep_alive: bool = True,
    ) -> None:
        # no renewal may reach the server once the finalize call is sent
        self._stop_keep_alive()
        try:
            finalizer(self._transaction_uri)
        except BaseException:
            if resume_keep_alive:
                self._start_keep_alive()
            raise
        self._transition(new_state)
