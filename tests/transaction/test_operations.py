from datetime import UTC, datetime
from unittest.mock import MagicMock

import httpx
import pytest
from fcrepo_tx.client import FcrepoClient
from fcrepo_tx.exceptions import ProtocolError, TransportError, UnexpectedStatusError
from fcrepo_tx.transaction.decorator import TransactionRouting
from fcrepo_tx.transaction.identity import TransactionURI
from fcrepo_tx.transaction.operations import (
    TransactionOperations,
    commit_request,
    keep_alive_request,
    rollback_request,
    start_request,
    status_request,
)
from fcrepo_tx.transaction.session import TransactionalSession
from fcrepo_tx.transaction.state import TransactionState

from tests.helpers.fake_repository import FakeRepository

TX = TransactionURI("http://localhost:8080/rest/fcr:tx/abc")


@pytest.fixture
def operations(client: FcrepoClient) -> TransactionOperations:
    return client.transaction()


# --- Request builders ---


@pytest.mark.parametrize(
    "builder, method",
    [
        (commit_request, "PUT"),
        (rollback_request, "DELETE"),
        (keep_alive_request, "POST"),
        (status_request, "GET"),
    ],
)
def test_lifecycle_request_builders(builder, method):
    request = builder(TX)
    assert request.method == method
    assert request.uri == TX.location
    assert request.headers == {}
    assert request.body is None


def test_start_request_targets_transaction_endpoint():
    assert start_request("http://localhost:8080/rest/").uri == "http://localhost:8080/rest/fcr:tx"
    assert start_request("http://localhost:8080/rest").method == "POST"


# --- Start ---


def test_start_returns_identity_and_future_expiry(operations: TransactionOperations, root: str):
    issued = datetime.now(UTC).replace(microsecond=0)
    info = operations.start(root)

    assert info.transaction_uri.location
    assert info.transaction_uri.repository_root == root
    assert info.expiry.expires_at > issued
    assert info.issued_at >= issued


def test_start_without_location_raises_protocol_error(
    operations: TransactionOperations, repository: FakeRepository, root: str
):
    repository.omit_location_on_start = True
    with pytest.raises(ProtocolError, match="no Location header"):
        operations.start(root)


def test_start_without_expires_raises_protocol_error(
    operations: TransactionOperations, repository: FakeRepository, root: str
):
    repository.omit_expires_on_start = True
    with pytest.raises(ProtocolError, match="no Expires header") as exc_info:
        operations.start(root)
    assert exc_info.value.uri == f"{root}/fcr:tx"


def test_start_against_unknown_root_raises_unexpected_status(operations: TransactionOperations):
    with pytest.raises(UnexpectedStatusError) as exc_info:
        operations.start("http://example.com/rest")
    assert exc_info.value.status_code == 404


# --- Commit / rollback ---


def test_commit(operations: TransactionOperations, repository: FakeRepository, root: str):
    info = operations.start(root)
    operations.commit(info.transaction_uri)

    assert repository.transactions[info.transaction_uri.transaction_id].state == "committed"


def test_rollback(operations: TransactionOperations, repository: FakeRepository, root: str):
    info = operations.start(root)
    operations.rollback(info.transaction_uri)

    assert repository.transactions[info.transaction_uri.transaction_id].state == "rolled_back"


def test_identity_not_reusable_after_commit(operations: TransactionOperations, root: str):
    info = operations.start(root)
    operations.commit(info.transaction_uri)

    with pytest.raises(UnexpectedStatusError) as exc_info:
        operations.commit(info.transaction_uri)
    assert exc_info.value.is_gone
    with pytest.raises(UnexpectedStatusError):
        operations.rollback(info.transaction_uri)


def test_unknown_transaction_is_not_found(operations: TransactionOperations):
    with pytest.raises(UnexpectedStatusError) as exc_info:
        operations.status(TransactionURI("http://localhost:8080/rest/fcr:tx/missing"))
    assert exc_info.value.status_code == 404
    assert exc_info.value.body == b"Transaction not found"


# --- Keep-alive / status ---


def test_keep_alive_strictly_extends_expiry(operations: TransactionOperations, root: str):
    info = operations.start(root)
    renewed = operations.keep_alive(info.transaction_uri)

    assert info.expiry.is_before(renewed)
    assert operations.keep_alive(info.transaction_uri).is_after(renewed)


def test_status_does_not_extend_expiry(operations: TransactionOperations, root: str):
    info = operations.start(root)
    first = operations.status(info.transaction_uri)
    second = operations.status(info.transaction_uri)

    assert first == info.expiry
    assert second == first


def test_status_after_keep_alive_reports_renewed_expiry(operations: TransactionOperations, root: str):
    info = operations.start(root)
    renewed = operations.keep_alive(info.transaction_uri)

    assert operations.status(info.transaction_uri) == renewed


def test_missing_atomic_expires_raises_protocol_error(
    operations: TransactionOperations, repository: FakeRepository, root: str
):
    info = operations.start(root)
    repository.omit_atomic_expires = True

    with pytest.raises(ProtocolError, match="no Atomic-Expires header"):
        operations.keep_alive(info.transaction_uri)
    with pytest.raises(ProtocolError):
        operations.status(info.transaction_uri)


# --- Transport and response handling ---


def test_transport_failure_raises_transport_error():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    with httpx.Client(transport=httpx.MockTransport(refuse)) as http_client:
        operations = FcrepoClient(http_client).transaction()
        with pytest.raises(TransportError, match="Connection refused") as exc_info:
            operations.start("http://localhost:8080/rest")

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


def test_responses_are_closed_on_error_paths(root: str):
    response = MagicMock()
    response.status_code = 201
    response.location = None
    response.uri = f"{root}/fcr:tx"
    response.__enter__.return_value = response
    client = MagicMock(spec=FcrepoClient)
    client.perform.return_value = response

    with pytest.raises(ProtocolError):
        TransactionOperations(client).start(root)

    response.__exit__.assert_called_once()


def test_responses_are_closed_on_unexpected_status(root: str):
    response = MagicMock()
    response.raise_for_status.side_effect = UnexpectedStatusError("boom", status_code=500)
    client = MagicMock(spec=FcrepoClient)
    client.perform.return_value = response

    with pytest.raises(UnexpectedStatusError):
        TransactionOperations(client).commit(TX)

    response.close.assert_called_once()


class FailingStream(httpx.SyncByteStream):
    """Response body whose connection drops mid-read."""

    def __init__(self) -> None:
        self.closed = False

    def __iter__(self):
        raise httpx.ReadError("connection reset")
        yield b""

    def close(self) -> None:
        self.closed = True


def test_body_read_failure_raises_transport_error_and_releases_connection():
    stream = FailingStream()

    def conflict(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, stream=stream)

    with httpx.Client(transport=httpx.MockTransport(conflict)) as http_client:
        operations = FcrepoClient(http_client).transaction()
        with pytest.raises(TransportError, match="connection reset") as exc_info:
            operations.commit(TX)

    assert isinstance(exc_info.value.__cause__, httpx.ReadError)
    assert exc_info.value.uri == TX.location
    assert stream.closed


def test_responses_are_closed_on_any_error(root: str):
    response = MagicMock()
    response.raise_for_status.side_effect = KeyboardInterrupt
    client = MagicMock(spec=FcrepoClient)
    client.perform.return_value = response

    with pytest.raises(KeyboardInterrupt):
        TransactionOperations(client).rollback(TX)

    response.close.assert_called_once()


# --- Sessions ---


def test_start_session(operations: TransactionOperations, root: str):
    session = operations.start_session(root)

    assert isinstance(session, TransactionalSession)
    assert session.state is TransactionState.OPEN
    assert session.expiry is not None
    session.rollback()


def test_session_uses_client_default_routing(http_client: httpx.Client):
    client = FcrepoClient(http_client, default_routing=TransactionRouting.HEADER)
    session = client.transaction().session(TX)

    assert session.decorator.routing is TransactionRouting.HEADER


def test_session_explicit_routing_overrides_default(http_client: httpx.Client):
    client = FcrepoClient(http_client, default_routing=TransactionRouting.HEADER)
    session = client.transaction().session(TX, routing=TransactionRouting.PATH)

    assert session.decorator.routing is TransactionRouting.PATH


@pytest.mark.parametrize("interval", [0, -5.0])
def test_start_session_rejects_bad_interval_before_starting(
    operations: TransactionOperations, repository: FakeRepository, root: str, interval: float
):
    with pytest.raises(ValueError, match="must be positive"):
        operations.start_session(root, keep_alive_interval=interval)

    assert repository.requests == []
    assert repository.transactions == {}


def test_start_session_rejects_bad_client_interval_before_starting(
    http_client: httpx.Client, repository: FakeRepository, root: str
):
    client = FcrepoClient(http_client, keep_alive_interval=0)

    with pytest.raises(ValueError, match="must be positive"):
        client.transaction().start_session(root)

    assert repository.requests == []


def test_start_session_rolls_back_when_session_cannot_be_built(
    operations: TransactionOperations, repository: FakeRepository, root: str
):
    with pytest.raises(ValueError):
        operations.start_session(root, routing="cookie")

    (tx,) = repository.transactions.values()
    assert tx.state == "rolled_back"
    assert [request.method for request in repository.requests] == ["POST", "DELETE"]


def test_start_session_keeps_original_error_when_rollback_fails(
    operations: TransactionOperations, repository: FakeRepository, root: str
):
    repository.fail_rollback_status = 500

    with pytest.raises(ValueError) as exc_info:
        operations.start_session(root, routing="cookie")

    assert any("Rollback of transaction" in note for note in exc_info.value.__notes__)
