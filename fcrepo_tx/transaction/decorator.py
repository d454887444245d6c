"""Rewrites resource requests so the server runs them inside a transaction."""

from enum import Enum

from fcrepo_tx.core.headers import ATOMIC_ID
from fcrepo_tx.core.resource_request import ResourceRequest
from fcrepo_tx.transaction.identity import TransactionURI


class TransactionRouting(str, Enum):
    """How a request is associated with a transaction on the wire."""

    PATH = "path"
    """Rewrite the target URI under the transaction location and add the Atomic-ID header."""

    HEADER = "header"
    """Keep the target URI and only add the Atomic-ID header."""


class TransactionalRequestDecorator:
    """Produces transaction-scoped copies of resource requests.

    Holds no mutable state, so one decorator may be shared by any number of
    threads. The input request is never modified.
    """

    def __init__(self, transaction_uri: TransactionURI, routing: TransactionRouting = TransactionRouting.PATH):
        self.transaction_uri = transaction_uri
        self.routing = TransactionRouting(routing)

    def __call__(self, request: ResourceRequest) -> ResourceRequest:
        return self.decorate(request)

    def decorate(self, request: ResourceRequest) -> ResourceRequest:
        """Return a copy of `request` tagged with this transaction.

        Raises:
            ResourceOutsideRepositoryError: If PATH routing is used and the request
                targets a URI outside the transaction's repository root.
        """
        decorated = request.with_header(ATOMIC_ID, self.transaction_uri.location)
        if self.routing is TransactionRouting.PATH:
            decorated = decorated.with_uri(self.transaction_uri.resource_uri_within(request.uri))
        return decorated
