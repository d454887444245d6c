"""Transaction-scoped request pipeline: identity, expiry, lifecycle calls and sessions."""

from .decorator import TransactionalRequestDecorator, TransactionRouting
from .expiry import TransactionExpiry
from .identity import TransactionURI
from .keep_alive import TransactionKeepAlive
from .operations import TransactionInfo, TransactionOperations
from .session import TransactionalSession
from .state import TransactionState

__all__ = [
    "TransactionalRequestDecorator",
    "TransactionRouting",
    "TransactionExpiry",
    "TransactionURI",
    "TransactionKeepAlive",
    "TransactionInfo",
    "TransactionOperations",
    "TransactionalSession",
    "TransactionState",
]
