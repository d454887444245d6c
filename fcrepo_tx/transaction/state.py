"""Transaction lifecycle states."""

from enum import Enum


class TransactionState(str, Enum):
    """Local view of a transaction. OPEN is assumed until a finalizer succeeds."""

    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionState.OPEN
