import logging
import threading
from typing import TYPE_CHECKING, Optional

from fcrepo_tx.exceptions import FcrepoClientError
from fcrepo_tx.transaction.identity import TransactionURI

if TYPE_CHECKING:
    from fcrepo_tx.transaction.operations import TransactionOperations

logger = logging.getLogger(__name__)


class TransactionKeepAlive(threading.Thread):
    """Background thread that renews a transaction's lease every `interval` seconds.

    Stops on the first failed renewal; the failure is kept in `exception` and
    signalled through `failed`.
    """

    def __init__(self, operations: "TransactionOperations", transaction_uri: TransactionURI, interval: float):
        super().__init__(name=f"TransactionKeepAlive-{transaction_uri.transaction_id}", daemon=True)
        if interval <= 0:
            raise ValueError("Keep-alive interval must be positive")
        self.operations = operations
        self.transaction_uri = transaction_uri
        self.interval = interval
        self.stopped = threading.Event()
        self.failed = threading.Event()
        self.exception: Optional[FcrepoClientError] = None

    def run(self) -> None:
        while not self.stopped.wait(self.interval):
            try:
                self.operations.keep_alive(self.transaction_uri)
            except FcrepoClientError as e:
                if self.stopped.is_set():
                    # stopped mid-renewal; the transaction is being finalized
                    logger.debug(f"Ignoring keep-alive failure after stop for {self.transaction_uri}: {e}")
                    return
                logger.error(f"Keep-alive failed for transaction {self.transaction_uri}: {e}")
                self.exception = e
                self.failed.set()
                self.stopped.set()

    def stop(self) -> None:
        self.stopped.set()
