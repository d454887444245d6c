# Centralized logging configuration for the fcrepo_tx package.

import logging
import sys
from datetime import UTC, datetime
from typing import Any, Dict, Optional

from fcrepo_tx.settings import Settings

# Recommended format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Default level if LOG_LEVEL env var is not set
DEFAULT_LOG_LEVEL = "INFO"

# Valid log levels
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Libraries known to be noisy that we might want to quiet down
NOISY_LIBRARIES = ["httpx", "httpcore"]

# Logger that owns every module logger in this package
PACKAGE_LOGGER = "fcrepo_tx"


def setup_logging():
    """
    Configures the package's own loggers for applications using the client.

    Reads the desired log level from the LOG_LEVEL environment variable.
    Defaults to INFO if not set or invalid.
    Only the "fcrepo_tx" logger gets a level and a stderr handler with the
    standard format; it stops propagating so records are not printed twice.
    The root logger and its handlers are left to the host application.
    Noisy libraries are set to WARNING unless the host already set a level.
    """
    settings = Settings()
    log_level_name = settings.get_log_level(default=DEFAULT_LOG_LEVEL)

    if log_level_name not in VALID_LOG_LEVELS:
        print(
            f"WARNING: Invalid LOG_LEVEL '{log_level_name}'. "
            f"Defaulting to {DEFAULT_LOG_LEVEL}. "
            f"Valid levels are: {', '.join(VALID_LOG_LEVELS)}",
            file=sys.stderr,
        )
        log_level_name = DEFAULT_LOG_LEVEL

    log_level = logging.getLevelName(log_level_name)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)
    # drop only handlers from an earlier call
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
    package_logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(console_handler)

    for lib_name in NOISY_LIBRARIES:
        lib_logger = logging.getLogger(lib_name)
        if lib_logger.level == logging.NOTSET:
            lib_logger.setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured with level {log_level_name}.")


# Transaction Logging Utilities


def log_transaction_event(
    transaction_uri: str,
    event: str,
    details: Optional[Dict[str, Any]] = None,
    level: int = logging.DEBUG,
) -> None:
    """Log a transaction lifecycle event with structured extras."""
    logger = logging.getLogger("fcrepo_tx.transaction.lifecycle")
    logger.log(
        level,
        f"[{transaction_uri}] {event}",
        extra={"event": event, "timestamp": datetime.now(UTC).isoformat(), **(details or {})},
    )
