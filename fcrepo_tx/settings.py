import os
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load .env file variables into environment
load_dotenv(verbose=True)

VALID_TX_ROUTING = ("path", "header")


class Settings:
    """Client configuration settings loaded from environment variables."""

    # --- Repository Settings ---
    FCREPO_BASE_URL: Optional[str] = None
    FCREPO_USERNAME: Optional[str] = None
    FCREPO_PASSWORD: Optional[str] = None
    FCREPO_TIMEOUT: float = 30.0

    # --- Transaction Settings ---
    FCREPO_TX_ROUTING: str = "path"
    FCREPO_TX_KEEP_ALIVE_INTERVAL: Optional[float] = None

    # --- Helper Methods using os.getenv ---
    def get_base_url(self) -> Optional[str]:
        """Returns the repository root URL as a string, if set."""
        url = os.getenv("FCREPO_BASE_URL")
        if url:
            parsed = urlparse(url)
            if not all([parsed.scheme, parsed.netloc]):
                raise ValueError(f"Invalid FCREPO_BASE_URL format: {url}")
        return url

    def get_username(self) -> str | None:
        return os.getenv("FCREPO_USERNAME")

    def get_password(self) -> str | None:
        return os.getenv("FCREPO_PASSWORD")

    def get_timeout(self) -> float:
        """Returns the per-request timeout in seconds."""
        try:
            return float(os.getenv("FCREPO_TIMEOUT", "30"))
        except ValueError:
            raise ValueError("FCREPO_TIMEOUT environment variable must be a number.")

    def get_tx_routing(self) -> str:
        """Returns how resource requests are routed into a transaction ("path" or "header")."""
        routing = os.getenv("FCREPO_TX_ROUTING", "path").lower()
        if routing not in VALID_TX_ROUTING:
            raise ValueError(f"FCREPO_TX_ROUTING must be one of {', '.join(VALID_TX_ROUTING)}, got '{routing}'.")
        return routing

    def get_tx_keep_alive_interval(self) -> float | None:
        """Returns the background keep-alive interval in seconds, or None if not set."""
        interval_str = os.getenv("FCREPO_TX_KEEP_ALIVE_INTERVAL")
        if interval_str is None:
            return None
        try:
            interval = float(interval_str)
        except ValueError:
            raise ValueError("FCREPO_TX_KEEP_ALIVE_INTERVAL environment variable must be a number.")
        if interval <= 0:
            raise ValueError("FCREPO_TX_KEEP_ALIVE_INTERVAL must be a positive number of seconds.")
        return interval

    # --- Logging Settings ---
    def get_log_level(self, default: str = "INFO") -> str:
        """Gets the configured log level, defaulting if not set."""
        return os.getenv("LOG_LEVEL", default).upper()

    # --- Auth Helper ---
    @property
    def credentials(self) -> tuple[str, str] | None:
        """Username/password pair for basic auth.
        Raises ValueError if only one of the two is set.
        """
        username = self.get_username()
        password = self.get_password()
        if username is None and password is None:
            return None
        if not all([username, password]):
            missing = [name for name, val in [("USERNAME", username), ("PASSWORD", password)] if not val]
            raise ValueError(f"Missing required repository settings ({', '.join(missing)}) for credentials")
        return username, password
