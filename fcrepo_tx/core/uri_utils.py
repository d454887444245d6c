"""Helpers for recognising transaction locations inside URIs."""

import re
from typing import Optional
from urllib.parse import urlparse

TX_SEGMENT = "fcr:tx"
"""Reserved path segment under which the server exposes transactions."""

_TX_LOCATION_RE = re.compile(r"^(?P<location>.+?/" + re.escape(TX_SEGMENT) + r"/(?P<tx_id>[^/?#]+))(?P<rest>.*)$")


def is_absolute(uri: str) -> bool:
    parsed = urlparse(uri)
    return bool(parsed.scheme and parsed.netloc)


def extract_transaction_location(uri: Optional[str]) -> Optional[str]:
    """Return the transaction location prefix of `uri`, or None if it is not transaction-scoped.

    >>> extract_transaction_location("http://localhost/rest/fcr:tx/abc/c1")
    'http://localhost/rest/fcr:tx/abc'
    """
    if not uri:
        return None
    match = _TX_LOCATION_RE.match(uri)
    if match is None:
        return None
    return match.group("location")


def split_transaction_location(uri: str) -> Optional[tuple[str, str, str]]:
    """Split a transaction-scoped URI into (location, transaction id, remainder)."""
    match = _TX_LOCATION_RE.match(uri)
    if match is None:
        return None
    return match.group("location"), match.group("tx_id"), match.group("rest")


def join_uri(base: str, path: str) -> str:
    """Join `path` onto `base` with exactly one slash between them."""
    if not path:
        return base
    return f"{base.rstrip('/')}/{path.lstrip('/')}"
