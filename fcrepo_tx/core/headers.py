"""HTTP header names used by the repository transaction protocol."""

LOCATION = "Location"
EXPIRES = "Expires"
"""Expiry header sent on the response that starts a transaction."""

ATOMIC_ID = "Atomic-ID"
"""Transaction marker carried by requests inside a transaction and echoed on their responses."""

ATOMIC_EXPIRES = "Atomic-Expires"
"""Expiry header sent on keep-alive and status responses."""

CONTENT_TYPE = "Content-Type"
