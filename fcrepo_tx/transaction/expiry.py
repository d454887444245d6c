from datetime import UTC, datetime, timedelta
from email.utils import format_datetime, parsedate_to_datetime
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fcrepo_tx.exceptions import ProtocolError


class TransactionExpiry(BaseModel):
    """The instant a transaction's lease runs out, as reported by the server.

    Start responses carry it in ``Expires``; keep-alive and status responses
    carry it in ``Atomic-Expires``. Callers pick the header name matching the
    call that produced the response.
    """

    model_config = ConfigDict(frozen=True)

    expires_at: datetime = Field()

    @field_validator("expires_at")
    @classmethod
    def normalize_to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @classmethod
    def parse(cls, value: str) -> "TransactionExpiry":
        """Parse an RFC 1123 HTTP date such as ``Tue, 3 Jun 2008 11:05:30 GMT``."""
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Malformed expiry date '{value}'", detail=str(e)) from e
        return cls(expires_at=parsed)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], header_name: str) -> "TransactionExpiry":
        value = headers.get(header_name)
        if not value:
            raise ProtocolError(f"Response has no {header_name} header")
        return cls.parse(value)

    def to_header_value(self) -> str:
        return format_datetime(self.expires_at, usegmt=True)

    def __str__(self) -> str:
        return self.to_header_value()

    def is_before(self, other: "TransactionExpiry") -> bool:
        return self.expires_at < other.expires_at

    def is_after(self, other: "TransactionExpiry") -> bool:
        return self.expires_at > other.expires_at

    def __lt__(self, other: "TransactionExpiry") -> bool:
        return self.is_before(other)

    def __gt__(self, other: "TransactionExpiry") -> bool:
        return self.is_after(other)

    def __le__(self, other: "TransactionExpiry") -> bool:
        return self.expires_at <= other.expires_at

    def __ge__(self, other: "TransactionExpiry") -> bool:
        return self.expires_at >= other.expires_at

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        """Time left on the lease; negative once expired."""
        now = now or datetime.now(UTC)
        return self.expires_at - now

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.remaining(now) <= timedelta(0)
