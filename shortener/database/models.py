"""Data models for URL shortener."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..expiry import format_timestamp


@dataclass
class ShortLink:
    """Represents a short link in the database."""

    short_code: str
    original_url: str
    created_at: datetime
    expires_at: datetime
    creator_ip: Optional[str] = None
    creator_subnet: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        """True once `now` has reached the expiry timestamp."""
        return now >= self.expires_at

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "short_code": self.short_code,
            "original_url": self.original_url,
            "created_at": format_timestamp(self.created_at),
            "expires_at": format_timestamp(self.expires_at),
            "creator_ip": self.creator_ip,
            "creator_subnet": self.creator_subnet,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ShortLink":
        """Create from a database row or dictionary.

        Naive timestamps are interpreted as UTC.
        """
        return cls(
            short_code=record["short_code"],
            original_url=record["original_url"],
            created_at=_as_utc(record["created_at"]),
            expires_at=_as_utc(record["expires_at"]),
            creator_ip=record.get("creator_ip"),
            creator_subnet=record.get("creator_subnet"),
        )


def _as_utc(value: Any) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
