"""Domain models for access codes."""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum


class AccessStatus(StrEnum):
    """Outcome of an access code check."""

    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AccessCode:
    """Time-limited credential gating session creation."""

    code: str
    expires_at: datetime


def parse_expiry(raw: object) -> datetime:
    """Parse an ISO-8601 expiry; naive timestamps are treated as UTC."""
    if isinstance(raw, datetime):
        parsed = raw
    elif isinstance(raw, str) and raw.strip():
        parsed = datetime.fromisoformat(raw.strip())
    else:
        raise ValueError(f"Unparseable expiry: {raw!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
