"""Access code gating."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from ar_publisher.domain.access import AccessCode, AccessStatus


class AccessCodeRepository(Protocol):
    """Persistence interface for access codes."""

    def get(self, code: str) -> AccessCode | None:
        """Return an access code by value, if present."""

    def put(self, access_code: AccessCode) -> None:
        """Create or replace an access code and persist it."""

    def delete(self, code: str) -> bool:
        """Delete an access code; return whether it existed."""

    def list_codes(self) -> list[AccessCode]:
        """Return all access codes."""


@dataclass
class AccessGate:
    """Checks submitted codes against the repository."""

    repository: AccessCodeRepository

    def validate(self, code: str | None, now: datetime | None = None) -> AccessStatus:
        """Classify a submitted code as valid, invalid or expired."""
        if not code:
            return AccessStatus.INVALID
        access_code = self.repository.get(code)
        if access_code is None:
            return AccessStatus.INVALID
        current = now or datetime.now(tz=UTC)
        if access_code.expires_at < current:
            return AccessStatus.EXPIRED
        return AccessStatus.VALID
