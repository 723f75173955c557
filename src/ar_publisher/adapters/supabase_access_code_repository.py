"""Supabase-backed access code repository."""

from dataclasses import dataclass

from supabase import Client

from ar_publisher.domain.access import AccessCode, parse_expiry
from ar_publisher.services.access import AccessCodeRepository


@dataclass
class SupabaseAccessCodeRepository(AccessCodeRepository):
    """Supabase implementation for access code persistence."""

    client: Client
    table_name: str = "access_codes"

    def get(self, code: str) -> AccessCode | None:
        """Return an access code by value."""
        response = (
            self.client.table(self.table_name)
            .select("code, expires_at")
            .eq("code", code)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_access_code(response.data[0])

    def put(self, access_code: AccessCode) -> None:
        """Insert or update an access code."""
        expires_at = parse_expiry(access_code.expires_at)
        self.client.table(self.table_name).upsert(
            {"code": access_code.code, "expires_at": expires_at.isoformat()}
        ).execute()

    def delete(self, code: str) -> bool:
        """Delete an access code."""
        response = (
            self.client.table(self.table_name).delete().eq("code", code).execute()
        )
        return bool(response.data)

    def list_codes(self) -> list[AccessCode]:
        """Return all access codes ordered by expiry."""
        response = (
            self.client.table(self.table_name)
            .select("code, expires_at")
            .order("expires_at")
            .execute()
        )
        return [_to_access_code(row) for row in response.data or []]


def _to_access_code(row: dict[str, object]) -> AccessCode:
    return AccessCode(code=str(row["code"]), expires_at=parse_expiry(row["expires_at"]))
