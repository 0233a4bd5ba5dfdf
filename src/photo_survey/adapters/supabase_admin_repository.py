"""Supabase-backed admin account repository."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from photo_survey.adapters.supabase_rows import parse_datetime
from photo_survey.domain.admin import AdminAccount
from photo_survey.services.admin import AdminRepository

_COLUMNS = "id, email, name, password_hash, created_at"


@dataclass
class SupabaseAdminRepository(AdminRepository):
    """Supabase implementation for admin accounts."""

    client: Client

    def create_admin(self, email: str, name: str, password_hash: str) -> AdminAccount:
        """Create an admin row and return it."""
        response = (
            self.client.table("admin_users")
            .insert({"email": email, "name": name, "password_hash": password_hash})
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create admin")
        return _parse_admin(response.data[0])

    def get_by_email(self, email: str) -> AdminAccount | None:
        """Return an admin by email, if present."""
        response = (
            self.client.table("admin_users")
            .select(_COLUMNS)
            .eq("email", email)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_admin(response.data[0])

    def get_admin(self, admin_id: UUID) -> AdminAccount | None:
        """Return an admin by id, if present."""
        response = (
            self.client.table("admin_users")
            .select(_COLUMNS)
            .eq("id", str(admin_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_admin(response.data[0])


def _parse_admin(row: dict[str, object]) -> AdminAccount:
    return AdminAccount(
        id=UUID(str(row["id"])),
        email=str(row["email"]),
        name=str(row.get("name") or ""),
        password_hash=str(row["password_hash"]),
        created_at=parse_datetime(row.get("created_at")),
    )
