"""Supabase-backed invitation repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from photo_survey.adapters.supabase_rows import parse_datetime
from photo_survey.domain.surveys import Invitation
from photo_survey.services.invitations import InvitationRepository

_COLUMNS = (
    "id, survey_id, user_email, invitation_token, is_completed, completed_at, "
    "created_at, expires_at"
)


@dataclass
class SupabaseInvitationRepository(InvitationRepository):
    """Supabase implementation for survey invitations."""

    client: Client

    def create_invitation(
        self, survey_id: UUID, email: str, token: str, expires_at: datetime
    ) -> Invitation:
        """Create an invitation row and return it."""
        response = (
            self.client.table("survey_invitations")
            .insert(
                {
                    "survey_id": str(survey_id),
                    "user_email": email,
                    "invitation_token": token,
                    "expires_at": expires_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create invitation")
        return _parse_invitation(response.data[0])

    def get_by_token(self, token: str) -> Invitation | None:
        """Return the invitation matching the token exactly."""
        response = (
            self.client.table("survey_invitations")
            .select(_COLUMNS)
            .eq("invitation_token", token)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_invitation(response.data[0])

    def get_invitation(self, invitation_id: UUID) -> Invitation | None:
        """Return an invitation by id, if present."""
        response = (
            self.client.table("survey_invitations")
            .select(_COLUMNS)
            .eq("id", str(invitation_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_invitation(response.data[0])

    def list_invitations(self, survey_id: UUID) -> list[Invitation]:
        """Return a survey's invitations, newest first."""
        response = (
            self.client.table("survey_invitations")
            .select(_COLUMNS)
            .eq("survey_id", str(survey_id))
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse_invitation(row) for row in response.data or []]

    def mark_completed(self, invitation_id: UUID, completed_at: datetime) -> None:
        """Flag an invitation as completed."""
        self.client.table("survey_invitations").update(
            {"is_completed": True, "completed_at": completed_at.isoformat()}
        ).eq("id", str(invitation_id)).execute()


def _parse_invitation(row: dict[str, object]) -> Invitation:
    expires_at = parse_datetime(row.get("expires_at"))
    if expires_at is None:
        raise RuntimeError("Invitation row is missing expires_at")
    return Invitation(
        id=UUID(str(row["id"])),
        survey_id=UUID(str(row["survey_id"])),
        email=str(row.get("user_email") or ""),
        token=str(row["invitation_token"]),
        is_completed=bool(row.get("is_completed")),
        completed_at=parse_datetime(row.get("completed_at")),
        created_at=parse_datetime(row.get("created_at")) or datetime.now(tz=UTC),
        expires_at=expires_at,
    )
