"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from photo_survey.adapters.supabase_rows import parse_datetime, step_from_row, step_to_row
from photo_survey.domain.errors import SessionConflictError
from photo_survey.domain.sessions import SessionRecord, SessionStatus
from photo_survey.domain.surveys import SurveyStep
from photo_survey.services.sessions import SessionRepository

_COLUMNS = (
    "id, invitation_id, survey_id, step_snapshot, current_step, attempt_count, "
    "completed_steps, overridden_steps, status, pending_since, version, "
    "is_completed, completed_at, created_at, updated_at"
)

# Postgres unique_violation, raised by the partial index
# user_sessions_one_active (invitation_id) where not is_completed.
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for survey sessions.

    Writes are conditional on the ``version`` column, which makes each
    update a compare-and-swap. The table needs
    ``create unique index user_sessions_one_active on user_sessions
    (invitation_id) where not is_completed`` so that only one unfinished
    session can exist per invitation.
    """

    client: Client

    def create_session(
        self, invitation_id: UUID, survey_id: UUID, steps: tuple[SurveyStep, ...]
    ) -> SessionRecord:
        """Create a session row and return it."""
        try:
            response = (
                self.client.table("user_sessions")
                .insert(
                    {
                        "invitation_id": str(invitation_id),
                        "survey_id": str(survey_id),
                        "step_snapshot": [step_to_row(step) for step in steps],
                        "current_step": 0,
                        "attempt_count": 0,
                        "completed_steps": [],
                        "overridden_steps": [],
                        "status": SessionStatus.IN_PROGRESS.value,
                        "version": 0,
                        "is_completed": False,
                    }
                )
                .execute()
            )
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise SessionConflictError(
                    "Invitation already has an active session"
                ) from exc
            raise
        if not response.data:
            raise RuntimeError("Failed to create session")
        return _parse_session(response.data[0])

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("user_sessions")
            .select(_COLUMNS)
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def get_active_session(self, invitation_id: UUID) -> SessionRecord | None:
        """Return the most recent unfinished session of an invitation."""
        response = (
            self.client.table("user_sessions")
            .select(_COLUMNS)
            .eq("invitation_id", str(invitation_id))
            .eq("is_completed", False)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def save_session(
        self, session: SessionRecord, expected_version: int
    ) -> SessionRecord:
        """Update the row only if its version still matches."""
        response = (
            self.client.table("user_sessions")
            .update(
                {
                    "current_step": session.current_step_index,
                    "attempt_count": session.attempt_count,
                    "completed_steps": [str(i) for i in session.completed_step_ids],
                    "overridden_steps": [str(i) for i in session.overridden_step_ids],
                    "status": session.status.value,
                    "pending_since": session.pending_since.isoformat()
                    if session.pending_since
                    else None,
                    "version": expected_version + 1,
                    "is_completed": session.is_completed,
                    "completed_at": session.completed_at.isoformat()
                    if session.completed_at
                    else None,
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", str(session.id))
            .eq("version", expected_version)
            .execute()
        )
        if not response.data:
            raise SessionConflictError("Session was modified concurrently")
        return _parse_session(response.data[0], steps=session.steps)


def _parse_session(
    row: dict[str, object], steps: tuple[SurveyStep, ...] | None = None
) -> SessionRecord:
    if steps is None:
        snapshot = row.get("step_snapshot") or []
        steps = tuple(step_from_row(item) for item in snapshot)
    return SessionRecord(
        id=UUID(str(row["id"])),
        invitation_id=UUID(str(row["invitation_id"])),
        survey_id=UUID(str(row["survey_id"])),
        steps=steps,
        current_step_index=int(row.get("current_step") or 0),
        attempt_count=int(row.get("attempt_count") or 0),
        completed_step_ids=tuple(UUID(str(i)) for i in row.get("completed_steps") or []),
        overridden_step_ids=tuple(
            UUID(str(i)) for i in row.get("overridden_steps") or []
        ),
        status=SessionStatus(row.get("status") or SessionStatus.IN_PROGRESS.value),
        pending_since=parse_datetime(row.get("pending_since")),
        version=int(row.get("version") or 0),
        is_completed=bool(row.get("is_completed")),
        completed_at=parse_datetime(row.get("completed_at")),
        created_at=parse_datetime(row.get("created_at")),
        updated_at=parse_datetime(row.get("updated_at")),
    )
