"""Supabase-backed photo attempt ledger."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from photo_survey.adapters.supabase_rows import parse_datetime
from photo_survey.domain.sessions import AttemptRecord
from photo_survey.services.attempts import AttemptRepository

_COLUMNS = (
    "id, session_id, step_id, attempt_number, image_data, verification_result, "
    "confidence, detected_objects, error_message, created_at"
)


@dataclass
class SupabaseAttemptRepository(AttemptRepository):
    """Supabase implementation for photo attempts (insert and select only)."""

    client: Client

    def create_attempt(  # noqa: PLR0913
        self,
        session_id: UUID,
        step_id: UUID,
        attempt_number: int,
        image_data: str,
        verification_result: bool | None,
        confidence: float,
        detected_objects: list[str],
        error_message: str | None,
    ) -> AttemptRecord:
        """Insert an attempt row and return it."""
        response = (
            self.client.table("photo_attempts")
            .insert(
                {
                    "session_id": str(session_id),
                    "step_id": str(step_id),
                    "attempt_number": attempt_number,
                    "image_data": image_data,
                    "verification_result": verification_result,
                    "confidence": confidence,
                    "detected_objects": detected_objects,
                    "error_message": error_message,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to record photo attempt")
        return _parse_attempt(response.data[0])

    def list_attempts(
        self, session_id: UUID, step_id: UUID | None = None
    ) -> list[AttemptRecord]:
        """Return attempts ordered by creation time."""
        query = (
            self.client.table("photo_attempts")
            .select(_COLUMNS)
            .eq("session_id", str(session_id))
        )
        if step_id is not None:
            query = query.eq("step_id", str(step_id))
        response = query.order("created_at", desc=False).execute()
        return [_parse_attempt(row) for row in response.data or []]


def _parse_attempt(row: dict[str, object]) -> AttemptRecord:
    result = row.get("verification_result")
    return AttemptRecord(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        step_id=UUID(str(row["step_id"])),
        attempt_number=int(row["attempt_number"]),
        image_data=str(row.get("image_data") or ""),
        verification_result=None if result is None else bool(result),
        confidence=float(row.get("confidence") or 0.0),
        detected_objects=[str(label) for label in row.get("detected_objects") or []],
        error_message=row.get("error_message"),
        created_at=parse_datetime(row.get("created_at")),
    )
