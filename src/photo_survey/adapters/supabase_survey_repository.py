"""Supabase-backed survey and step repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from photo_survey.adapters.supabase_rows import parse_datetime, step_from_row
from photo_survey.domain.surveys import Survey, SurveyStep
from photo_survey.services.surveys import SurveyRepository

_SURVEY_COLUMNS = (
    "id, admin_id, title, description, utility_company, is_active, "
    "created_at, updated_at, deleted_at"
)
_STEP_COLUMNS = (
    "id, survey_id, step_order, title, description, expected_object, tips, "
    "validation_rules, example_image_url, is_required"
)


@dataclass
class SupabaseSurveyRepository(SurveyRepository):
    """Supabase implementation for surveys and steps."""

    client: Client

    def create_survey(self, admin_id: UUID, payload: dict[str, object]) -> Survey:
        """Create a survey row and return it."""
        response = (
            self.client.table("surveys")
            .insert({"admin_id": str(admin_id), **_survey_columns(payload)})
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create survey")
        return _parse_survey(response.data[0])

    def get_survey(self, survey_id: UUID) -> Survey | None:
        """Return a survey by id, if present."""
        response = (
            self.client.table("surveys")
            .select(_SURVEY_COLUMNS)
            .eq("id", str(survey_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_survey(response.data[0])

    def list_surveys(self, admin_id: UUID) -> list[Survey]:
        """Return an admin's surveys, newest first."""
        response = (
            self.client.table("surveys")
            .select(_SURVEY_COLUMNS)
            .eq("admin_id", str(admin_id))
            .is_("deleted_at", "null")
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse_survey(row) for row in response.data or []]

    def update_survey(self, survey_id: UUID, payload: dict[str, object]) -> Survey:
        """Update survey fields and return the row."""
        response = (
            self.client.table("surveys")
            .update(
                {
                    **_survey_columns(payload),
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", str(survey_id))
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to update survey")
        return _parse_survey(response.data[0])

    def delete_survey(self, survey_id: UUID, deleted_at: datetime) -> None:
        """Mark a survey row as deleted."""
        self.client.table("surveys").update(
            {"deleted_at": deleted_at.isoformat(), "is_active": False}
        ).eq("id", str(survey_id)).execute()

    def create_step(self, survey_id: UUID, payload: dict[str, object]) -> SurveyStep:
        """Create a step row and return it."""
        response = (
            self.client.table("survey_steps")
            .insert({"survey_id": str(survey_id), **_step_columns(payload)})
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create survey step")
        return step_from_row(response.data[0])

    def get_step(self, step_id: UUID) -> SurveyStep | None:
        """Return a step by id, if present."""
        response = (
            self.client.table("survey_steps")
            .select(_STEP_COLUMNS)
            .eq("id", str(step_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return step_from_row(response.data[0])

    def list_steps(self, survey_id: UUID) -> list[SurveyStep]:
        """Return a survey's steps by ascending order."""
        response = (
            self.client.table("survey_steps")
            .select(_STEP_COLUMNS)
            .eq("survey_id", str(survey_id))
            .order("step_order", desc=False)
            .execute()
        )
        return [step_from_row(row) for row in response.data or []]

    def update_step(self, step_id: UUID, payload: dict[str, object]) -> SurveyStep:
        """Update step fields and return the row."""
        response = (
            self.client.table("survey_steps")
            .update(_step_columns(payload))
            .eq("id", str(step_id))
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to update survey step")
        return step_from_row(response.data[0])

    def delete_step(self, step_id: UUID) -> None:
        """Delete a step row."""
        self.client.table("survey_steps").delete().eq("id", str(step_id)).execute()


def _survey_columns(payload: dict[str, object]) -> dict[str, object]:
    columns = dict(payload)
    if "company" in columns:
        columns["utility_company"] = columns.pop("company")
    return columns


def _step_columns(payload: dict[str, object]) -> dict[str, object]:
    columns = dict(payload)
    if "order" in columns:
        columns["step_order"] = columns.pop("order")
    if "tips" in columns:
        columns["tips"] = list(columns["tips"] or [])
    return columns


def _parse_survey(row: dict[str, object]) -> Survey:
    created_at = parse_datetime(row.get("created_at")) or datetime.now(tz=UTC)
    return Survey(
        id=UUID(str(row["id"])),
        admin_id=UUID(str(row["admin_id"])),
        title=str(row["title"]),
        description=row.get("description"),
        company=str(row.get("utility_company") or ""),
        is_active=bool(row.get("is_active", True)),
        created_at=created_at,
        updated_at=parse_datetime(row.get("updated_at")) or created_at,
        deleted_at=parse_datetime(row.get("deleted_at")),
    )
