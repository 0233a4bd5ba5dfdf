"""Row conversion helpers shared by the Supabase repositories."""

from datetime import datetime
from uuid import UUID

from photo_survey.domain.surveys import SurveyStep


def parse_datetime(raw: object) -> datetime | None:
    """Parse an ISO timestamp column, tolerating nulls and a trailing Z."""
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str) or not raw:
        return None
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


def step_from_row(row: dict[str, object]) -> SurveyStep:
    """Build a step from a ``survey_steps`` row or a snapshot entry."""
    tips = row.get("tips") or []
    return SurveyStep(
        id=UUID(str(row["id"])),
        survey_id=UUID(str(row["survey_id"])),
        order=int(row["step_order"]),
        title=str(row["title"]),
        description=str(row.get("description") or ""),
        expected_object=str(row["expected_object"]),
        tips=tuple(str(tip) for tip in tips) if isinstance(tips, list) else (),
        validation_rules=row.get("validation_rules"),
        example_image_url=row.get("example_image_url"),
        is_required=bool(row.get("is_required", True)),
    )


def step_to_row(step: SurveyStep) -> dict[str, object]:
    """Serialize a step for a session's step snapshot column."""
    return {
        "id": str(step.id),
        "survey_id": str(step.survey_id),
        "step_order": step.order,
        "title": step.title,
        "description": step.description,
        "expected_object": step.expected_object,
        "tips": list(step.tips),
        "validation_rules": step.validation_rules,
        "example_image_url": step.example_image_url,
        "is_required": step.is_required,
    }
