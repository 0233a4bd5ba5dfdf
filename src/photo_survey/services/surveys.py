"""Survey and step authoring services."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from photo_survey.domain.errors import InvalidInputError, NotFoundError
from photo_survey.domain.surveys import Survey, SurveyStep
from photo_survey.services.clock import Clock, utcnow

_SURVEY_FIELDS = {"title", "description", "company", "is_active"}
_STEP_FIELDS = {
    "order",
    "title",
    "description",
    "expected_object",
    "tips",
    "validation_rules",
    "example_image_url",
    "is_required",
}


class SurveyRepository(Protocol):
    """Persistence interface for surveys and their steps."""

    def create_survey(self, admin_id: UUID, payload: dict[str, object]) -> Survey:
        """Create a survey and return it."""

    def get_survey(self, survey_id: UUID) -> Survey | None:
        """Return a survey by id, if present."""

    def list_surveys(self, admin_id: UUID) -> list[Survey]:
        """Return an admin's surveys that are not deleted, newest first."""

    def update_survey(self, survey_id: UUID, payload: dict[str, object]) -> Survey:
        """Update survey fields and return the survey."""

    def delete_survey(self, survey_id: UUID, deleted_at: datetime) -> None:
        """Mark a survey as deleted."""

    def create_step(self, survey_id: UUID, payload: dict[str, object]) -> SurveyStep:
        """Create a step and return it."""

    def get_step(self, step_id: UUID) -> SurveyStep | None:
        """Return a step by id, if present."""

    def list_steps(self, survey_id: UUID) -> list[SurveyStep]:
        """Return the steps of a survey in ascending order."""

    def update_step(self, step_id: UUID, payload: dict[str, object]) -> SurveyStep:
        """Update step fields and return the step."""

    def delete_step(self, step_id: UUID) -> None:
        """Delete a step."""


@dataclass
class SurveyService:
    """Admin-facing survey and step management."""

    repository: SurveyRepository
    clock: Clock = utcnow

    def create_survey(
        self,
        admin_id: UUID,
        title: str,
        company: str,
        description: str | None = None,
        is_active: bool = True,
    ) -> Survey:
        """Create a survey owned by ``admin_id``."""
        payload = _clean_survey_payload(
            {
                "title": title,
                "company": company,
                "description": description,
                "is_active": is_active,
            }
        )
        return self.repository.create_survey(admin_id, payload)

    def list_surveys(self, admin_id: UUID) -> list[Survey]:
        """Return the admin's surveys."""
        return self.repository.list_surveys(admin_id)

    def get_survey(self, survey_id: UUID, admin_id: UUID | None = None) -> Survey:
        """Return a survey, optionally checking ownership."""
        survey = self.repository.get_survey(survey_id)
        if survey is None or survey.deleted_at is not None:
            raise NotFoundError("Survey not found")
        if admin_id is not None and survey.admin_id != admin_id:
            raise NotFoundError("Survey not found")
        return survey

    def update_survey(
        self, survey_id: UUID, admin_id: UUID, changes: dict[str, object]
    ) -> Survey:
        """Apply partial changes to a survey."""
        self.get_survey(survey_id, admin_id)
        unknown = set(changes) - _SURVEY_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown survey fields: {sorted(unknown)}")
        return self.repository.update_survey(survey_id, _clean_survey_payload(changes))

    def delete_survey(self, survey_id: UUID, admin_id: UUID) -> None:
        """Logically delete a survey; its steps and invitations stay in place."""
        self.get_survey(survey_id, admin_id)
        self.repository.delete_survey(survey_id, deleted_at=self.clock())

    def list_steps(self, survey_id: UUID) -> tuple[SurveyStep, ...]:
        """Return the ordered step registry of a survey."""
        steps = self.repository.list_steps(survey_id)
        return tuple(sorted(steps, key=lambda step: step.order))

    def add_step(  # noqa: PLR0913
        self,
        survey_id: UUID,
        admin_id: UUID,
        title: str,
        description: str,
        expected_object: str,
        tips: list[str] | None = None,
        order: int | None = None,
        validation_rules: str | None = None,
        example_image_url: str | None = None,
        is_required: bool = True,
    ) -> SurveyStep:
        """Append a step, or insert it at an explicit unused ``order``."""
        self.get_survey(survey_id, admin_id)
        existing = self.list_steps(survey_id)
        if order is None:
            order = existing[-1].order + 1 if existing else 1
        _check_order(order, existing)
        payload = _clean_step_payload(
            {
                "order": order,
                "title": title,
                "description": description,
                "expected_object": expected_object,
                "tips": tips or [],
                "validation_rules": validation_rules,
                "example_image_url": example_image_url,
                "is_required": is_required,
            }
        )
        return self.repository.create_step(survey_id, payload)

    def update_step(
        self, step_id: UUID, admin_id: UUID, changes: dict[str, object]
    ) -> SurveyStep:
        """Apply partial changes to a step.

        Sessions already running keep the snapshot taken when they started.
        """
        step = self._owned_step(step_id, admin_id)
        unknown = set(changes) - _STEP_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown step fields: {sorted(unknown)}")
        payload = _clean_step_payload(changes)
        if "order" in payload and payload["order"] != step.order:
            others = [s for s in self.list_steps(step.survey_id) if s.id != step.id]
            _check_order(payload["order"], others)
        return self.repository.update_step(step_id, payload)

    def remove_step(self, step_id: UUID, admin_id: UUID) -> None:
        """Delete a step from its survey."""
        self._owned_step(step_id, admin_id)
        self.repository.delete_step(step_id)

    def _owned_step(self, step_id: UUID, admin_id: UUID) -> SurveyStep:
        step = self.repository.get_step(step_id)
        if step is None:
            raise NotFoundError("Step not found")
        self.get_survey(step.survey_id, admin_id)
        return step


def _check_order(order: object, existing: tuple[SurveyStep, ...] | list[SurveyStep]) -> None:
    if not isinstance(order, int) or isinstance(order, bool) or order < 1:
        raise InvalidInputError("Step order must be a positive integer")
    if any(step.order == order for step in existing):
        raise InvalidInputError(f"Step order {order} is already used")


def _clean_survey_payload(payload: dict[str, object]) -> dict[str, object]:
    cleaned = dict(payload)
    for key in ("title", "company"):
        if key in cleaned:
            value = str(cleaned[key] or "").strip()
            if not value:
                raise InvalidInputError(f"Survey {key} is required")
            cleaned[key] = value
    return cleaned


def _clean_step_payload(payload: dict[str, object]) -> dict[str, object]:
    cleaned = dict(payload)
    for key in ("title", "expected_object"):
        if key in cleaned:
            value = str(cleaned[key] or "").strip()
            if not value:
                raise InvalidInputError(f"Step {key} is required")
            cleaned[key] = value
    if "tips" in cleaned:
        tips = cleaned["tips"] or []
        if not isinstance(tips, list | tuple):
            raise InvalidInputError("Step tips must be a list of strings")
        cleaned["tips"] = [str(tip).strip() for tip in tips if str(tip).strip()]
    return cleaned
