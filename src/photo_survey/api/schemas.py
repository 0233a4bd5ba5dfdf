"""Pydantic request models and response serializers for the HTTP API."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from photo_survey.domain.admin import AdminAccount
from photo_survey.domain.sessions import AttemptRecord, SessionProgress, SessionRecord
from photo_survey.domain.surveys import AccessGrant, Invitation, Survey, SurveyStep
from photo_survey.domain.verification import VerificationOutcome


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid")


class OverrideRequest(_Request):
    """Body of the "use photo anyway" action."""

    step_id: UUID | None = None


class AdminRegisterRequest(_Request):
    """New admin account."""

    email: str = Field(min_length=3, max_length=320)
    name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=8, max_length=200)


class AdminLoginRequest(_Request):
    """Admin credentials."""

    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=200)


class SurveyCreateRequest(_Request):
    """New survey template."""

    title: str = Field(min_length=1, max_length=200)
    company: str = Field(min_length=1, max_length=200)
    description: str | None = None
    is_active: bool = True


class SurveyUpdateRequest(_Request):
    """Partial survey update."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    company: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    is_active: bool | None = None


class StepCreateRequest(_Request):
    """New survey step."""

    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    expected_object: str = Field(min_length=1, max_length=200)
    tips: list[str] = Field(default_factory=list)
    order: int | None = Field(default=None, ge=1)
    validation_rules: str | None = None
    example_image_url: str | None = None
    is_required: bool = True


class StepUpdateRequest(_Request):
    """Partial step update."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    expected_object: str | None = Field(default=None, min_length=1, max_length=200)
    tips: list[str] | None = None
    order: int | None = Field(default=None, ge=1)
    validation_rules: str | None = None
    example_image_url: str | None = None
    is_required: bool | None = None


class InvitationCreateRequest(_Request):
    """Invite one user by email."""

    email: str = Field(min_length=3, max_length=320)


def serialize_survey(survey: Survey) -> dict[str, object]:
    return {
        "id": str(survey.id),
        "title": survey.title,
        "description": survey.description,
        "company": survey.company,
        "is_active": survey.is_active,
        "created_at": survey.created_at.isoformat(),
        "updated_at": survey.updated_at.isoformat(),
    }


def serialize_step(step: SurveyStep) -> dict[str, object]:
    return {
        "id": str(step.id),
        "survey_id": str(step.survey_id),
        "order": step.order,
        "title": step.title,
        "description": step.description,
        "expected_object": step.expected_object,
        "tips": list(step.tips),
        "validation_rules": step.validation_rules,
        "example_image_url": step.example_image_url,
        "is_required": step.is_required,
    }


def serialize_invitation(
    invitation: Invitation, include_token: bool = False
) -> dict[str, object]:
    data: dict[str, object] = {
        "id": str(invitation.id),
        "survey_id": str(invitation.survey_id),
        "email": invitation.email,
        "is_completed": invitation.is_completed,
        "completed_at": invitation.completed_at.isoformat()
        if invitation.completed_at
        else None,
        "expires_at": invitation.expires_at.isoformat(),
    }
    if include_token:
        data["token"] = invitation.token
    return data


def serialize_grant(grant: AccessGrant) -> dict[str, object]:
    return {
        "survey": serialize_survey(grant.survey),
        "steps": [serialize_step(step) for step in grant.steps],
        "invitation": serialize_invitation(grant.invitation),
    }


def serialize_session(session: SessionRecord, max_attempts: int) -> dict[str, object]:
    step = session.current_step
    return {
        "id": str(session.id),
        "invitation_id": str(session.invitation_id),
        "survey_id": str(session.survey_id),
        "current_step_index": session.current_step_index,
        "total_steps": session.total_steps,
        "attempt_count": session.attempt_count,
        "max_attempts": max_attempts,
        "status": session.status.value,
        "is_completed": session.is_completed,
        "completed_at": session.completed_at.isoformat()
        if session.completed_at
        else None,
        "completed_step_ids": [str(i) for i in session.completed_step_ids],
        "overridden_step_ids": [str(i) for i in session.overridden_step_ids],
        "current_step": serialize_step(step) if step else None,
        "steps": [serialize_step(item) for item in session.steps],
    }


def serialize_progress(progress: SessionProgress) -> dict[str, object]:
    step = progress.current_step
    return {
        "session_id": str(progress.session_id),
        "current_step_index": progress.current_step_index,
        "total_steps": progress.total_steps,
        "is_completed": progress.is_completed,
        "attempt_count": progress.attempt_count,
        "max_attempts": progress.max_attempts,
        "status": progress.status.value,
        "current_step": serialize_step(step) if step else None,
    }


def serialize_attempt(
    attempt: AttemptRecord, include_image: bool = False
) -> dict[str, object]:
    data: dict[str, object] = {
        "id": str(attempt.id),
        "session_id": str(attempt.session_id),
        "step_id": str(attempt.step_id),
        "attempt_number": attempt.attempt_number,
        "verification_result": attempt.verification_result,
        "confidence": attempt.confidence,
        "detected_objects": list(attempt.detected_objects),
        "error_message": attempt.error_message,
        "created_at": attempt.created_at.isoformat() if attempt.created_at else None,
    }
    if include_image:
        data["image_data"] = attempt.image_data
    return data


def serialize_outcome(outcome: VerificationOutcome) -> dict[str, object]:
    return {
        "accepted": outcome.accepted,
        "confidence": outcome.confidence,
        "detected_labels": list(outcome.detected_labels),
        "rejection_reason": outcome.rejection_reason,
    }


def serialize_admin(account: AdminAccount) -> dict[str, object]:
    return {"id": str(account.id), "email": account.email, "name": account.name}
