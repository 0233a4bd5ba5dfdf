"""Admin API endpoints for survey authoring."""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from photo_survey.api.schemas import (
    AdminLoginRequest,
    AdminRegisterRequest,
    InvitationCreateRequest,
    StepCreateRequest,
    StepUpdateRequest,
    SurveyCreateRequest,
    SurveyUpdateRequest,
    serialize_admin,
    serialize_attempt,
    serialize_invitation,
    serialize_step,
    serialize_survey,
)
from photo_survey.domain.admin import AdminAccount  # noqa: TC001

if TYPE_CHECKING:
    from photo_survey.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


async def require_bootstrap_token(
    request: Request, x_admin_token: str | None = Header(default=None)
) -> None:
    """Ensure requests include the operator token used to create admins."""
    expected = _container(request).settings.admin_token
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


async def require_admin(
    request: Request, authorization: str | None = Header(default=None)
) -> AdminAccount:
    """Resolve the bearer token of a logged-in admin."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return _container(request).admin_service.resolve_token(token.strip())


@router.post("/register", dependencies=[Depends(require_bootstrap_token)])
async def register(body: AdminRegisterRequest, request: Request) -> dict[str, object]:
    """Create an admin account."""
    account = _container(request).admin_service.register(
        body.email, body.name, body.password
    )
    return {"admin": serialize_admin(account)}


@router.post("/login")
async def login(body: AdminLoginRequest, request: Request) -> dict[str, object]:
    """Exchange admin credentials for a bearer token."""
    admin_service = _container(request).admin_service
    account = admin_service.authenticate(body.email, body.password)
    return {
        "admin": serialize_admin(account),
        "access_token": admin_service.issue_token(account),
        "token_type": "bearer",
    }


@router.get("/surveys")
async def list_surveys(
    request: Request, admin: AdminAccount = Depends(require_admin)
) -> dict[str, object]:
    """Return the admin's surveys."""
    surveys = _container(request).survey_service.list_surveys(admin.id)
    return {"surveys": [serialize_survey(survey) for survey in surveys]}


@router.post("/surveys", status_code=status.HTTP_201_CREATED)
async def create_survey(
    body: SurveyCreateRequest,
    request: Request,
    admin: AdminAccount = Depends(require_admin),
) -> dict[str, object]:
    """Create a survey."""
    survey = _container(request).survey_service.create_survey(
        admin.id,
        title=body.title,
        company=body.company,
        description=body.description,
        is_active=body.is_active,
    )
    return serialize_survey(survey)


@router.patch("/surveys/{survey_id}")
async def update_survey(
    survey_id: UUID,
    body: SurveyUpdateRequest,
    request: Request,
    admin: AdminAccount = Depends(require_admin),
) -> dict[str, object]:
    """Update survey fields."""
    survey = _container(request).survey_service.update_survey(
        survey_id, admin.id, body.model_dump(exclude_unset=True)
    )
    return serialize_survey(survey)


@router.delete("/surveys/{survey_id}")
async def delete_survey(
    survey_id: UUID, request: Request, admin: AdminAccount = Depends(require_admin)
) -> dict[str, str]:
    """Logically delete a survey."""
    _container(request).survey_service.delete_survey(survey_id, admin.id)
    return {"status": "deleted"}


@router.get("/surveys/{survey_id}/steps")
async def list_steps(
    survey_id: UUID, request: Request, admin: AdminAccount = Depends(require_admin)
) -> dict[str, object]:
    """Return a survey's ordered steps."""
    survey_service = _container(request).survey_service
    survey_service.get_survey(survey_id, admin.id)
    steps = survey_service.list_steps(survey_id)
    return {"steps": [serialize_step(step) for step in steps]}


@router.post("/surveys/{survey_id}/steps", status_code=status.HTTP_201_CREATED)
async def create_step(
    survey_id: UUID,
    body: StepCreateRequest,
    request: Request,
    admin: AdminAccount = Depends(require_admin),
) -> dict[str, object]:
    """Add a step to a survey."""
    step = _container(request).survey_service.add_step(
        survey_id,
        admin.id,
        title=body.title,
        description=body.description,
        expected_object=body.expected_object,
        tips=body.tips,
        order=body.order,
        validation_rules=body.validation_rules,
        example_image_url=body.example_image_url,
        is_required=body.is_required,
    )
    return serialize_step(step)


@router.patch("/steps/{step_id}")
async def update_step(
    step_id: UUID,
    body: StepUpdateRequest,
    request: Request,
    admin: AdminAccount = Depends(require_admin),
) -> dict[str, object]:
    """Update step fields."""
    step = _container(request).survey_service.update_step(
        step_id, admin.id, body.model_dump(exclude_unset=True)
    )
    return serialize_step(step)


@router.delete("/steps/{step_id}")
async def delete_step(
    step_id: UUID, request: Request, admin: AdminAccount = Depends(require_admin)
) -> dict[str, str]:
    """Remove a step."""
    _container(request).survey_service.remove_step(step_id, admin.id)
    return {"status": "deleted"}


@router.get("/surveys/{survey_id}/invitations")
async def list_invitations(
    survey_id: UUID, request: Request, admin: AdminAccount = Depends(require_admin)
) -> dict[str, object]:
    """Return a survey's invitations."""
    container = _container(request)
    container.survey_service.get_survey(survey_id, admin.id)
    invitations = container.invitation_service.list_for_survey(survey_id)
    return {
        "invitations": [
            serialize_invitation(invitation, include_token=True)
            for invitation in invitations
        ]
    }


@router.post(
    "/surveys/{survey_id}/invitations", status_code=status.HTTP_201_CREATED
)
async def create_invitation(
    survey_id: UUID,
    body: InvitationCreateRequest,
    request: Request,
    admin: AdminAccount = Depends(require_admin),
) -> dict[str, object]:
    """Invite a user to run a survey."""
    container = _container(request)
    container.survey_service.get_survey(survey_id, admin.id)
    invitation = container.invitation_service.issue(survey_id, body.email)
    return serialize_invitation(invitation, include_token=True)


@router.get("/sessions/{session_id}/attempts")
async def session_attempts(
    session_id: UUID,
    request: Request,
    step_id: UUID | None = None,
    admin: AdminAccount = Depends(require_admin),
) -> dict[str, object]:
    """Return the full attempt ledger of a session, photos included."""
    container = _container(request)
    session = container.session_service.get_session(session_id)
    container.survey_service.get_survey(session.survey_id, admin.id)
    attempts = container.session_service.list_attempts(session_id, step_id)
    return {
        "attempts": [
            serialize_attempt(attempt, include_image=True) for attempt in attempts
        ]
    }
