"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TypeVar
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from photo_survey.api.admin import router as admin_router
from photo_survey.api.schemas import (
    OverrideRequest,
    serialize_attempt,
    serialize_grant,
    serialize_outcome,
    serialize_progress,
    serialize_session,
)
from photo_survey.app_logging import configure_logging
from photo_survey.containers import AppContainer
from photo_survey.domain.errors import (
    AuthenticationError,
    InvalidInputError,
    InvalidSessionStateError,
    InvitationCompletedError,
    InvitationExpiredError,
    NotFoundError,
    PhotoTooLargeError,
    SessionConflictError,
    SurveyError,
)

T = TypeVar("T")

# Subclasses before their bases.
_ERROR_STATUS: list[tuple[type[SurveyError], int, str]] = [
    (PhotoTooLargeError, 413, "photo_too_large"),
    (InvalidInputError, 400, "invalid_input"),
    (AuthenticationError, 401, "unauthorized"),
    (NotFoundError, 404, "not_found"),
    (InvitationExpiredError, 410, "expired"),
    (InvitationCompletedError, 409, "already_completed"),
    (SessionConflictError, 409, "conflict"),
    (InvalidSessionStateError, 409, "invalid_state"),
]


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(SurveyError)
    async def survey_error_handler(request: Request, exc: SurveyError) -> JSONResponse:
        status_code, code = _status_for(exc)
        if status_code >= 500:
            logger.error("Unmapped survey error: %s", exc.message)
        return JSONResponse(
            status_code=status_code,
            content={"error": code, "message": exc.message, "retryable": exc.retryable},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/survey/{token}")
    async def resolve_survey(token: str, request: Request) -> dict[str, object]:
        """Resolve an invitation token into its survey and steps."""
        state_container: AppContainer = request.app.state.container
        grant = state_container.invitation_service.resolve(token)
        return serialize_grant(grant)

    @app.post("/api/survey/{token}/session")
    async def start_session(token: str, request: Request) -> dict[str, object]:
        """Start or resume the session of an invitation."""
        state_container: AppContainer = request.app.state.container
        service = state_container.session_service
        session = service.start(token)
        return serialize_session(session, service.max_attempts)

    @app.get("/api/sessions/{session_id}")
    async def get_progress(session_id: UUID, request: Request) -> dict[str, object]:
        """Return the progress of a session."""
        state_container: AppContainer = request.app.state.container
        progress = state_container.session_service.get_progress(session_id)
        return serialize_progress(progress)

    @app.post("/api/sessions/{session_id}/verify")
    async def verify_photo(session_id: UUID, request: Request) -> dict[str, object]:
        """Verify a photo for the session's current step."""
        state_container: AppContainer = request.app.state.container
        service = state_container.session_service
        submission = await _read_submission(request, service.max_photo_bytes)
        result = await service.submit_photo(
            session_id,
            submission.payload,
            step_id=submission.step_id,
            attempt_hint=submission.attempt_number,
        )
        return {
            "session": serialize_session(result.session, service.max_attempts),
            "attempt": serialize_attempt(result.attempt),
            "verification": serialize_outcome(result.outcome),
            "can_retry": result.can_retry,
            "can_override": result.can_override,
        }

    @app.post("/api/sessions/{session_id}/override")
    async def use_photo_anyway(
        session_id: UUID, body: OverrideRequest, request: Request
    ) -> dict[str, object]:
        """Advance past a step whose attempts were all rejected."""
        state_container: AppContainer = request.app.state.container
        service = state_container.session_service
        session = service.use_photo_anyway(session_id, step_id=body.step_id)
        return serialize_session(session, service.max_attempts)

    @app.get("/api/sessions/{session_id}/attempts")
    async def list_attempts(
        session_id: UUID, request: Request, step_id: UUID | None = None
    ) -> dict[str, object]:
        """Return the recorded attempts of a session."""
        state_container: AppContainer = request.app.state.container
        attempts = state_container.session_service.list_attempts(session_id, step_id)
        return {"attempts": [serialize_attempt(attempt) for attempt in attempts]}

    return app


def _status_for(exc: SurveyError) -> tuple[int, str]:
    for error_type, status_code, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code, code
    return 500, "error"


@dataclass(frozen=True)
class _Submission:
    payload: bytes | str
    step_id: UUID | None
    attempt_number: int | None


async def _read_submission(request: Request, max_photo_bytes: int) -> _Submission:
    """Parse the upload form of a photo submission.

    Accepts a ``photo`` file part or an ``image_data`` data URI field. Text
    fields may be as large as the base64 form of the biggest allowed photo,
    with headroom so oversized URIs still reach the size check.
    """
    try:
        async with request.form(max_part_size=max_photo_bytes * 2) as form:
            photo = form.get("photo")
            image_data = form.get("image_data")
            payload: bytes | str
            if isinstance(photo, UploadFile):
                payload = await photo.read(max_photo_bytes + 1)
            elif isinstance(image_data, str) and image_data:
                payload = image_data
            else:
                raise InvalidInputError("No image provided")
            step_id = form.get("step_id")
            attempt_number = form.get("attempt_number")
    except HTTPException as exc:
        raise InvalidInputError(f"Malformed upload: {exc.detail}") from exc
    except MultiPartException as exc:
        raise InvalidInputError(f"Malformed upload: {exc.message}") from exc
    return _Submission(
        payload=payload,
        step_id=_parse_field(step_id, UUID, "step_id"),
        attempt_number=_parse_field(attempt_number, int, "attempt_number"),
    )


def _parse_field(value: object, parse: Callable[[str], T], name: str) -> T | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{name} must be a text field")
    try:
        return parse(value)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid {name}: {value!r}") from exc
