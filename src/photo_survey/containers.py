"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from photo_survey.adapters.memory_repositories import (
    InMemoryAdminRepository,
    InMemoryAttemptRepository,
    InMemoryInvitationRepository,
    InMemorySessionRepository,
    InMemorySurveyRepository,
)
from photo_survey.adapters.openai_verification_client import OpenAIVerificationClient
from photo_survey.adapters.supabase_admin_repository import SupabaseAdminRepository
from photo_survey.adapters.supabase_attempt_repository import (
    SupabaseAttemptRepository,
)
from photo_survey.adapters.supabase_invitation_repository import (
    SupabaseInvitationRepository,
)
from photo_survey.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from photo_survey.adapters.supabase_survey_repository import SupabaseSurveyRepository
from photo_survey.config import Settings
from photo_survey.services.admin import AdminRepository, AdminService
from photo_survey.services.attempts import AttemptLedger, AttemptRepository
from photo_survey.services.invitations import InvitationRepository, InvitationService
from photo_survey.services.sessions import SessionRepository, SurveySessionService
from photo_survey.services.surveys import SurveyRepository, SurveyService
from photo_survey.services.verification import VerificationService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    survey_service: SurveyService
    invitation_service: InvitationService
    session_service: SurveySessionService
    verification_service: VerificationService
    admin_service: AdminService
    close_resources: Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class _Repositories:
    surveys: SurveyRepository
    invitations: InvitationRepository
    sessions: SessionRepository
    attempts: AttemptRepository
    admins: AdminRepository


def _build_repositories(settings: Settings) -> _Repositories:
    if settings.storage_backend == "memory":
        return _Repositories(
            surveys=InMemorySurveyRepository(),
            invitations=InMemoryInvitationRepository(),
            sessions=InMemorySessionRepository(),
            attempts=InMemoryAttemptRepository(),
            admins=InMemoryAdminRepository(),
        )
    if settings.storage_backend != "supabase":
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
    supabase_client = create_client(
        settings.supabase_url, settings.supabase_service_key
    )
    return _Repositories(
        surveys=SupabaseSurveyRepository(supabase_client),
        invitations=SupabaseInvitationRepository(supabase_client),
        sessions=SupabaseSessionRepository(supabase_client),
        attempts=SupabaseAttemptRepository(supabase_client),
        admins=SupabaseAdminRepository(supabase_client),
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    repositories = _build_repositories(resolved_settings)
    openai_client = OpenAIVerificationClient.create(
        resolved_settings.openai_api_key,
        timeout_seconds=resolved_settings.verification_timeout_seconds,
    )
    verification_service = VerificationService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        timeout_seconds=resolved_settings.verification_timeout_seconds,
    )
    survey_service = SurveyService(repositories.surveys)
    invitation_service = InvitationService(
        repository=repositories.invitations,
        survey_repository=repositories.surveys,
    )
    session_service = SurveySessionService(
        invitation_service=invitation_service,
        session_repository=repositories.sessions,
        attempt_ledger=AttemptLedger(repositories.attempts),
        verification_service=verification_service,
        reservation_timeout=timedelta(
            seconds=resolved_settings.verification_timeout_seconds * 2
        ),
    )
    admin_service = AdminService(
        repository=repositories.admins,
        secret=resolved_settings.admin_session_secret,
        token_ttl=timedelta(minutes=resolved_settings.admin_session_ttl_minutes),
    )

    async def close_resources() -> None:
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        survey_service=survey_service,
        invitation_service=invitation_service,
        session_service=session_service,
        verification_service=verification_service,
        admin_service=admin_service,
        close_resources=close_resources,
    )
