"""Shared test fixtures."""

import asyncio
import base64
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from photo_survey.adapters.memory_repositories import (
    InMemoryAdminRepository,
    InMemoryAttemptRepository,
    InMemoryInvitationRepository,
    InMemorySessionRepository,
    InMemorySurveyRepository,
)
from photo_survey.config import Settings
from photo_survey.containers import AppContainer
from photo_survey.domain.surveys import Invitation, Survey
from photo_survey.services.admin import AdminService
from photo_survey.services.attempts import AttemptLedger
from photo_survey.services.invitations import InvitationService
from photo_survey.services.sessions import SurveySessionService
from photo_survey.services.surveys import SurveyService
from photo_survey.services.verification import (
    JudgmentRequest,
    VerificationClient,
    VerificationService,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"fake-png-body"
PNG_DATA_URI = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


def accepted_payload(label: str = "smartphone") -> dict[str, object]:
    return {
        "isCorrectObject": True,
        "confidence": 0.93,
        "detectedObjects": [label, "table"],
        "reasoning": f"A {label} is the main subject.",
    }


def rejected_payload(reason: str = "The photo shows a cup.") -> dict[str, object]:
    return {
        "isCorrectObject": False,
        "confidence": 0.2,
        "detectedObjects": ["cup"],
        "reasoning": reason,
    }


@dataclass
class FakeClock:
    """Settable clock."""

    now: datetime = field(default_factory=lambda: datetime(2024, 5, 1, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class FakeVerificationClient(VerificationClient):
    """Fake vision client returning queued payloads or raising queued errors."""

    responses: list[object] = field(default_factory=list)
    default: object = field(default_factory=accepted_payload)
    calls: list[dict[str, object]] = field(default_factory=list)
    requests: list[JudgmentRequest] = field(default_factory=list)
    gate: asyncio.Event | None = None

    async def judge(self, request: JudgmentRequest) -> dict[str, object]:
        self.requests.append(request)
        self.calls.append(
            {
                "model": request.model,
                "image_data_url": request.image_data_url,
                "instructions": request.instructions,
                "prompt": request.prompt,
            }
        )
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, BaseException):
            raise response
        return response  # type: ignore[return-value]


@dataclass
class SurveyFixture:
    """A seeded survey with an invitation token."""

    admin_id: UUID
    survey: Survey
    invitation: Invitation

    @property
    def token(self) -> str:
        return self.invitation.token


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        admin_session_secret="session-secret",
        openai_api_key="openai-key",
        storage_backend="memory",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def verification_client() -> FakeVerificationClient:
    return FakeVerificationClient()


@pytest.fixture
def survey_repository() -> InMemorySurveyRepository:
    return InMemorySurveyRepository()


@pytest.fixture
def invitation_repository() -> InMemoryInvitationRepository:
    return InMemoryInvitationRepository()


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def attempt_repository() -> InMemoryAttemptRepository:
    return InMemoryAttemptRepository()


@pytest.fixture
def survey_service(
    survey_repository: InMemorySurveyRepository, clock: FakeClock
) -> SurveyService:
    return SurveyService(survey_repository, clock=clock)


@pytest.fixture
def invitation_service(
    invitation_repository: InMemoryInvitationRepository,
    survey_repository: InMemorySurveyRepository,
    clock: FakeClock,
) -> InvitationService:
    return InvitationService(
        repository=invitation_repository,
        survey_repository=survey_repository,
        clock=clock,
    )


@pytest.fixture
def verification_service(
    verification_client: FakeVerificationClient,
) -> VerificationService:
    return VerificationService(
        client=verification_client,
        model="gpt-4o",
        reasoning_effort=None,
        store=False,
        timeout_seconds=5,
    )


@pytest.fixture
def session_service(
    invitation_service: InvitationService,
    session_repository: InMemorySessionRepository,
    attempt_repository: InMemoryAttemptRepository,
    verification_service: VerificationService,
    clock: FakeClock,
) -> SurveySessionService:
    return SurveySessionService(
        invitation_service=invitation_service,
        session_repository=session_repository,
        attempt_ledger=AttemptLedger(attempt_repository),
        verification_service=verification_service,
        clock=clock,
    )


@pytest.fixture
def admin_service(clock: FakeClock) -> AdminService:
    return AdminService(
        repository=InMemoryAdminRepository(),
        secret="session-secret",
        clock=clock,
        iterations=1_000,
    )


@pytest.fixture
def seeded_survey(
    survey_service: SurveyService, invitation_service: InvitationService
) -> SurveyFixture:
    admin_id = uuid4()
    survey = survey_service.create_survey(
        admin_id, title="Meter check", company="City Power"
    )
    survey_service.add_step(
        survey.id,
        admin_id,
        title="Your phone",
        description="Take a photo of your phone",
        expected_object="smartphone",
        tips=["Use good lighting"],
    )
    survey_service.add_step(
        survey.id,
        admin_id,
        title="Your meter",
        description="Take a photo of the electricity meter",
        expected_object="electricity meter",
    )
    invitation = invitation_service.issue(survey.id, "user@example.com")
    return SurveyFixture(admin_id=admin_id, survey=survey, invitation=invitation)


@pytest.fixture
def container(
    settings: Settings,
    survey_service: SurveyService,
    invitation_service: InvitationService,
    session_service: SurveySessionService,
    verification_service: VerificationService,
    admin_service: AdminService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        survey_service=survey_service,
        invitation_service=invitation_service,
        session_service=session_service,
        verification_service=verification_service,
        admin_service=admin_service,
        close_resources=close_resources,
    )
