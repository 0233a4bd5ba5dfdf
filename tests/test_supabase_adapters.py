"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

import pytest
from postgrest.exceptions import APIError

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
from photo_survey.domain.errors import SessionConflictError
from photo_survey.domain.sessions import SessionStatus
from photo_survey.domain.surveys import SurveyStep


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[object]] = field(
        default_factory=lambda: {"select": [], "insert": [], "update": [], "delete": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)

    def queue(self, action: str, data: list[dict[str, object]] | Exception) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def is_(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        if isinstance(data, Exception):
            raise data
        return FakeResponse(data=data)  # type: ignore[arg-type]


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def _step_row(survey_id: str, order: int = 1) -> dict[str, object]:
    return {
        "id": str(uuid4()),
        "survey_id": survey_id,
        "step_order": order,
        "title": "Your phone",
        "description": "Take a photo of your phone",
        "expected_object": "smartphone",
        "tips": ["Use good lighting"],
        "validation_rules": None,
        "example_image_url": None,
        "is_required": True,
    }


def _session_row(survey_id: str, steps: list[dict[str, object]]) -> dict[str, object]:
    return {
        "id": str(uuid4()),
        "invitation_id": str(uuid4()),
        "survey_id": survey_id,
        "step_snapshot": steps,
        "current_step": 0,
        "attempt_count": 0,
        "completed_steps": [],
        "overridden_steps": [],
        "status": "IN_PROGRESS",
        "pending_since": None,
        "version": 0,
        "is_completed": False,
        "completed_at": None,
        "created_at": "2024-05-01T10:00:00Z",
        "updated_at": "2024-05-01T10:00:00Z",
    }


def test_supabase_survey_repository_maps_columns() -> None:
    client = FakeSupabaseClient()
    surveys = client.table("surveys")
    admin_id = uuid4()
    survey_id = str(uuid4())
    row = {
        "id": survey_id,
        "admin_id": str(admin_id),
        "title": "Meter check",
        "description": None,
        "utility_company": "City Power",
        "is_active": True,
        "created_at": "2024-05-01T10:00:00+00:00",
        "updated_at": "2024-05-01T10:00:00+00:00",
        "deleted_at": None,
    }
    surveys.queue("insert", [row])
    surveys.queue("select", [row])

    repository = SupabaseSurveyRepository(client)
    created = repository.create_survey(
        admin_id, {"title": "Meter check", "company": "City Power"}
    )
    listed = repository.list_surveys(admin_id)

    assert created.company == "City Power"
    assert surveys.last_payload == {
        "admin_id": str(admin_id),
        "title": "Meter check",
        "utility_company": "City Power",
    }
    assert ("deleted_at", "null") in surveys.last_filters
    assert [survey.id for survey in listed] == [created.id]


def test_supabase_survey_repository_steps() -> None:
    client = FakeSupabaseClient()
    steps = client.table("survey_steps")
    survey_id = str(uuid4())
    steps.queue("insert", [_step_row(survey_id)])
    steps.queue("select", [_step_row(survey_id, 2), _step_row(survey_id, 3)])

    repository = SupabaseSurveyRepository(client)
    created = repository.create_step(
        uuid4(), {"order": 1, "title": "Your phone", "tips": ("a",)}
    )
    listed = repository.list_steps(uuid4())

    assert created.tips == ("Use good lighting",)
    assert isinstance(steps.last_payload, dict)
    assert steps.last_payload["step_order"] == 1
    assert steps.last_payload["tips"] == ["a"]
    assert [step.order for step in listed] == [2, 3]


def test_supabase_invitation_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    invitations = client.table("survey_invitations")
    row = {
        "id": str(uuid4()),
        "survey_id": str(uuid4()),
        "user_email": "user@example.com",
        "invitation_token": "tok",
        "is_completed": False,
        "completed_at": None,
        "created_at": "2024-05-01T10:00:00Z",
        "expires_at": "2024-05-31T10:00:00Z",
    }
    invitations.queue("select", [row])

    repository = SupabaseInvitationRepository(client)
    fetched = repository.get_by_token("tok")
    repository.mark_completed(fetched.id, datetime(2024, 5, 2, tzinfo=UTC))  # type: ignore[union-attr]

    assert fetched is not None
    assert fetched.email == "user@example.com"
    assert fetched.expires_at == datetime(2024, 5, 31, 10, tzinfo=UTC)
    assert invitations.last_payload == {
        "is_completed": True,
        "completed_at": "2024-05-02T00:00:00+00:00",
    }
    assert repository.get_by_token("missing") is None


def test_supabase_session_repository_parses_snapshot() -> None:
    client = FakeSupabaseClient()
    sessions = client.table("user_sessions")
    survey_id = str(uuid4())
    row = _session_row(survey_id, [_step_row(survey_id, 1), _step_row(survey_id, 2)])
    sessions.queue("insert", [row])

    repository = SupabaseSessionRepository(client)
    step = SurveyStep(
        id=uuid4(),
        survey_id=uuid4(),
        order=1,
        title="Your phone",
        description="",
        expected_object="smartphone",
    )
    created = repository.create_session(uuid4(), uuid4(), (step,))

    assert isinstance(sessions.last_payload, dict)
    assert sessions.last_payload["step_snapshot"][0]["expected_object"] == "smartphone"  # type: ignore[index]
    assert created.total_steps == 2
    assert created.current_step is not None
    assert created.current_step.order == 1
    assert created.status == SessionStatus.IN_PROGRESS


def test_supabase_session_repository_maps_duplicate_active_session() -> None:
    client = FakeSupabaseClient()
    client.table("user_sessions").queue(
        "insert",
        APIError(
            {
                "code": "23505",
                "message": "duplicate key value violates unique constraint",
                "details": "Key (invitation_id) already exists.",
                "hint": None,
            }
        ),
    )

    with pytest.raises(SessionConflictError):
        SupabaseSessionRepository(client).create_session(uuid4(), uuid4(), ())


def test_supabase_session_repository_propagates_other_insert_errors() -> None:
    client = FakeSupabaseClient()
    client.table("user_sessions").queue(
        "insert",
        APIError(
            {
                "code": "42501",
                "message": "permission denied",
                "details": None,
                "hint": None,
            }
        ),
    )

    with pytest.raises(APIError):
        SupabaseSessionRepository(client).create_session(uuid4(), uuid4(), ())


def test_supabase_session_repository_save_is_conditional() -> None:
    client = FakeSupabaseClient()
    sessions = client.table("user_sessions")
    survey_id = str(uuid4())
    row = _session_row(survey_id, [_step_row(survey_id)])
    sessions.queue("select", [row])

    repository = SupabaseSessionRepository(client)
    session = repository.get_session(uuid4())
    assert session is not None

    sessions.queue("update", [{**row, "attempt_count": 1, "version": 1}])
    saved = repository.save_session(replace(session, attempt_count=1), 0)

    assert saved.version == 1
    assert saved.steps == session.steps
    assert ("version", 0) in sessions.last_filters

    with pytest.raises(SessionConflictError):
        repository.save_session(replace(session, attempt_count=1), 0)


def test_supabase_attempt_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    attempts = client.table("photo_attempts")
    session_id = uuid4()
    step_id = uuid4()
    row = {
        "id": str(uuid4()),
        "session_id": str(session_id),
        "step_id": str(step_id),
        "attempt_number": 2,
        "image_data": "data:image/png;base64,AAAA",
        "verification_result": False,
        "confidence": 0.1,
        "detected_objects": ["cup"],
        "error_message": "No phone",
        "created_at": "2024-05-01T10:00:00Z",
    }
    attempts.queue("insert", [row])
    attempts.queue("select", [row])

    repository = SupabaseAttemptRepository(client)
    created = repository.create_attempt(
        session_id=session_id,
        step_id=step_id,
        attempt_number=2,
        image_data="data:image/png;base64,AAAA",
        verification_result=False,
        confidence=0.1,
        detected_objects=["cup"],
        error_message="No phone",
    )
    listed = repository.list_attempts(session_id, step_id)

    assert created.verification_result is False
    assert created.detected_objects == ["cup"]
    assert [a.attempt_number for a in listed] == [2]
    assert ("step_id", str(step_id)) in attempts.last_filters


def test_supabase_attempt_repository_requires_insert_result() -> None:
    repository = SupabaseAttemptRepository(FakeSupabaseClient())

    with pytest.raises(RuntimeError):
        repository.create_attempt(
            session_id=uuid4(),
            step_id=uuid4(),
            attempt_number=1,
            image_data="x",
            verification_result=True,
            confidence=1.0,
            detected_objects=[],
            error_message=None,
        )


def test_supabase_admin_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    admins = client.table("admin_users")
    row = {
        "id": str(uuid4()),
        "email": "ops@example.com",
        "name": "Ops",
        "password_hash": "pbkdf2_sha256$1$salt$abc",
        "created_at": "2024-05-01T10:00:00Z",
    }
    admins.queue("insert", [row])
    admins.queue("select", [row])

    repository = SupabaseAdminRepository(client)
    created = repository.create_admin("ops@example.com", "Ops", "hash")
    fetched = repository.get_by_email("ops@example.com")

    assert fetched == created
    assert repository.get_admin(created.id) is None
