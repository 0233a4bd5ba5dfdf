"""In-memory repositories for local runs and tests.

Each store guards its data with a lock so the version check in
``save_session`` stays a true compare-and-swap under threaded servers, and
``create_session`` refuses a second unfinished session per invitation.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import UUID, uuid4

from photo_survey.domain.admin import AdminAccount
from photo_survey.domain.errors import SessionConflictError
from photo_survey.domain.sessions import AttemptRecord, SessionRecord
from photo_survey.domain.surveys import Invitation, Survey, SurveyStep
from photo_survey.services.admin import AdminRepository
from photo_survey.services.attempts import AttemptRepository
from photo_survey.services.invitations import InvitationRepository
from photo_survey.services.sessions import SessionRepository
from photo_survey.services.surveys import SurveyRepository


def _now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InMemorySurveyRepository(SurveyRepository):
    """In-memory surveys and steps."""

    surveys: dict[UUID, Survey] = field(default_factory=dict)
    steps: dict[UUID, SurveyStep] = field(default_factory=dict)

    def create_survey(self, admin_id: UUID, payload: dict[str, object]) -> Survey:
        now = _now()
        survey = Survey(
            id=uuid4(),
            admin_id=admin_id,
            title=str(payload["title"]),
            description=payload.get("description"),
            company=str(payload["company"]),
            is_active=bool(payload.get("is_active", True)),
            created_at=now,
            updated_at=now,
        )
        self.surveys[survey.id] = survey
        return survey

    def get_survey(self, survey_id: UUID) -> Survey | None:
        return self.surveys.get(survey_id)

    def list_surveys(self, admin_id: UUID) -> list[Survey]:
        owned = [
            survey
            for survey in self.surveys.values()
            if survey.admin_id == admin_id and survey.deleted_at is None
        ]
        return sorted(owned, key=lambda survey: survey.created_at, reverse=True)

    def update_survey(self, survey_id: UUID, payload: dict[str, object]) -> Survey:
        updated = replace(self.surveys[survey_id], **payload, updated_at=_now())
        self.surveys[survey_id] = updated
        return updated

    def delete_survey(self, survey_id: UUID, deleted_at: datetime) -> None:
        survey = self.surveys.get(survey_id)
        if survey is not None:
            self.surveys[survey_id] = replace(
                survey, is_active=False, deleted_at=deleted_at
            )

    def create_step(self, survey_id: UUID, payload: dict[str, object]) -> SurveyStep:
        step = SurveyStep(
            id=uuid4(),
            survey_id=survey_id,
            order=int(payload["order"]),
            title=str(payload["title"]),
            description=str(payload.get("description") or ""),
            expected_object=str(payload["expected_object"]),
            tips=tuple(payload.get("tips") or ()),
            validation_rules=payload.get("validation_rules"),
            example_image_url=payload.get("example_image_url"),
            is_required=bool(payload.get("is_required", True)),
        )
        self.steps[step.id] = step
        return step

    def get_step(self, step_id: UUID) -> SurveyStep | None:
        return self.steps.get(step_id)

    def list_steps(self, survey_id: UUID) -> list[SurveyStep]:
        owned = [step for step in self.steps.values() if step.survey_id == survey_id]
        return sorted(owned, key=lambda step: step.order)

    def update_step(self, step_id: UUID, payload: dict[str, object]) -> SurveyStep:
        changes = dict(payload)
        if "tips" in changes:
            changes["tips"] = tuple(changes["tips"] or ())
        updated = replace(self.steps[step_id], **changes)
        self.steps[step_id] = updated
        return updated

    def delete_step(self, step_id: UUID) -> None:
        self.steps.pop(step_id, None)


@dataclass
class InMemoryInvitationRepository(InvitationRepository):
    """In-memory invitations."""

    invitations: dict[UUID, Invitation] = field(default_factory=dict)

    def create_invitation(
        self, survey_id: UUID, email: str, token: str, expires_at: datetime
    ) -> Invitation:
        invitation = Invitation(
            id=uuid4(),
            survey_id=survey_id,
            email=email,
            token=token,
            is_completed=False,
            completed_at=None,
            created_at=_now(),
            expires_at=expires_at,
        )
        self.invitations[invitation.id] = invitation
        return invitation

    def get_by_token(self, token: str) -> Invitation | None:
        for invitation in self.invitations.values():
            if invitation.token == token:
                return invitation
        return None

    def get_invitation(self, invitation_id: UUID) -> Invitation | None:
        return self.invitations.get(invitation_id)

    def list_invitations(self, survey_id: UUID) -> list[Invitation]:
        owned = [
            invitation
            for invitation in self.invitations.values()
            if invitation.survey_id == survey_id
        ]
        return sorted(owned, key=lambda invitation: invitation.created_at, reverse=True)

    def mark_completed(self, invitation_id: UUID, completed_at: datetime) -> None:
        invitation = self.invitations[invitation_id]
        self.invitations[invitation_id] = replace(
            invitation, is_completed=True, completed_at=completed_at
        )


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory sessions with version-checked writes."""

    sessions: dict[UUID, SessionRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def create_session(
        self, invitation_id: UUID, survey_id: UUID, steps: tuple[SurveyStep, ...]
    ) -> SessionRecord:
        now = _now()
        session = SessionRecord(
            id=uuid4(),
            invitation_id=invitation_id,
            survey_id=survey_id,
            steps=tuple(steps),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            if any(
                stored.invitation_id == invitation_id and not stored.is_completed
                for stored in self.sessions.values()
            ):
                raise SessionConflictError("Invitation already has an active session")
            self.sessions[session.id] = session
        return session

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def get_active_session(self, invitation_id: UUID) -> SessionRecord | None:
        active = [
            session
            for session in self.sessions.values()
            if session.invitation_id == invitation_id and not session.is_completed
        ]
        if not active:
            return None
        return max(active, key=lambda session: session.created_at or datetime.min)

    def save_session(
        self, session: SessionRecord, expected_version: int
    ) -> SessionRecord:
        with self._lock:
            stored = self.sessions.get(session.id)
            if stored is None or stored.version != expected_version:
                raise SessionConflictError("Session was modified concurrently")
            saved = replace(session, version=expected_version + 1)
            self.sessions[session.id] = saved
        return saved


@dataclass
class InMemoryAttemptRepository(AttemptRepository):
    """In-memory append-only attempt ledger."""

    attempts: list[AttemptRecord] = field(default_factory=list)

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
        attempt = AttemptRecord(
            id=uuid4(),
            session_id=session_id,
            step_id=step_id,
            attempt_number=attempt_number,
            image_data=image_data,
            verification_result=verification_result,
            confidence=confidence,
            detected_objects=list(detected_objects),
            error_message=error_message,
            created_at=_now(),
        )
        self.attempts.append(attempt)
        return attempt

    def list_attempts(
        self, session_id: UUID, step_id: UUID | None = None
    ) -> list[AttemptRecord]:
        return [
            attempt
            for attempt in self.attempts
            if attempt.session_id == session_id
            and (step_id is None or attempt.step_id == step_id)
        ]


@dataclass
class InMemoryAdminRepository(AdminRepository):
    """In-memory admin accounts."""

    admins: dict[UUID, AdminAccount] = field(default_factory=dict)

    def create_admin(self, email: str, name: str, password_hash: str) -> AdminAccount:
        account = AdminAccount(
            id=uuid4(),
            email=email,
            name=name,
            password_hash=password_hash,
            created_at=_now(),
        )
        self.admins[account.id] = account
        return account

    def get_by_email(self, email: str) -> AdminAccount | None:
        for account in self.admins.values():
            if account.email == email:
                return account
        return None

    def get_admin(self, admin_id: UUID) -> AdminAccount | None:
        return self.admins.get(admin_id)
