"""Domain models for survey sessions and photo attempts."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from photo_survey.domain.surveys import SurveyStep

MAX_ATTEMPTS = 2


class SessionStatus(str, Enum):
    """Lifecycle states of a survey session."""

    IN_PROGRESS = "IN_PROGRESS"
    AWAITING_VERIFICATION = "AWAITING_VERIFICATION"
    STEP_EXHAUSTED = "STEP_EXHAUSTED"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted survey session.

    ``steps`` is the snapshot of the survey's steps taken when the session
    started; later edits to the survey never change it.
    """

    id: UUID
    invitation_id: UUID
    survey_id: UUID
    steps: tuple[SurveyStep, ...]
    current_step_index: int = 0
    attempt_count: int = 0
    completed_step_ids: tuple[UUID, ...] = ()
    overridden_step_ids: tuple[UUID, ...] = ()
    status: SessionStatus = SessionStatus.IN_PROGRESS
    pending_since: datetime | None = None
    version: int = 0
    is_completed: bool = False
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def current_step(self) -> SurveyStep | None:
        if 0 <= self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None


@dataclass(frozen=True)
class SessionProgress:
    """Read-only view of where a session stands."""

    session_id: UUID
    current_step_index: int
    total_steps: int
    is_completed: bool
    attempt_count: int
    max_attempts: int
    status: SessionStatus
    current_step: SurveyStep | None = None


@dataclass(frozen=True)
class AttemptRecord:
    """One recorded photo submission and its verification outcome."""

    id: UUID
    session_id: UUID
    step_id: UUID
    attempt_number: int
    image_data: str
    verification_result: bool | None
    confidence: float
    detected_objects: list[str] = field(default_factory=list)
    error_message: str | None = None
    created_at: datetime | None = None
