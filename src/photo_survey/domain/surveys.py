"""Domain models for surveys, steps and invitations."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class Survey:
    """Admin-authored survey template."""

    id: UUID
    admin_id: UUID
    title: str
    description: str | None
    company: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @property
    def is_available(self) -> bool:
        """Whether invitations for this survey may still be used."""
        return self.is_active and self.deleted_at is None


@dataclass(frozen=True)
class SurveyStep:
    """One ordered photo prompt of a survey."""

    id: UUID
    survey_id: UUID
    order: int
    title: str
    description: str
    expected_object: str
    tips: tuple[str, ...] = ()
    validation_rules: str | None = None
    example_image_url: str | None = None
    is_required: bool = True


@dataclass(frozen=True)
class Invitation:
    """Tokenized, expiring grant to run one survey."""

    id: UUID
    survey_id: UUID
    email: str
    token: str
    is_completed: bool
    completed_at: datetime | None
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Return True once the invitation can no longer be used."""
        return now > self.expires_at


@dataclass(frozen=True)
class AccessGrant:
    """Resolved invitation with its survey and ordered steps."""

    survey: Survey
    steps: tuple[SurveyStep, ...]
    invitation: Invitation
