"""Invitation issuing and token resolution."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol
from uuid import UUID

from photo_survey.domain.errors import (
    InvalidInputError,
    InvitationExpiredError,
    InvitationNotFoundError,
)
from photo_survey.domain.surveys import AccessGrant, Invitation
from photo_survey.services.clock import Clock, utcnow
from photo_survey.services.surveys import SurveyRepository

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(days=30)


class InvitationRepository(Protocol):
    """Persistence interface for survey invitations."""

    def create_invitation(
        self, survey_id: UUID, email: str, token: str, expires_at: datetime
    ) -> Invitation:
        """Create an invitation and return it."""

    def get_by_token(self, token: str) -> Invitation | None:
        """Return the invitation with exactly this token, if present."""

    def get_invitation(self, invitation_id: UUID) -> Invitation | None:
        """Return an invitation by id, if present."""

    def list_invitations(self, survey_id: UUID) -> list[Invitation]:
        """Return a survey's invitations, newest first."""

    def mark_completed(self, invitation_id: UUID, completed_at: datetime) -> None:
        """Flag an invitation as completed."""


@dataclass
class InvitationService:
    """Issues invitation tokens and resolves them into survey access."""

    repository: InvitationRepository
    survey_repository: SurveyRepository
    clock: Clock = utcnow
    ttl: timedelta = INVITATION_TTL

    def issue(self, survey_id: UUID, email: str) -> Invitation:
        """Create an invitation with a fresh unguessable token."""
        cleaned = email.strip()
        if "@" not in cleaned:
            raise InvalidInputError("A valid email address is required")
        token = secrets.token_urlsafe(32)
        expires_at = self.clock() + self.ttl
        invitation = self.repository.create_invitation(
            survey_id=survey_id, email=cleaned, token=token, expires_at=expires_at
        )
        logger.info("Issued invitation %s for survey %s", invitation.id, survey_id)
        return invitation

    def list_for_survey(self, survey_id: UUID) -> list[Invitation]:
        """Return the invitations of a survey."""
        return self.repository.list_invitations(survey_id)

    def resolve(self, token: str) -> AccessGrant:
        """Resolve a token into its survey, ordered steps and invitation.

        Expiry is evaluated on every call.
        """
        invitation = self.repository.get_by_token(token) if token else None
        if invitation is None:
            raise InvitationNotFoundError("Invitation not found")
        survey = self.survey_repository.get_survey(invitation.survey_id)
        if survey is None or not survey.is_available:
            raise InvitationNotFoundError("Invitation not found")
        if invitation.is_expired(self.clock()):
            raise InvitationExpiredError("Invitation has expired")
        steps = sorted(
            self.survey_repository.list_steps(survey.id), key=lambda step: step.order
        )
        return AccessGrant(survey=survey, steps=tuple(steps), invitation=invitation)

    def mark_completed(self, invitation_id: UUID) -> None:
        """Record that the invitation's survey run finished."""
        self.repository.mark_completed(invitation_id, completed_at=self.clock())
