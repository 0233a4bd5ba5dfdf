"""Append-only ledger of photo attempts."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from photo_survey.domain.sessions import AttemptRecord
from photo_survey.domain.verification import VerificationOutcome


class AttemptRepository(Protocol):
    """Persistence interface for photo attempts."""

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
        """Insert an attempt row and return it."""

    def list_attempts(
        self, session_id: UUID, step_id: UUID | None = None
    ) -> list[AttemptRecord]:
        """Return attempts ordered by creation time."""


@dataclass
class AttemptLedger:
    """Records every photo submission; rows are never updated or deleted."""

    repository: AttemptRepository

    def record(
        self,
        session_id: UUID,
        step_id: UUID,
        attempt_number: int,
        image_data: str,
        outcome: VerificationOutcome,
    ) -> AttemptRecord:
        """Append one attempt with its verification outcome."""
        return self.repository.create_attempt(
            session_id=session_id,
            step_id=step_id,
            attempt_number=attempt_number,
            image_data=image_data,
            verification_result=outcome.accepted,
            confidence=outcome.confidence,
            detected_objects=list(outcome.detected_labels),
            error_message=None if outcome.accepted else outcome.rejection_reason,
        )

    def query(
        self, session_id: UUID, step_id: UUID | None = None
    ) -> list[AttemptRecord]:
        """Return a session's attempts, optionally for one step."""
        return self.repository.list_attempts(session_id, step_id)
