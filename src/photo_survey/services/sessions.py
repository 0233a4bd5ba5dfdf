"""Session state machine for survey photo verification.

A session walks the step snapshot taken when it started. Each photo
submission reserves an attempt slot, waits for the verifier without holding
any lock, then records exactly one ledger row and applies the transition:

- accepted: the step is completed and the session moves to the next step.
- rejected with attempts left: the session stays on the step.
- rejected on the last attempt: the step is exhausted and only the
  "use photo anyway" override can move the session forward.

Every session write is a compare-and-swap on ``SessionRecord.version``.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Protocol
from uuid import UUID

from photo_survey.domain.errors import (
    InvalidInputError,
    InvalidSessionStateError,
    InvitationCompletedError,
    SessionConflictError,
    SessionNotFoundError,
)
from photo_survey.domain.sessions import (
    MAX_ATTEMPTS,
    AttemptRecord,
    SessionProgress,
    SessionRecord,
    SessionStatus,
)
from photo_survey.domain.surveys import SurveyStep
from photo_survey.domain.verification import VerificationOutcome
from photo_survey.services.attempts import AttemptLedger
from photo_survey.services.clock import Clock, utcnow
from photo_survey.services.invitations import InvitationService
from photo_survey.services.photos import (
    MAX_PHOTO_BYTES,
    photo_from_bytes,
    photo_from_data_uri,
)
from photo_survey.services.verification import VerificationService

logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for survey sessions."""

    def create_session(
        self, invitation_id: UUID, survey_id: UUID, steps: tuple[SurveyStep, ...]
    ) -> SessionRecord:
        """Create a session at the first step and return it.

        Raises ``SessionConflictError`` when the invitation already has an
        unfinished session.
        """

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def get_active_session(self, invitation_id: UUID) -> SessionRecord | None:
        """Return the unfinished session of an invitation, if present."""

    def save_session(
        self, session: SessionRecord, expected_version: int
    ) -> SessionRecord:
        """Persist ``session`` if the stored version still equals
        ``expected_version``; return it with the version incremented.

        Raises ``SessionConflictError`` when the stored version differs.
        """


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of one photo submission."""

    session: SessionRecord
    attempt: AttemptRecord
    outcome: VerificationOutcome

    @property
    def can_retry(self) -> bool:
        return (
            self.session.status == SessionStatus.IN_PROGRESS
            and not self.outcome.accepted
        )

    @property
    def can_override(self) -> bool:
        return self.session.status == SessionStatus.STEP_EXHAUSTED


@dataclass
class SurveySessionService:
    """Drives survey sessions through their ordered steps."""

    invitation_service: InvitationService
    session_repository: SessionRepository
    attempt_ledger: AttemptLedger
    verification_service: VerificationService
    clock: Clock = utcnow
    max_attempts: int = MAX_ATTEMPTS
    max_photo_bytes: int = MAX_PHOTO_BYTES
    reservation_timeout: timedelta = timedelta(seconds=120)

    def start(self, token: str) -> SessionRecord:
        """Start a session for an invitation, or resume its active one."""
        grant = self.invitation_service.resolve(token)
        invitation = grant.invitation
        active = self.session_repository.get_active_session(invitation.id)
        if active is not None:
            logger.info("Resuming session %s", active.id)
            return active
        if invitation.is_completed:
            raise InvitationCompletedError("Survey was already completed")
        if not grant.steps:
            raise InvalidSessionStateError("Survey has no steps")
        try:
            session = self.session_repository.create_session(
                invitation_id=invitation.id,
                survey_id=grant.survey.id,
                steps=grant.steps,
            )
        except SessionConflictError:
            # Another worker created it first.
            active = self.session_repository.get_active_session(invitation.id)
            if active is None:
                raise
            logger.info("Resuming session %s created concurrently", active.id)
            return active
        logger.info(
            "Started session %s for invitation %s with %d steps",
            session.id,
            invitation.id,
            session.total_steps,
        )
        return session

    def get_session(self, session_id: UUID) -> SessionRecord:
        """Return a session or raise ``SessionNotFoundError``."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError("Session not found")
        return session

    def get_progress(self, session_id: UUID) -> SessionProgress:
        """Return the session's position without changing anything."""
        session = self.get_session(session_id)
        return SessionProgress(
            session_id=session.id,
            current_step_index=session.current_step_index,
            total_steps=session.total_steps,
            is_completed=session.is_completed,
            attempt_count=session.attempt_count,
            max_attempts=self.max_attempts,
            status=session.status,
            current_step=session.current_step,
        )

    def list_attempts(
        self, session_id: UUID, step_id: UUID | None = None
    ) -> list[AttemptRecord]:
        """Return the ledger rows of a session."""
        self.get_session(session_id)
        return self.attempt_ledger.query(session_id, step_id)

    async def submit_photo(
        self,
        session_id: UUID,
        photo: bytes | str,
        step_id: UUID | None = None,
        attempt_hint: int | None = None,
    ) -> SubmissionResult:
        """Verify a photo for the current step and apply the verdict.

        ``photo`` is raw image bytes or a base64 image data URI.
        ``attempt_hint`` is the caller's idea of the attempt number; it is
        only logged, the stored counter decides.
        """
        image_data_url = self._normalize_photo(photo)
        now = self.clock()
        session = self._reclaim_stale(self.get_session(session_id), now)
        step = self._require_open_step(session, step_id)
        if session.attempt_count >= self.max_attempts:
            raise InvalidSessionStateError(
                "No attempts left for this step; use the photo anyway to continue"
            )

        reserved = self.session_repository.save_session(
            replace(
                session,
                attempt_count=session.attempt_count + 1,
                pending_since=now,
                status=SessionStatus.AWAITING_VERIFICATION,
                updated_at=now,
            ),
            expected_version=session.version,
        )
        if attempt_hint is not None and attempt_hint != reserved.attempt_count:
            logger.debug(
                "Session %s: client attempt %s, stored attempt %s",
                session_id,
                attempt_hint,
                reserved.attempt_count,
            )

        try:
            outcome = await self.verification_service.verify(
                image_data_url, step.expected_object, step.validation_rules
            )
        except asyncio.CancelledError:
            self._release(reserved)
            raise
        return self._apply_verdict(reserved, step, image_data_url, outcome)

    def use_photo_anyway(
        self, session_id: UUID, step_id: UUID | None = None
    ) -> SessionRecord:
        """Advance past a step whose attempts were all rejected.

        The stored attempts keep their negative result.
        """
        now = self.clock()
        session = self._reclaim_stale(self.get_session(session_id), now)
        step = self._require_open_step(session, step_id)
        if session.attempt_count < self.max_attempts:
            raise InvalidSessionStateError(
                f"Photo override needs {self.max_attempts} rejected attempts"
            )
        advanced = self._advance(session, step, now, overridden=True)
        saved = self.session_repository.save_session(
            advanced, expected_version=session.version
        )
        logger.info("Session %s: step %s overridden", session_id, step.id)
        self._after_advance(saved)
        return saved

    def _normalize_photo(self, photo: bytes | str) -> str:
        if isinstance(photo, bytes | bytearray):
            return photo_from_bytes(bytes(photo), self.max_photo_bytes)
        if isinstance(photo, str):
            return photo_from_data_uri(photo, self.max_photo_bytes)
        raise InvalidInputError("No image provided")

    def _require_open_step(
        self, session: SessionRecord, step_id: UUID | None
    ) -> SurveyStep:
        if session.is_completed:
            raise InvalidSessionStateError("Session is already completed")
        step = session.current_step
        if step is None:
            raise InvalidSessionStateError("Session has no current step")
        if session.pending_since is not None:
            raise SessionConflictError("A photo for this step is being verified")
        if step_id is not None and step_id != step.id:
            raise InvalidInputError("Step is not the current step of this session")
        return step

    def _reclaim_stale(self, session: SessionRecord, now: datetime) -> SessionRecord:
        """Drop a reservation whose verification never came back."""
        if session.pending_since is None:
            return session
        if now - session.pending_since < self.reservation_timeout:
            return session
        logger.warning("Session %s: reclaiming stale reservation", session.id)
        recorded = self._recorded_attempts(session)
        return replace(
            session,
            attempt_count=recorded,
            pending_since=None,
            status=self._resting_status(recorded),
        )

    def _recorded_attempts(self, session: SessionRecord) -> int:
        """Count ledger rows for the current step.

        The ledger is written before the session, so it is the source of
        truth when a reservation has to be rolled back.
        """
        step = session.current_step
        if step is None:
            return 0
        return len(self.attempt_ledger.query(session.id, step.id))

    def _release(self, reserved: SessionRecord) -> None:
        """Undo a reservation after the caller gave up on verification."""
        current = self.session_repository.get_session(reserved.id)
        if current is None or current.pending_since != reserved.pending_since:
            return
        recorded = self._recorded_attempts(current)
        try:
            self.session_repository.save_session(
                replace(
                    current,
                    attempt_count=recorded,
                    pending_since=None,
                    status=self._resting_status(recorded),
                ),
                expected_version=current.version,
            )
        except SessionConflictError:
            logger.warning("Session %s: could not release reservation", reserved.id)
        else:
            logger.info("Session %s: verification cancelled", reserved.id)

    def _apply_verdict(
        self,
        reserved: SessionRecord,
        step: SurveyStep,
        image_data_url: str,
        outcome: VerificationOutcome,
    ) -> SubmissionResult:
        current = self.session_repository.get_session(reserved.id)
        if (
            current is None
            or current.pending_since != reserved.pending_since
            or current.current_step_index != reserved.current_step_index
        ):
            raise SessionConflictError("Session changed while the photo was verified")

        attempt = self.attempt_ledger.record(
            session_id=current.id,
            step_id=step.id,
            attempt_number=current.attempt_count,
            image_data=image_data_url,
            outcome=outcome,
        )
        now = self.clock()
        if outcome.accepted:
            updated = self._advance(current, step, now, overridden=False)
        else:
            updated = replace(
                current,
                pending_since=None,
                status=self._resting_status(current.attempt_count),
                updated_at=now,
            )
        saved = self.session_repository.save_session(
            updated, expected_version=current.version
        )
        logger.info(
            "Session %s: step %d attempt %d %s",
            saved.id,
            current.current_step_index,
            attempt.attempt_number,
            "accepted" if outcome.accepted else "rejected",
        )
        self._after_advance(saved)
        return SubmissionResult(session=saved, attempt=attempt, outcome=outcome)

    def _advance(
        self,
        session: SessionRecord,
        step: SurveyStep,
        now: datetime,
        *,
        overridden: bool,
    ) -> SessionRecord:
        next_index = session.current_step_index + 1
        is_completed = next_index >= session.total_steps
        return replace(
            session,
            current_step_index=next_index,
            attempt_count=0,
            pending_since=None,
            completed_step_ids=(*session.completed_step_ids, step.id),
            overridden_step_ids=(
                (*session.overridden_step_ids, step.id)
                if overridden
                else session.overridden_step_ids
            ),
            status=SessionStatus.COMPLETED if is_completed else SessionStatus.IN_PROGRESS,
            is_completed=is_completed,
            completed_at=now if is_completed else None,
            updated_at=now,
        )

    def _after_advance(self, session: SessionRecord) -> None:
        if session.is_completed:
            self.invitation_service.mark_completed(session.invitation_id)
            logger.info("Session %s completed", session.id)

    def _resting_status(self, attempt_count: int) -> SessionStatus:
        if attempt_count >= self.max_attempts:
            return SessionStatus.STEP_EXHAUSTED
        return SessionStatus.IN_PROGRESS
