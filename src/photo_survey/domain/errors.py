"""Typed failures raised by the survey core."""


class SurveyError(Exception):
    """Base class for expected, caller-facing failures."""

    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(SurveyError):
    """Malformed request payload; nothing was changed."""


class PhotoTooLargeError(InvalidInputError):
    """Photo exceeds the accepted size ceiling."""


class NotFoundError(SurveyError):
    """Referenced record does not exist."""


class InvitationNotFoundError(NotFoundError):
    """Token does not resolve to a usable invitation."""


class SessionNotFoundError(NotFoundError):
    """Session id is unknown."""


class InvitationExpiredError(SurveyError):
    """Invitation expiry has passed."""


class InvitationCompletedError(SurveyError):
    """Invitation was already used to complete the survey."""


class InvalidSessionStateError(SurveyError):
    """Operation is not allowed in the session's current state."""


class SessionConflictError(SurveyError):
    """Concurrent modification of a session; re-read and retry."""

    retryable = True


class AuthenticationError(SurveyError):
    """Admin credentials or token were rejected."""
