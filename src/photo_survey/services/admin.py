"""Admin accounts and server-validated admin tokens."""

import base64
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol
from uuid import UUID

from photo_survey.domain.admin import AdminAccount
from photo_survey.domain.errors import AuthenticationError, InvalidInputError
from photo_survey.services.clock import Clock, utcnow

logger = logging.getLogger(__name__)

_PBKDF2_ALGORITHM = "pbkdf2_sha256"
_PBKDF2_ITERATIONS = 390_000
_MIN_PASSWORD_LENGTH = 8


class AdminRepository(Protocol):
    """Persistence interface for admin accounts."""

    def create_admin(self, email: str, name: str, password_hash: str) -> AdminAccount:
        """Create an admin account and return it."""

    def get_by_email(self, email: str) -> AdminAccount | None:
        """Return an admin by email, if present."""

    def get_admin(self, admin_id: UUID) -> AdminAccount | None:
        """Return an admin by id, if present."""


@dataclass
class AdminService:
    """Registers admins, checks passwords and issues bearer tokens."""

    repository: AdminRepository
    secret: str
    token_ttl: timedelta = timedelta(hours=12)
    clock: Clock = utcnow
    iterations: int = _PBKDF2_ITERATIONS

    def register(self, email: str, name: str, password: str) -> AdminAccount:
        """Create an admin with a salted password hash."""
        normalized = _normalize_email(email)
        if len(password) < _MIN_PASSWORD_LENGTH:
            raise InvalidInputError(
                f"Password must have at least {_MIN_PASSWORD_LENGTH} characters"
            )
        if self.repository.get_by_email(normalized) is not None:
            raise InvalidInputError("Email already registered")
        account = self.repository.create_admin(
            email=normalized,
            name=name.strip(),
            password_hash=hash_password(password, iterations=self.iterations),
        )
        logger.info("Registered admin %s", account.id)
        return account

    def authenticate(self, email: str, password: str) -> AdminAccount:
        """Return the admin whose credentials match, else raise."""
        account = self.repository.get_by_email(_normalize_email(email))
        if account is None or not verify_password(password, account.password_hash):
            raise AuthenticationError("Invalid email or password")
        return account

    def issue_token(self, account: AdminAccount) -> str:
        """Return a signed, expiring bearer token for ``account``."""
        expires = int((self.clock() + self.token_ttl).timestamp())
        body = f"{account.id}.{expires}"
        return f"{body}.{self._sign(body)}"

    def resolve_token(self, token: str) -> AdminAccount:
        """Validate a bearer token and return its admin."""
        parts = token.split(".")
        if len(parts) != 3:
            raise AuthenticationError("Malformed admin token")
        admin_id, expires, signature = parts
        if not hmac.compare_digest(signature, self._sign(f"{admin_id}.{expires}")):
            raise AuthenticationError("Invalid admin token")
        try:
            expires_at = int(expires)
            account_id = UUID(admin_id)
        except ValueError as exc:
            raise AuthenticationError("Malformed admin token") from exc
        if self.clock().timestamp() > expires_at:
            raise AuthenticationError("Admin token expired")
        account = self.repository.get_admin(account_id)
        if account is None:
            raise AuthenticationError("Unknown admin")
        return account

    def _sign(self, body: str) -> str:
        digest = hmac.new(
            self.secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256
        ).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def hash_password(password: str, iterations: int = _PBKDF2_ITERATIONS) -> str:
    """Hash a password as ``algorithm$iterations$salt$hash``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), iterations
    )
    return f"{_PBKDF2_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Check a password against a stored hash in constant time."""
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != _PBKDF2_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), rounds
    )
    return hmac.compare_digest(digest.hex(), expected)


def _normalize_email(email: str) -> str:
    normalized = email.strip().lower()
    if "@" not in normalized:
        raise InvalidInputError("A valid email address is required")
    return normalized
