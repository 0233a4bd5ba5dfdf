"""Admin domain models."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class AdminAccount:
    """Survey author account with a hashed password."""

    id: UUID
    email: str
    name: str
    password_hash: str
    created_at: datetime | None = None
