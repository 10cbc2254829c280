"""Data models for authentication results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from diagramsync.db.models import User


@dataclass(frozen=True)
class SessionUser:
    """The authenticated principal behind a session.

    Attributes:
        id: The user's primary key.
        email: The user's lower-cased email address.
    """

    id: UUID
    email: str

    @classmethod
    def from_user(cls, user: User) -> SessionUser:
        return cls(id=user.id, email=user.email)

    def to_dict(self) -> dict[str, str]:
        """JSON form used by the HTTP API."""
        return {"id": str(self.id), "email": self.email}
