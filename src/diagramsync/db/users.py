"""CRUD operations for principals.

Emails are stored lower-cased; lookups normalise the same way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from diagramsync.db.engine import get_session
from diagramsync.db.models import User
from diagramsync.errors import ConflictError

if TYPE_CHECKING:
    from uuid import UUID


def normalise_email(email: str) -> str:
    """Canonical form used for storage and lookup."""
    return email.strip().lower()


async def get_user_by_id(user_id: UUID) -> User | None:
    """Get a user by their primary key."""
    async with get_session() as session:
        return await session.get(User, user_id)


async def get_user_by_email(email: str) -> User | None:
    """Get a user by their email address (case-insensitive lookup)."""
    async with get_session() as session:
        result = await session.exec(
            select(User).where(User.email == normalise_email(email))
        )
        return result.first()


async def create_user(email: str, password_hash: str) -> User:
    """Create a new user.

    Args:
        email: The user's email address.
        password_hash: Hash produced by ``diagramsync.auth.passwords``.

    Returns:
        The created User with generated ID.

    Raises:
        ConflictError: If the email is already registered.
    """
    email = normalise_email(email)
    async with get_session() as session:
        existing = await session.exec(select(User).where(User.email == email))
        if existing.first():
            raise ConflictError("Email already exists")

        user = User(email=email, password_hash=password_hash)
        session.add(user)
        try:
            await session.flush()
        except IntegrityError as e:
            # Another transaction won the insert
            raise ConflictError("Email already exists") from e
        await session.refresh(user)
        return user


async def list_users() -> list[User]:
    """List all users ordered by email."""
    async with get_session() as session:
        result = await session.exec(select(User).order_by(User.email))  # type: ignore[arg-type]
        return list(result.all())
