"""Server-side session records.

A session record binds an opaque random id to a user. The signed cookie
carries only that id, so deleting the record revokes every copy of the
cookie.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

from diagramsync.db.engine import get_session
from diagramsync.db.models import SessionRecord, User, as_utc, utcnow

if TYPE_CHECKING:
    from uuid import UUID

logger = logging.getLogger(__name__)


async def create_session_record(user_id: UUID) -> SessionRecord:
    """Issue a new session for a user.

    Returns:
        The stored record; its ``id`` is what the cookie carries.
    """
    async with get_session() as session:
        record = SessionRecord(id=secrets.token_urlsafe(32), user_id=user_id)
        session.add(record)
        await session.flush()
        await session.refresh(record)
        return record


async def resolve_session(session_id: str, max_age_seconds: int) -> User | None:
    """Return the user bound to a session id, or None.

    Records older than ``max_age_seconds`` resolve to None and are removed.
    """
    async with get_session() as session:
        record = await session.get(SessionRecord, session_id)
        if record is None:
            return None

        age = utcnow() - as_utc(record.created_at)
        if age > timedelta(seconds=max_age_seconds):
            logger.info("Session %s… expired after %s", session_id[:8], age)
            await session.delete(record)
            return None

        return await session.get(User, record.user_id)


async def delete_session_record(session_id: str) -> bool:
    """Delete a session record.

    Returns:
        True if a record was deleted, False if none existed.
    """
    async with get_session() as session:
        record = await session.get(SessionRecord, session_id)
        if record is None:
            return False
        await session.delete(record)
        return True

