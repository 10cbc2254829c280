"""Credential checks and session issuance.

``AuthSessionManager`` works on the mutable session mapping Starlette's
``SessionMiddleware`` exposes as ``request.session``. The mapping holds
only ``{"session_id": ...}``; the id resolves through the
``session_record`` table, so logging out revokes the cookie everywhere.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from diagramsync.auth.cookies import SESSION_ID_KEY
from diagramsync.auth.models import SessionUser
from diagramsync.auth.passwords import hash_password, verify_password
from diagramsync.db.sessions import (
    create_session_record,
    delete_session_record,
    resolve_session,
)
from diagramsync.db.users import create_user, get_user_by_email
from diagramsync.errors import AuthError, ValidationError

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

    from diagramsync.config import SessionConfig

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
MISSING_CREDENTIALS = "Email and password required"


def _require_credentials(email: str | None, password: str | None) -> tuple[str, str]:
    if not email or not password:
        raise ValidationError(MISSING_CREDENTIALS)
    return email, password


class AuthSessionManager:
    """Sign-up, login, logout and session lookup.

    Args:
        config: Session settings (bcrypt cost, maximum session age).
    """

    def __init__(self, config: SessionConfig) -> None:
        self._rounds = config.bcrypt_rounds
        self._max_age = config.max_age_seconds
        # Stands in for the stored hash when the email is unknown
        self._dummy_hash = hash_password("diagramsync-unknown-user", self._rounds)

    async def _hash(self, password: str) -> str:
        # bcrypt is CPU-bound; keep it off the event loop
        return await asyncio.to_thread(hash_password, password, self._rounds)

    async def _check(self, password: str, password_hash: str | None) -> bool:
        """Verify off the event loop.

        A missing hash still costs one bcrypt check, so unknown and known
        emails take the same time to reject.
        """
        matched = await asyncio.to_thread(
            verify_password, password, password_hash or self._dummy_hash
        )
        return matched and password_hash is not None

    async def _start(
        self, session: MutableMapping[str, Any], user: SessionUser
    ) -> SessionUser:
        previous = session.get(SESSION_ID_KEY)
        if previous:
            await delete_session_record(previous)
        record = await create_session_record(user.id)
        session.clear()
        session[SESSION_ID_KEY] = record.id
        logger.info("Session started for %s", user.email)
        return user

    async def signup(
        self,
        session: MutableMapping[str, Any],
        email: str | None,
        password: str | None,
    ) -> SessionUser:
        """Register a principal and sign them in.

        Raises:
            ValidationError: If email or password is missing.
            ConflictError: If the email is already registered.
        """
        email, password = _require_credentials(email, password)
        user = await create_user(email, await self._hash(password))
        return await self._start(session, SessionUser.from_user(user))

    async def login(
        self,
        session: MutableMapping[str, Any],
        email: str | None,
        password: str | None,
    ) -> SessionUser:
        """Verify credentials and start a session.

        Unknown email and wrong password raise the same error. The session
        mapping is untouched on failure.

        Raises:
            ValidationError: If email or password is missing.
            AuthError: If the credentials do not match.
        """
        email, password = _require_credentials(email, password)
        user = await get_user_by_email(email)
        matched = await self._check(
            password, user.password_hash if user is not None else None
        )
        if user is None or not matched:
            logger.info("Failed login for %s", email)
            raise AuthError(INVALID_CREDENTIALS)
        return await self._start(session, SessionUser.from_user(user))

    async def logout(self, session: MutableMapping[str, Any]) -> None:
        """Drop the session record and clear the cookie payload."""
        session_id = session.get(SESSION_ID_KEY)
        session.clear()
        if session_id and await delete_session_record(session_id):
            logger.info("Session %s… ended", session_id[:8])

    async def resolve(self, session_id: str | None) -> SessionUser | None:
        """Look up the principal for a raw session id."""
        if not session_id:
            return None
        try:
            user = await resolve_session(session_id, self._max_age)
        except SQLAlchemyError:
            logger.warning("Session lookup failed; treating as signed out")
            return None
        return SessionUser.from_user(user) if user is not None else None

    async def current_session(
        self, session: MutableMapping[str, Any]
    ) -> SessionUser | None:
        """Return the signed-in principal, or None. Never raises."""
        return await self.resolve(session.get(SESSION_ID_KEY))
