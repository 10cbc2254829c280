"""Authentication for diagramsync.

Email and password credentials hashed with bcrypt, and sessions backed by
server-side records whose ids travel in a signed cookie.

Usage:
    from diagramsync.auth import AuthSessionManager

    manager = AuthSessionManager(get_settings().session)
    user = await manager.login(request.session, email, password)
"""

from __future__ import annotations

from diagramsync.auth.cookies import (
    SESSION_ID_KEY,
    decode_session_cookie,
    encode_session_cookie,
    session_id_from_cookie_header,
)
from diagramsync.auth.manager import AuthSessionManager
from diagramsync.auth.models import SessionUser
from diagramsync.auth.passwords import hash_password, verify_password

__all__ = [
    "SESSION_ID_KEY",
    "AuthSessionManager",
    "SessionUser",
    "decode_session_cookie",
    "encode_session_cookie",
    "hash_password",
    "session_id_from_cookie_header",
    "verify_password",
]
