"""Read the signed session cookie outside of an HTTP request.

Starlette's ``SessionMiddleware`` decodes the cookie for HTTP routes. The
Socket.IO handshake only exposes the raw WSGI-style environ, so the
realtime gateway decodes the same cookie here using the same format:
base64 JSON signed with an ``itsdangerous.TimestampSigner``.
"""

from __future__ import annotations

import json
import logging
from base64 import b64decode, b64encode
from typing import Any

from itsdangerous import BadSignature, TimestampSigner
from starlette.requests import cookie_parser

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "session_id"


def encode_session_cookie(data: dict[str, Any], secret: str) -> str:
    """Produce a cookie value ``SessionMiddleware`` will accept."""
    signer = TimestampSigner(secret)
    payload = b64encode(json.dumps(data).encode("utf-8"))
    return signer.sign(payload).decode("utf-8")


def decode_session_cookie(
    value: str, secret: str, max_age: int | None = None
) -> dict[str, Any]:
    """Verify and decode a cookie value.

    Returns:
        The session dict, or an empty dict if the signature is invalid,
        the cookie is older than ``max_age`` seconds, or the payload
        is not a JSON object.
    """
    signer = TimestampSigner(secret)
    try:
        payload = signer.unsign(value.encode("utf-8"), max_age=max_age)
        data = json.loads(b64decode(payload))
    except (BadSignature, ValueError):
        logger.debug("Rejected session cookie")
        return {}
    return data if isinstance(data, dict) else {}


def session_id_from_cookie_header(
    cookie_header: str | None,
    *,
    secret: str,
    cookie_name: str = "session",
    max_age: int | None = None,
) -> str | None:
    """Extract the session id from a raw ``Cookie`` header."""
    if not cookie_header:
        return None
    value = cookie_parser(cookie_header).get(cookie_name)
    if not value:
        return None
    session_id = decode_session_cookie(value, secret, max_age).get(SESSION_ID_KEY)
    return session_id if isinstance(session_id, str) else None
