"""Error taxonomy shared by the store, the auth layer and the HTTP API.

Each error carries the HTTP status the API responds with. Handlers raise
these; the app factory turns them into ``{"error": message}`` bodies.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SyncError):
    """Malformed request or missing required fields."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(SyncError):
    """No session, invalid session, or invalid credentials."""

    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(SyncError):
    """Resource is missing or the caller has no access to it.

    The two cases are deliberately reported identically.
    """

    status_code = 404
    default_message = "Not found"


class ConflictError(SyncError):
    """Unique-key violation on create."""

    status_code = 409
    default_message = "Already exists"


class InternalError(SyncError):
    """Unexpected storage or runtime failure."""

    status_code = 500
    default_message = "Internal error"
