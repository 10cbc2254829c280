"""HTTP façade over the diagramsync API.

``SyncClient`` wraps an ``httpx.AsyncClient`` whose cookie jar carries the
session cookie between calls. Any non-success response raises ``ApiError``
with the server's ``error`` message (or the HTTP reason phrase).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from diagramsync.client.realtime import SocketIOChannel
from diagramsync.config import get_settings

if TYPE_CHECKING:
    from types import TracebackType

    from diagramsync.config import Settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A non-success response from the server.

    Callers tell cases apart by ``status_code`` and ``message`` only.
    """

    def __init__(self, message: str, status_code: int) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(f"{status_code}: {message}")


@dataclass(frozen=True)
class WorkspaceInfo:
    """One row of the workspace listing."""

    id: str
    name: str
    updated_at: datetime


@dataclass(frozen=True)
class RemoteWorkspace:
    """A workspace as fetched from the server."""

    id: str
    name: str
    document: Any
    updated_at: datetime


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return response.reason_phrase or f"HTTP {response.status_code}"


class SyncClient:
    """Client for the auth and workspace endpoints.

    Args:
        base_url: Server root, e.g. ``http://localhost:8080``.
        timeout: Seconds before a request gives up. None waits forever.
        transport: Custom httpx transport (``httpx.ASGITransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, **kwargs: Any
    ) -> SyncClient:
        """Build a client from ``CLIENT__API_BASE`` and ``CLIENT__TIMEOUT_SECONDS``."""
        config = (settings or get_settings()).client
        return cls(config.api_base, timeout=config.timeout_seconds, **kwargs)

    async def __aenter__(self) -> SyncClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self, method: str, path: str, json: Any = None
    ) -> Any:
        response = await self._http.request(method, path, json=json)
        if not response.is_success:
            raise ApiError(_error_message(response), response.status_code)
        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    # -- auth -------------------------------------------------------------

    async def signup(self, email: str, password: str) -> dict[str, Any]:
        return await self._request(
            "POST", "/api/auth/signup", {"email": email, "password": password}
        )

    async def login(self, email: str, password: str) -> dict[str, Any]:
        return await self._request(
            "POST", "/api/auth/login", {"email": email, "password": password}
        )

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """Sign up, or log in if the email is already registered."""
        try:
            return await self.signup(email, password)
        except ApiError as e:
            if e.status_code != 409:
                raise
        return await self.login(email, password)

    async def logout(self) -> None:
        await self._request("POST", "/api/auth/logout")

    async def session(self) -> dict[str, Any] | None:
        """The signed-in user as ``{"id", "email"}``, or None."""
        body = await self._request("GET", "/api/session")
        return body.get("user")

    # -- workspaces -------------------------------------------------------

    async def list_workspaces(self) -> list[WorkspaceInfo]:
        rows = await self._request("GET", "/api/workspaces")
        return [
            WorkspaceInfo(
                id=row["id"],
                name=row["name"],
                updated_at=datetime.fromisoformat(row["updatedAt"]),
            )
            for row in rows
        ]

    async def create_workspace(
        self, workspace_id: str, name: str, document: Any
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/api/workspaces",
            {"id": workspace_id, "name": name, "document": document},
        )

    async def get_workspace(self, workspace_id: str) -> RemoteWorkspace:
        body = await self._request("GET", f"/api/workspaces/{workspace_id}")
        return RemoteWorkspace(
            id=body["id"],
            name=body["name"],
            document=body["document"],
            updated_at=datetime.fromisoformat(body["updatedAt"]),
        )

    async def update_workspace(
        self,
        workspace_id: str,
        *,
        name: str | None = None,
        document: Any = None,
    ) -> datetime:
        """Persist a partial update.

        Returns:
            The server-assigned ``updatedAt``.
        """
        body: dict[str, Any] = {}
        if name is not None:
            body["name"] = name
        if document is not None:
            body["document"] = document
        result = await self._request("PUT", f"/api/workspaces/{workspace_id}", body)
        return datetime.fromisoformat(result["updatedAt"])

    # -- realtime ---------------------------------------------------------

    def cookie_header(self) -> str:
        """The session cookie as a ``Cookie`` header value."""
        return "; ".join(f"{name}={value}" for name, value in self._http.cookies.items())

    async def open_channel(self) -> SocketIOChannel:
        """Connect a Socket.IO channel authenticated with this client's session."""
        channel = SocketIOChannel()
        await channel.connect(self.base_url, cookie_header=self.cookie_header())
        return channel
