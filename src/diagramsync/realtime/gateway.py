"""Socket.IO event handlers.

The gateway authenticates each socket from the session cookie sent with
the handshake, checks workspace membership before letting a socket join
a room, and forwards relay patches. Persisted updates reach sockets via
``Broadcaster.notify_persisted``, never through here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from diagramsync.auth.cookies import session_id_from_cookie_header
from diagramsync.db.workspaces import has_access
from diagramsync.realtime.events import (
    EVENT_JOIN,
    EVENT_LEAVE,
    EVENT_RELAY,
)

if TYPE_CHECKING:
    import socketio

    from diagramsync.auth.manager import AuthSessionManager
    from diagramsync.auth.models import SessionUser
    from diagramsync.config import SessionConfig
    from diagramsync.realtime.broadcaster import Broadcaster, Connection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SocketIOConnection:
    """A Socket.IO session addressed by its sid."""

    sio: socketio.AsyncServer
    id: str

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        await self.sio.emit(event, payload, to=self.id)


@dataclass
class _Peer:
    connection: Connection
    user: SessionUser | None


class RealtimeGateway:
    """Connects Socket.IO sessions to a ``Broadcaster``.

    Args:
        broadcaster: Room registry the sockets join.
        auth: Resolves session ids to principals.
        session_config: Cookie name, secret and maximum age.
        require_auth: Refuse handshakes without a valid session.
    """

    def __init__(
        self,
        broadcaster: Broadcaster,
        auth: AuthSessionManager,
        session_config: SessionConfig,
        *,
        require_auth: bool = True,
    ) -> None:
        self.broadcaster = broadcaster
        self._auth = auth
        self._session_config = session_config
        self._require_auth = require_auth
        self._peers: dict[str, _Peer] = {}
        self._sio: socketio.AsyncServer | None = None

    def register(self, sio: socketio.AsyncServer) -> None:
        """Install the handlers on a Socket.IO server."""
        self._sio = sio

        @sio.event
        async def connect(
            sid: str, environ: dict[str, Any], auth: Any = None
        ) -> bool:
            return await self.on_connect(sid, environ, auth)

        @sio.event
        async def disconnect(sid: str, reason: Any = None) -> None:
            await self.on_disconnect(sid)

        sio.on(EVENT_JOIN, self.on_join)
        sio.on(EVENT_LEAVE, self.on_leave)
        sio.on(EVENT_RELAY, self.on_relay)

    async def authenticate(self, cookie_header: str | None) -> SessionUser | None:
        """Resolve the principal from a raw ``Cookie`` header."""
        session_id = session_id_from_cookie_header(
            cookie_header,
            secret=self._session_config.secret.get_secret_value(),
            cookie_name=self._session_config.cookie_name,
            max_age=self._session_config.max_age_seconds,
        )
        return await self._auth.resolve(session_id)

    def attach(
        self, sid: str, connection: Connection, user: SessionUser | None
    ) -> None:
        """Track an accepted connection."""
        self._peers[sid] = _Peer(connection=connection, user=user)

    async def on_connect(
        self, sid: str, environ: dict[str, Any], auth: Any = None
    ) -> bool:
        user = await self.authenticate(environ.get("HTTP_COOKIE"))
        if user is None and self._require_auth:
            logger.info("Rejected unauthenticated socket %s", sid)
            return False
        assert self._sio is not None, "register() the gateway first"
        self.attach(sid, SocketIOConnection(self._sio, sid), user)
        logger.debug("Socket %s connected as %s", sid, user.email if user else None)
        return True

    async def on_disconnect(self, sid: str) -> None:
        peer = self._peers.pop(sid, None)
        if peer is not None:
            await self.broadcaster.close(peer.connection)
            logger.debug("Socket %s disconnected", sid)

    async def _may_enter(self, peer: _Peer, workspace_id: Any) -> bool:
        if not isinstance(workspace_id, str) or not workspace_id:
            return False
        if peer.user is None:
            # Only reachable with REALTIME__REQUIRE_AUTH=false
            return True
        return await has_access(workspace_id, peer.user.id)

    async def on_join(self, sid: str, workspace_id: Any) -> dict[str, Any]:
        peer = self._peers.get(sid)
        if peer is None or not await self._may_enter(peer, workspace_id):
            return {"ok": False, "error": "Not found"}
        await self.broadcaster.join(peer.connection, workspace_id)
        logger.info("Socket %s joined %s", sid, workspace_id)
        return {"ok": True}

    async def on_leave(self, sid: str, workspace_id: Any) -> dict[str, Any]:
        peer = self._peers.get(sid)
        if peer is None or not isinstance(workspace_id, str):
            return {"ok": False}
        await self.broadcaster.leave(peer.connection, workspace_id)
        logger.info("Socket %s left %s", sid, workspace_id)
        return {"ok": True}

    async def on_relay(self, sid: str, data: Any) -> None:
        peer = self._peers.get(sid)
        if peer is None or not isinstance(data, dict):
            return
        workspace_id = data.get("id")
        if not isinstance(workspace_id, str):
            return
        if not self.broadcaster.is_joined(peer.connection, workspace_id):
            logger.debug("Ignored relay from %s outside %s", sid, workspace_id)
            return
        await self.broadcaster.relay(peer.connection, workspace_id, data.get("patch"))
