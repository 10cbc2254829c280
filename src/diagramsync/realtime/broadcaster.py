"""Per-workspace subscription registry and event fan-out.

``Broadcaster`` is the seam between the HTTP/realtime layers and the
registry. ``LocalBroadcaster`` keeps rooms in this process;
``SocketIORoomBroadcaster`` (see ``socketio_rooms``) hands them to the
Socket.IO server, whose client manager can span processes.

Delivery is at-most-once: a failed send is logged and dropped, and a
connection that joins later never sees earlier events.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from diagramsync.realtime.events import (
    EVENT_PATCH,
    EVENT_PERSISTED,
    patch_payload,
    persisted_payload,
)

if TYPE_CHECKING:
    from diagramsync.db.workspaces import PersistedUpdate

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """One live client connection."""

    @property
    def id(self) -> str: ...

    async def send(self, event: str, payload: dict[str, Any]) -> None: ...


class Broadcaster(Protocol):
    """Room membership plus the two fan-out paths."""

    async def join(self, connection: Connection, workspace_id: str) -> None: ...

    async def leave(self, connection: Connection, workspace_id: str) -> None: ...

    async def close(self, connection: Connection) -> None:
        """Leave every room the connection is in."""
        ...

    def is_joined(self, connection: Connection, workspace_id: str) -> bool: ...

    async def notify_persisted(self, update: PersistedUpdate) -> None:
        """Send ``persisted-update`` to the whole room, mutator included."""
        ...

    async def relay(
        self, sender: Connection, workspace_id: str, patch: Any
    ) -> None:
        """Send ``relay-patch`` to the room, excluding ``sender``."""
        ...


class LocalBroadcaster:
    """In-process room registry.

    Rooms map workspace id to ``{connection id: connection}``. A reverse
    index lets ``close`` leave every room without scanning them all.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, Connection]] = {}
        self._joined: dict[str, set[str]] = {}

    async def join(self, connection: Connection, workspace_id: str) -> None:
        self._rooms.setdefault(workspace_id, {})[connection.id] = connection
        self._joined.setdefault(connection.id, set()).add(workspace_id)
        logger.debug("JOIN %s -> %s", connection.id, workspace_id)

    async def leave(self, connection: Connection, workspace_id: str) -> None:
        room = self._rooms.get(workspace_id)
        if room is not None:
            room.pop(connection.id, None)
            if not room:
                del self._rooms[workspace_id]
        joined = self._joined.get(connection.id)
        if joined is not None:
            joined.discard(workspace_id)
            if not joined:
                del self._joined[connection.id]
        logger.debug("LEAVE %s -> %s", connection.id, workspace_id)

    async def close(self, connection: Connection) -> None:
        for workspace_id in list(self._joined.get(connection.id, ())):
            await self.leave(connection, workspace_id)

    def is_joined(self, connection: Connection, workspace_id: str) -> bool:
        return connection.id in self._rooms.get(workspace_id, {})

    def members(self, workspace_id: str) -> set[str]:
        """Connection ids currently joined to a workspace."""
        return set(self._rooms.get(workspace_id, {}))

    async def _send_to_room(
        self,
        workspace_id: str,
        event: str,
        payload: dict[str, Any],
        *,
        exclude: str | None = None,
    ) -> int:
        delivered = 0
        # Snapshot: a send may yield and let another connection leave
        for cid, connection in list(self._rooms.get(workspace_id, {}).items()):
            if cid == exclude:
                continue
            try:
                await connection.send(event, payload)
            except Exception:
                logger.warning(
                    "Dropped %s for %s on %s", event, cid, workspace_id, exc_info=True
                )
                continue
            delivered += 1
        return delivered

    async def notify_persisted(self, update: PersistedUpdate) -> None:
        delivered = await self._send_to_room(
            update.id, EVENT_PERSISTED, persisted_payload(update)
        )
        logger.debug("persisted-update %s delivered to %d", update.id, delivered)

    async def relay(
        self, sender: Connection, workspace_id: str, patch: Any
    ) -> None:
        await self._send_to_room(
            workspace_id,
            EVENT_PATCH,
            patch_payload(workspace_id, patch),
            exclude=sender.id,
        )
