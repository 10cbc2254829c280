"""Broadcaster backed by Socket.IO rooms.

Room membership lives in the Socket.IO server's client manager. With a
message-queue manager (``REALTIME__MESSAGE_QUEUE_URL``) every server
process sharing the queue delivers to its own connections.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import socketio

from diagramsync.realtime.events import (
    EVENT_PATCH,
    EVENT_PERSISTED,
    patch_payload,
    persisted_payload,
    room_name,
)

if TYPE_CHECKING:
    from diagramsync.db.workspaces import PersistedUpdate
    from diagramsync.realtime.broadcaster import Connection

logger = logging.getLogger(__name__)


def make_client_manager(url: str | None) -> socketio.AsyncManager | None:
    """Pick a client manager for a message queue URL.

    Returns None for in-process delivery.
    """
    if not url:
        return None
    if url.startswith(("redis://", "rediss://", "unix://")):
        return socketio.AsyncRedisManager(url)
    if url.startswith("amqp://"):
        return socketio.AsyncAioPikaManager(url)
    msg = f"Unsupported message queue URL scheme: {url.split('://', 1)[0]}"
    raise ValueError(msg)


class SocketIORoomBroadcaster:
    """Delegates rooms and fan-out to a ``socketio.AsyncServer``.

    Connection ids are Socket.IO session ids.
    """

    def __init__(self, sio: socketio.AsyncServer) -> None:
        self._sio = sio

    async def join(self, connection: Connection, workspace_id: str) -> None:
        await self._sio.enter_room(connection.id, room_name(workspace_id))

    async def leave(self, connection: Connection, workspace_id: str) -> None:
        await self._sio.leave_room(connection.id, room_name(workspace_id))

    async def close(self, connection: Connection) -> None:
        for room in self._sio.rooms(connection.id):
            if room.startswith("workspace:"):
                await self._sio.leave_room(connection.id, room)

    def is_joined(self, connection: Connection, workspace_id: str) -> bool:
        return room_name(workspace_id) in self._sio.rooms(connection.id)

    async def notify_persisted(self, update: PersistedUpdate) -> None:
        try:
            await self._sio.emit(
                EVENT_PERSISTED, persisted_payload(update), to=room_name(update.id)
            )
        except Exception:
            logger.warning("Dropped persisted-update for %s", update.id, exc_info=True)

    async def relay(
        self, sender: Connection, workspace_id: str, patch: Any
    ) -> None:
        await self._sio.emit(
            EVENT_PATCH,
            patch_payload(workspace_id, patch),
            to=room_name(workspace_id),
            skip_sid=sender.id,
        )
