"""Realtime fan-out of workspace changes over Socket.IO."""

from __future__ import annotations

from diagramsync.realtime.broadcaster import Broadcaster, Connection, LocalBroadcaster
from diagramsync.realtime.events import (
    EVENT_JOIN,
    EVENT_LEAVE,
    EVENT_PATCH,
    EVENT_PERSISTED,
    EVENT_RELAY,
)
from diagramsync.realtime.gateway import RealtimeGateway, SocketIOConnection
from diagramsync.realtime.socketio_rooms import (
    SocketIORoomBroadcaster,
    make_client_manager,
)

__all__ = [
    "EVENT_JOIN",
    "EVENT_LEAVE",
    "EVENT_PATCH",
    "EVENT_PERSISTED",
    "EVENT_RELAY",
    "Broadcaster",
    "Connection",
    "LocalBroadcaster",
    "RealtimeGateway",
    "SocketIOConnection",
    "SocketIORoomBroadcaster",
    "make_client_manager",
]
