"""Python client for diagramsync: HTTP façade, realtime channel and cache.

Usage:
    async with SyncClient("http://localhost:8080") as client:
        await client.login("a@example.com", "secret")
        cache = ClientCache(client)
        await cache.tables.add("w1", {"id": "t1", "name": "users"})
"""

from __future__ import annotations

from diagramsync.client.cache import (
    ClientCache,
    DiagramNotFoundError,
    EntityCollection,
    EntityNotFoundError,
)
from diagramsync.client.diagram import Diagram
from diagramsync.client.realtime import HandlerRegistry, RealtimeChannel, SocketIOChannel
from diagramsync.client.sync import ApiError, RemoteWorkspace, SyncClient, WorkspaceInfo
from diagramsync.client.view import WorkspaceView

__all__ = [
    "ApiError",
    "ClientCache",
    "Diagram",
    "DiagramNotFoundError",
    "EntityCollection",
    "EntityNotFoundError",
    "HandlerRegistry",
    "RealtimeChannel",
    "RemoteWorkspace",
    "SocketIOChannel",
    "SyncClient",
    "WorkspaceInfo",
    "WorkspaceView",
]
