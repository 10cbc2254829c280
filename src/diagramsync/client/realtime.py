"""Client side of the realtime channel.

``RealtimeChannel`` is what ``WorkspaceView`` needs from a connection;
``SocketIOChannel`` implements it on ``socketio.AsyncClient``. There is
no reconnection policy: a dropped connection stays dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import socketio

from diagramsync.realtime.events import (
    EVENT_JOIN,
    EVENT_LEAVE,
    EVENT_PATCH,
    EVENT_PERSISTED,
    EVENT_RELAY,
)

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[None]]


class RealtimeChannel(Protocol):
    async def join(self, workspace_id: str) -> bool: ...

    async def leave(self, workspace_id: str) -> None: ...

    async def relay(self, workspace_id: str, patch: Any) -> None: ...

    def on(self, event: str, handler: Handler) -> None: ...

    def off(self, event: str, handler: Handler) -> None: ...

    async def close(self) -> None: ...


class HandlerRegistry:
    """Per-event listener lists with removable handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    async def dispatch(self, event: str, payload: Any) -> None:
        if not isinstance(payload, dict):
            logger.debug("Ignored non-object %s payload", event)
            return
        for handler in list(self._handlers.get(event, [])):
            try:
                await handler(payload)
            except Exception:
                logger.exception("%s handler failed", event)


class SocketIOChannel(HandlerRegistry):
    """One Socket.IO connection carrying every room the client joins."""

    def __init__(self, sio: socketio.AsyncClient | None = None) -> None:
        super().__init__()
        self._sio = sio or socketio.AsyncClient(reconnection=False)
        for event in (EVENT_PERSISTED, EVENT_PATCH):
            self._sio.on(event, self._forwarder(event))

    def _forwarder(self, event: str) -> Callable[[Any], Awaitable[None]]:
        async def forward(payload: Any = None) -> None:
            await self.dispatch(event, payload)

        return forward

    async def connect(self, url: str, *, cookie_header: str = "") -> None:
        headers = {"Cookie": cookie_header} if cookie_header else {}
        await self._sio.connect(url, headers=headers, wait_timeout=10)

    async def join(self, workspace_id: str) -> bool:
        """Enter a workspace room. False when the server refuses."""
        ack = await self._sio.call(EVENT_JOIN, workspace_id)
        return bool(isinstance(ack, dict) and ack.get("ok"))

    async def leave(self, workspace_id: str) -> None:
        await self._sio.call(EVENT_LEAVE, workspace_id)

    async def relay(self, workspace_id: str, patch: Any) -> None:
        await self._sio.emit(EVENT_RELAY, {"id": workspace_id, "patch": patch})

    async def close(self) -> None:
        await self._sio.disconnect()
