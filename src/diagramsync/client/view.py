"""Subscription scoped to the workspace currently on screen.

Entering a workspace joins its room and starts folding
``persisted-update`` events into the cache. Leaving, or entering a
different workspace, leaves the room and drops the listener first.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from diagramsync.realtime.events import EVENT_PATCH, EVENT_PERSISTED

if TYPE_CHECKING:
    from diagramsync.client.cache import ClientCache
    from diagramsync.client.diagram import Diagram
    from diagramsync.client.realtime import Handler, RealtimeChannel

logger = logging.getLogger(__name__)


class WorkspaceView:
    """Keeps one workspace's cache entry live while it is viewed.

    Args:
        cache: Cache the events are applied to.
        channel: Realtime connection to join rooms on.
    """

    def __init__(self, cache: ClientCache, channel: RealtimeChannel) -> None:
        self._cache = cache
        self._channel = channel
        self.current_id: str | None = None
        self._patch_listeners: list[Handler] = []

    async def enter(self, workspace_id: str) -> Diagram | None:
        """Show a workspace: join its room, then load it through the cache.

        Returns:
            The diagram, or None if it cannot be loaded.
        """
        if workspace_id == self.current_id:
            return self._cache.peek(workspace_id)
        if self.current_id is not None:
            await self.exit()

        self.current_id = workspace_id
        self._channel.on(EVENT_PERSISTED, self._on_persisted)
        self._channel.on(EVENT_PATCH, self._on_patch)
        if not await self._channel.join(workspace_id):
            logger.warning("Server refused to join %s", workspace_id)
        return await self._cache.get_diagram(workspace_id)

    async def exit(self) -> None:
        """Stop viewing. Safe to call when nothing is viewed."""
        workspace_id = self.current_id
        if workspace_id is None:
            return
        self._channel.off(EVENT_PERSISTED, self._on_persisted)
        self._channel.off(EVENT_PATCH, self._on_patch)
        self.current_id = None
        await self._channel.leave(workspace_id)

    def on_patch(self, listener: Handler) -> None:
        """Receive ``relay-patch`` payloads for the viewed workspace."""
        self._patch_listeners.append(listener)

    async def send_patch(self, patch: Any) -> None:
        """Relay an ephemeral hint to the other viewers. Not persisted."""
        if self.current_id is None:
            raise RuntimeError("No workspace is being viewed")
        await self._channel.relay(self.current_id, patch)

    async def _on_persisted(self, payload: dict[str, Any]) -> None:
        if payload.get("id") != self.current_id:
            return
        self._cache.apply_broadcast(payload)

    async def _on_patch(self, payload: dict[str, Any]) -> None:
        if payload.get("id") != self.current_id:
            return
        for listener in list(self._patch_listeners):
            await listener(payload)
