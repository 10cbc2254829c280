"""Realtime event names and payload shapes.

Two independent paths share the wire:

- ``persisted-update``: emitted by the server after a workspace update
  commits. Sent to every connection in the room, the mutator included.
- ``relay-update`` / ``relay-patch``: an unvalidated hint one client sends
  to the others in a room. Never persisted and never authoritative.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from diagramsync.db.models import to_iso

if TYPE_CHECKING:
    from diagramsync.db.workspaces import PersistedUpdate

EVENT_JOIN = "join"
EVENT_LEAVE = "leave"
EVENT_PERSISTED = "persisted-update"
EVENT_RELAY = "relay-update"
EVENT_PATCH = "relay-patch"


def room_name(workspace_id: str) -> str:
    """Socket.IO room holding the connections viewing a workspace."""
    return f"workspace:{workspace_id}"


def persisted_payload(update: PersistedUpdate) -> dict[str, Any]:
    """Build the ``persisted-update`` body.

    ``name`` and ``document`` appear only when the update supplied them.
    """
    payload: dict[str, Any] = {"id": update.id}
    if update.name is not None:
        payload["name"] = update.name
    if update.document is not None:
        payload["document"] = update.document
    payload["updatedAt"] = to_iso(update.updated_at)
    return payload


def patch_payload(workspace_id: str, patch: Any) -> dict[str, Any]:
    """Build the ``relay-patch`` body. ``patch`` passes through verbatim."""
    return {"id": workspace_id, "patch": patch}
