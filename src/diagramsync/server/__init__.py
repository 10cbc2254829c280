"""HTTP and Socket.IO server for diagramsync."""

from __future__ import annotations

from diagramsync.server.app import create_app, create_asgi_app

__all__ = ["create_app", "create_asgi_app"]
