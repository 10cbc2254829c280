"""Tests for the Socket.IO room broadcaster and client manager selection."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from diagramsync.db.workspaces import PersistedUpdate
from diagramsync.realtime.events import EVENT_PATCH, EVENT_PERSISTED
from diagramsync.realtime.gateway import SocketIOConnection
from diagramsync.realtime.socketio_rooms import (
    SocketIORoomBroadcaster,
    make_client_manager,
)

STAMP = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _mock_sio(rooms: list[str] | None = None) -> MagicMock:
    sio = MagicMock()
    sio.enter_room = AsyncMock()
    sio.leave_room = AsyncMock()
    sio.emit = AsyncMock()
    sio.rooms = MagicMock(return_value=rooms or [])
    return sio


class TestMakeClientManager:
    """Message queue URL to client manager."""

    @pytest.mark.parametrize("url", [None, ""])
    def test_unset_is_in_process(self, url: str | None) -> None:
        assert make_client_manager(url) is None

    def test_redis(self) -> None:
        with patch("diagramsync.realtime.socketio_rooms.socketio") as mock_socketio:
            manager = make_client_manager("redis://localhost:6379/0")
        mock_socketio.AsyncRedisManager.assert_called_once_with(
            "redis://localhost:6379/0"
        )
        assert manager is mock_socketio.AsyncRedisManager.return_value

    def test_amqp(self) -> None:
        with patch("diagramsync.realtime.socketio_rooms.socketio") as mock_socketio:
            make_client_manager("amqp://guest@localhost//")
        mock_socketio.AsyncAioPikaManager.assert_called_once()

    def test_unknown_scheme(self) -> None:
        with pytest.raises(ValueError, match="kafka"):
            make_client_manager("kafka://broker:9092")


class TestSocketIORoomBroadcaster:
    """Room operations map onto Socket.IO rooms."""

    async def test_join_enters_workspace_room(self) -> None:
        sio = _mock_sio()
        conn = SocketIOConnection(sio, "sid-1")
        await SocketIORoomBroadcaster(sio).join(conn, "ws-1")
        sio.enter_room.assert_awaited_once_with("sid-1", "workspace:ws-1")

    async def test_leave(self) -> None:
        sio = _mock_sio()
        conn = SocketIOConnection(sio, "sid-1")
        await SocketIORoomBroadcaster(sio).leave(conn, "ws-1")
        sio.leave_room.assert_awaited_once_with("sid-1", "workspace:ws-1")

    async def test_close_leaves_workspace_rooms_only(self) -> None:
        """The sid's own room is left to Socket.IO."""
        sio = _mock_sio(rooms=["sid-1", "workspace:a", "workspace:b"])
        conn = SocketIOConnection(sio, "sid-1")
        await SocketIORoomBroadcaster(sio).close(conn)
        left = [c.args[1] for c in sio.leave_room.await_args_list]
        assert left == ["workspace:a", "workspace:b"]

    def test_is_joined(self) -> None:
        sio = _mock_sio(rooms=["sid-1", "workspace:a"])
        conn = SocketIOConnection(sio, "sid-1")
        broadcaster = SocketIORoomBroadcaster(sio)
        assert broadcaster.is_joined(conn, "a")
        assert not broadcaster.is_joined(conn, "b")

    async def test_notify_persisted_emits_to_room(self) -> None:
        sio = _mock_sio()
        await SocketIORoomBroadcaster(sio).notify_persisted(
            PersistedUpdate(id="ws-1", updated_at=STAMP, name="N")
        )
        sio.emit.assert_awaited_once_with(
            EVENT_PERSISTED,
            {"id": "ws-1", "name": "N", "updatedAt": STAMP.isoformat()},
            to="workspace:ws-1",
        )

    async def test_notify_persisted_swallows_transport_errors(self) -> None:
        """A committed update must not fail because fan-out did."""
        sio = _mock_sio()
        sio.emit.side_effect = ConnectionError("queue down")
        await SocketIORoomBroadcaster(sio).notify_persisted(
            PersistedUpdate(id="ws-1", updated_at=STAMP)
        )

    async def test_relay_skips_sender(self) -> None:
        sio = _mock_sio()
        conn = SocketIOConnection(sio, "sid-1")
        await SocketIORoomBroadcaster(sio).relay(conn, "ws-1", {"x": 1})
        sio.emit.assert_awaited_once_with(
            EVENT_PATCH,
            {"id": "ws-1", "patch": {"x": 1}},
            to="workspace:ws-1",
            skip_sid="sid-1",
        )


class TestSocketIOConnection:
    async def test_send_targets_sid(self) -> None:
        sio = _mock_sio()
        await SocketIOConnection(sio, "sid-9").send("evt", {"a": 1})
        sio.emit.assert_awaited_once_with("evt", {"a": 1}, to="sid-9")
