"""Fixtures for in-process API and realtime tests.

HTTP calls go through ``httpx.ASGITransport`` into the FastAPI app.
Realtime connections use ``LoopbackChannel``: it drives the app's
``RealtimeGateway`` handlers directly and receives events the way a
Socket.IO client would, without a network.
"""

from __future__ import annotations

from itertools import count
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from diagramsync.client.realtime import HandlerRegistry
from diagramsync.client.sync import SyncClient
from diagramsync.server.app import create_app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from fastapi import FastAPI

    from diagramsync.config import Settings
    from diagramsync.realtime.gateway import RealtimeGateway

_sids = count(1)


class LoopbackChannel(HandlerRegistry):
    """A realtime channel wired straight into a gateway.

    Acts as the server-side ``Connection`` (``send``) and the client-side
    ``RealtimeChannel`` (``on``/``join``/``relay``) at once.
    """

    def __init__(self, gateway: RealtimeGateway) -> None:
        super().__init__()
        self._gateway = gateway
        self.id = f"loopback-{next(_sids)}"
        self.received: list[tuple[str, dict[str, Any]]] = []

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        self.received.append((event, payload))
        await self.dispatch(event, payload)

    def events(self, name: str) -> list[dict[str, Any]]:
        return [payload for event, payload in self.received if event == name]

    async def connect(self, cookie_header: str) -> bool:
        user = await self._gateway.authenticate(cookie_header)
        if user is None:
            return False
        self._gateway.attach(self.id, self, user)
        return True

    async def join(self, workspace_id: str) -> bool:
        ack = await self._gateway.on_join(self.id, workspace_id)
        return bool(ack["ok"])

    async def leave(self, workspace_id: str) -> None:
        await self._gateway.on_leave(self.id, workspace_id)

    async def relay(self, workspace_id: str, patch: Any) -> None:
        await self._gateway.on_relay(self.id, {"id": workspace_id, "patch": patch})

    async def close(self) -> None:
        await self._gateway.on_disconnect(self.id)


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture
async def make_client(
    app: FastAPI,
) -> AsyncIterator[Callable[[], SyncClient]]:
    """Factory for SyncClients with independent cookie jars."""
    clients: list[SyncClient] = []

    def _make() -> SyncClient:
        client = SyncClient(
            "http://testserver", transport=httpx.ASGITransport(app=app)
        )
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


@pytest.fixture
async def http(make_client: Callable[[], SyncClient]) -> httpx.AsyncClient:
    """Raw httpx client for status-code level assertions."""
    return make_client()._http


@pytest.fixture
def open_channel(
    app: FastAPI,
) -> Callable[[SyncClient], Awaitable[LoopbackChannel]]:
    """Connect a loopback channel authenticated with a client's cookie."""

    async def _open(client: SyncClient) -> LoopbackChannel:
        channel = LoopbackChannel(app.state.gateway)
        assert await channel.connect(client.cookie_header())
        return channel

    return _open


@pytest.fixture
async def signed_in(
    make_client: Callable[[], SyncClient],
) -> Callable[[str], Awaitable[SyncClient]]:
    """Factory for clients already signed up as the given email."""

    async def _signed_in(email: str, password: str = "pw") -> SyncClient:
        client = make_client()
        await client.signup(email, password)
        return client

    return _signed_in
