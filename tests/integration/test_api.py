"""HTTP contract tests: status codes and response bodies."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import httpx
import pytest

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastapi import FastAPI

    from diagramsync.client.sync import SyncClient

CREDS = {"email": "a@x.com", "password": "pw"}


async def _signup(http: httpx.AsyncClient, email: str = "a@x.com") -> dict:
    response = await http.post("/api/auth/signup", json={"email": email, "password": "pw"})
    assert response.status_code == 200
    return response.json()


class TestAuthEndpoints:
    """/api/auth/* and /api/session."""

    @pytest.mark.asyncio
    async def test_signup_then_session(self, http: httpx.AsyncClient) -> None:
        user = await _signup(http)
        assert user["email"] == "a@x.com"

        response = await http.get("/api/session")
        assert response.status_code == 200
        assert response.json() == {"user": user}

    @pytest.mark.asyncio
    async def test_session_cookie_is_http_only(self, http: httpx.AsyncClient) -> None:
        response = await http.post("/api/auth/signup", json=CREDS)
        assert "httponly" in response.headers["set-cookie"].lower()

    @pytest.mark.asyncio
    async def test_signed_out_session(self, http: httpx.AsyncClient) -> None:
        response = await http.get("/api/session")
        assert response.json() == {"user": None}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body", [{}, {"email": "a@x.com"}, {"password": "pw"}, {"email": "", "password": ""}]
    )
    async def test_signup_missing_fields(
        self, http: httpx.AsyncClient, body: dict
    ) -> None:
        response = await http.post("/api/auth/signup", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Email and password required"}

    @pytest.mark.asyncio
    async def test_signup_without_body(self, http: httpx.AsyncClient) -> None:
        response = await http.post("/api/auth/signup")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_signup_duplicate(self, http: httpx.AsyncClient) -> None:
        await _signup(http)
        response = await http.post("/api/auth/signup", json=CREDS)
        assert response.status_code == 409
        assert response.json() == {"error": "Email already exists"}

    @pytest.mark.asyncio
    async def test_login_wrong_password_keeps_session(
        self, http: httpx.AsyncClient
    ) -> None:
        user = await _signup(http)

        response = await http.post(
            "/api/auth/login", json={"email": "a@x.com", "password": "wrong"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials"}
        assert (await http.get("/api/session")).json() == {"user": user}

    @pytest.mark.asyncio
    async def test_login_missing_fields(self, http: httpx.AsyncClient) -> None:
        response = await http.post("/api/auth/login", json={"email": "a@x.com"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_login_from_fresh_client(
        self, make_client: Callable[[], SyncClient]
    ) -> None:
        first = make_client()._http
        user = await _signup(first)

        second = make_client()._http
        response = await second.post("/api/auth/login", json=CREDS)
        assert response.status_code == 200
        assert response.json() == user
        assert (await second.get("/api/session")).json() == {"user": user}

    @pytest.mark.asyncio
    async def test_logout_revokes_copied_cookie(
        self, make_client: Callable[[], SyncClient]
    ) -> None:
        client = make_client()
        await client.signup("a@x.com", "pw")
        stolen = client.cookie_header()

        response = await client._http.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"ok": True}

        replay = make_client()._http
        response = await replay.get("/api/session", headers={"Cookie": stolen})
        assert response.json() == {"user": None}

    @pytest.mark.asyncio
    async def test_tampered_cookie_is_signed_out(self, http: httpx.AsyncClient) -> None:
        response = await http.get("/api/session", headers={"Cookie": "session=forged"})
        assert response.json() == {"user": None}


class TestWorkspaceEndpoints:
    """/api/workspaces CRUD."""

    @pytest.mark.asyncio
    async def test_requires_session(self, http: httpx.AsyncClient) -> None:
        for method, path in [
            ("GET", "/api/workspaces"),
            ("POST", "/api/workspaces"),
            ("GET", "/api/workspaces/w1"),
            ("PUT", "/api/workspaces/w1"),
        ]:
            response = await http.request(method, path, json={})
            assert response.status_code == 401, (method, path)
            assert response.json() == {"error": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_create_get_list(self, http: httpx.AsyncClient) -> None:
        await _signup(http)
        document = {"tables": [{"id": "t1", "fields": [{"name": "id"}]}]}

        created = await http.post(
            "/api/workspaces", json={"id": "w1", "name": "Shop", "document": document}
        )
        assert created.status_code == 200
        assert created.json() == {"id": "w1", "name": "Shop"}

        fetched = (await http.get("/api/workspaces/w1")).json()
        assert fetched["document"] == document
        assert fetched["name"] == "Shop"
        assert datetime.fromisoformat(fetched["updatedAt"]).tzinfo is not None

        listing = (await http.get("/api/workspaces")).json()
        assert listing == [
            {"id": "w1", "name": "Shop", "updatedAt": fetched["updatedAt"]}
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"id": "w1"}, {"name": "Shop"}])
    async def test_create_missing_fields(
        self, http: httpx.AsyncClient, body: dict
    ) -> None:
        await _signup(http)
        response = await http.post("/api/workspaces", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "id and name required"}

    @pytest.mark.asyncio
    async def test_create_duplicate(self, make_client: Callable[[], SyncClient]) -> None:
        a = make_client()._http
        b = make_client()._http
        await _signup(a, "a@x.com")
        await _signup(b, "b@x.com")
        await a.post("/api/workspaces", json={"id": "w1", "name": "A"})

        response = await b.post("/api/workspaces", json={"id": "w1", "name": "B"})

        assert response.status_code == 409
        assert response.json() == {"error": "Workspace already exists"}
        assert (await a.get("/api/workspaces/w1")).json()["name"] == "A"

    @pytest.mark.asyncio
    async def test_other_users_workspace_is_not_found(
        self, make_client: Callable[[], SyncClient]
    ) -> None:
        a = make_client()._http
        b = make_client()._http
        await _signup(a, "a@x.com")
        await _signup(b, "b@x.com")
        await a.post("/api/workspaces", json={"id": "w1", "name": "A"})

        forbidden = await b.get("/api/workspaces/w1")
        missing = await b.get("/api/workspaces/nope")

        assert forbidden.status_code == missing.status_code == 404
        assert forbidden.json() == missing.json() == {"error": "Not found"}
        assert (await b.put("/api/workspaces/w1", json={"name": "x"})).status_code == 404

    @pytest.mark.asyncio
    async def test_put_partial_update(self, http: httpx.AsyncClient) -> None:
        await _signup(http)
        document = {"tables": [{"id": "t1"}]}
        await http.post(
            "/api/workspaces", json={"id": "w1", "name": "Shop", "document": document}
        )

        response = await http.put("/api/workspaces/w1", json={"name": "Store"})

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        fetched = (await http.get("/api/workspaces/w1")).json()
        assert fetched["name"] == "Store"
        assert fetched["document"] == document
        assert fetched["updatedAt"] == body["updatedAt"]

    @pytest.mark.asyncio
    async def test_put_document_round_trips(self, http: httpx.AsyncClient) -> None:
        await _signup(http)
        await http.post("/api/workspaces", json={"id": "w1", "name": "Shop"})
        document = {
            "tables": [{"id": "t1", "x": 1.5, "tags": ["a", None], "nested": {"k": True}}],
            "customTypes": [],
        }

        await http.put("/api/workspaces/w1", json={"document": document})

        assert (await http.get("/api/workspaces/w1")).json()["document"] == document

    @pytest.mark.asyncio
    async def test_malformed_body_is_400(self, http: httpx.AsyncClient) -> None:
        await _signup(http)
        response = await http.put(
            "/api/workspaces/w1",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request"}

    @pytest.mark.asyncio
    async def test_unknown_route_uses_error_body(self, http: httpx.AsyncClient) -> None:
        response = await http.get("/api/nothing-here")
        assert response.status_code == 404
        assert "error" in response.json()


class TestAppState:
    def test_realtime_wiring(self, app: FastAPI) -> None:
        from diagramsync.realtime.broadcaster import LocalBroadcaster

        assert isinstance(app.state.broadcaster, LocalBroadcaster)
        assert app.state.gateway.broadcaster is app.state.broadcaster
