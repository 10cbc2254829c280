"""Application factory for the diagramsync server.

``create_app`` builds the FastAPI application (HTTP API, session cookie,
CORS, optional built frontend). ``create_asgi_app`` wraps it with the
Socket.IO endpoint and is what uvicorn serves.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import socketio
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from diagramsync import __version__
from diagramsync.auth.manager import AuthSessionManager
from diagramsync.config import Settings, get_settings
from diagramsync.db.bootstrap import verify_schema
from diagramsync.db.engine import close_db, get_engine, init_db
from diagramsync.errors import SyncError
from diagramsync.realtime.broadcaster import LocalBroadcaster
from diagramsync.realtime.gateway import RealtimeGateway
from diagramsync.realtime.socketio_rooms import (
    SocketIORoomBroadcaster,
    make_client_manager,
)
from diagramsync.server.routes import router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.responses import Response
    from starlette.types import Scope

    from diagramsync.realtime.broadcaster import Broadcaster

logger = logging.getLogger(__name__)


class SPAStaticFiles(StaticFiles):
    """Static files that fall back to ``index.html`` for client routes."""

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except StarletteHTTPException as exc:
            if exc.status_code != 404 or path.startswith("api/"):
                raise
            return await super().get_response("index.html", scope)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SyncError)
    async def _sync_error(_request: Request, exc: SyncError) -> JSONResponse:
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.debug("Rejected request body: %s", exc.errors())
        return _error_response(400, "Invalid request")

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(
        _request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))


def _make_sio(settings: Settings) -> socketio.AsyncServer:
    origins = settings.app.cors_origins
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if origins == ["*"] else origins,
        client_manager=make_client_manager(settings.realtime.message_queue_url),
    )


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    await init_db()
    await verify_schema(get_engine())
    logger.info("Database ready")
    try:
        yield
    finally:
        await close_db()


def create_app(
    settings: Settings | None = None,
    broadcaster: Broadcaster | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Defaults to ``get_settings()``.
        broadcaster: Room registry for realtime events. Defaults to a
            ``SocketIORoomBroadcaster`` when a message queue is configured,
            otherwise a ``LocalBroadcaster``.

    The Socket.IO server is available as ``app.state.sio`` and the
    realtime handlers as ``app.state.gateway``.
    """
    settings = settings or get_settings()

    app = FastAPI(title="diagramsync", version=__version__, lifespan=_lifespan)

    sio = _make_sio(settings)
    if broadcaster is None:
        if settings.realtime.message_queue_url:
            broadcaster = SocketIORoomBroadcaster(sio)
        else:
            broadcaster = LocalBroadcaster()

    auth = AuthSessionManager(settings.session)
    gateway = RealtimeGateway(
        broadcaster,
        auth,
        settings.session,
        require_auth=settings.realtime.require_auth,
    )
    gateway.register(sio)

    app.state.settings = settings
    app.state.auth = auth
    app.state.broadcaster = broadcaster
    app.state.sio = sio
    app.state.gateway = gateway

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session.secret.get_secret_value(),
        session_cookie=settings.session.cookie_name,
        max_age=settings.session.max_age_seconds,
        same_site="lax",
        https_only=settings.app.base_url.startswith("https://"),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _install_error_handlers(app)
    app.include_router(router)

    static_dir = settings.app.static_dir
    if static_dir is not None:
        if Path(static_dir).is_dir():
            app.mount("/", SPAStaticFiles(directory=static_dir, html=True), name="spa")
        else:
            logger.warning("APP__STATIC_DIR %s does not exist; not serving", static_dir)

    return app


def create_asgi_app(settings: Settings | None = None) -> socketio.ASGIApp:
    """The deployable ASGI app: Socket.IO at ``/socket.io`` over ``create_app``."""
    app = create_app(settings)
    return socketio.ASGIApp(app.state.sio, other_asgi_app=app)
