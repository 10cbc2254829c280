"""Process-wide async engine and the transactional session scope.

The engine is built on first use from ``DATABASE__URL``: aiosqlite for
single-node deployments and tests, asyncpg for PostgreSQL. One
``async with get_session()`` block is one transaction.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from diagramsync.config import get_settings
from diagramsync.errors import SyncError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

SQLITE_PRAGMAS = ("journal_mode=WAL", "foreign_keys=ON")


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def engine_kwargs(url: str) -> dict[str, Any]:
    """Options for ``create_async_engine`` that depend on the driver.

    SQLite gets only a busy timeout. PostgreSQL gets a sized, pre-pinged
    pool with the limits from ``DATABASE__*``.
    """
    if is_sqlite_url(url):
        return {"connect_args": {"timeout": 30}}

    db = get_settings().database
    return {
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": db.pool_recycle_seconds,
        "connect_args": {
            "timeout": db.connect_timeout_seconds,
            "command_timeout": db.command_timeout_seconds,
        },
    }


def create_engine_for(url: str, *, echo: bool = False) -> AsyncEngine:
    """Build an engine for ``url``; SQLite connections get WAL and FK pragmas."""
    engine = create_async_engine(url, echo=echo, **engine_kwargs(url))

    if is_sqlite_url(url):

        @event.listens_for(engine.sync_engine, "connect")
        def _apply_pragmas(dbapi_conn: Any, _record: Any) -> None:
            cursor = dbapi_conn.cursor()
            for pragma in SQLITE_PRAGMAS:
                cursor.execute(f"PRAGMA {pragma}")
            cursor.close()

    return engine


@dataclass
class _DatabaseState:
    engine: AsyncEngine | None = None
    session_factory: async_sessionmaker[AsyncSession] | None = None


_state = _DatabaseState()


def get_database_url() -> str:
    """The configured database URL.

    Raises:
        ValueError: If DATABASE__URL is unset.
    """
    url = get_settings().database.url
    if not url:
        raise ValueError(
            "DATABASE__URL is not set (environment or .env), "
            "e.g. sqlite+aiosqlite:///diagramsync.db"
        )
    return url


def get_engine() -> AsyncEngine | None:
    """The live engine, or None before ``init_db()``."""
    return _state.engine


async def init_db() -> None:
    """Create the engine and session factory in the running event loop."""
    url = get_database_url()
    _state.engine = create_engine_for(url, echo=get_settings().dev.database_echo)
    _state.session_factory = async_sessionmaker(
        _state.engine, class_=AsyncSession, expire_on_commit=False
    )
    logger.debug("Engine created for %s", _state.engine.url.render_as_string())


async def close_db() -> None:
    """Dispose of the engine. The next ``get_session()`` re-creates it."""
    engine, _state.engine, _state.session_factory = _state.engine, None, None
    if engine is not None:
        await engine.dispose()


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Transaction scope: commit on normal exit, roll back on any error.

    ``SyncError`` subclasses are expected outcomes (not found, conflict)
    and roll back silently. Anything else is logged first.

    Raises:
        ValueError: If the engine must be created and DATABASE__URL is unset.
    """
    if _state.session_factory is None:
        await init_db()
    assert _state.session_factory is not None

    async with _state.session_factory() as session:
        try:
            yield session
            await session.commit()
        except SyncError:
            await session.rollback()
            raise
        except Exception:
            logger.exception("Database session error; rolling back")
            await session.rollback()
            raise
