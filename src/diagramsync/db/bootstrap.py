"""Schema creation, migration and startup verification.

PostgreSQL schemas are owned by the Alembic migrations under
``alembic/``. SQLite single-node deployments and the test suite create
tables straight from the SQLModel metadata with ``create_schema()``.
Either way the server refuses to start until ``verify_schema()`` finds
every table.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from sqlalchemy import inspect
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlmodel import SQLModel

from diagramsync.config import get_settings
from diagramsync.db.engine import create_engine_for, get_database_url

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[3] / "alembic.ini"


def is_db_configured() -> bool:
    return bool(get_settings().database.url)


def get_expected_tables() -> set[str]:
    """Table names the models declare."""
    import diagramsync.db.models  # noqa: F401, PLC0415  -- registers the tables

    return set(SQLModel.metadata.tables)


def run_alembic_upgrade(revision: str = "head") -> None:
    """Migrate the configured database to ``revision``.

    Must be called outside a running event loop; the migration
    environment starts its own.

    Raises:
        RuntimeError: If DATABASE__URL is unset or the migration fails.
    """
    if not is_db_configured():
        raise RuntimeError("DATABASE__URL is not set; nothing to migrate")

    config = Config(str(ALEMBIC_INI))
    try:
        command.upgrade(config, revision)
    except (CommandError, SQLAlchemyError) as e:
        raise RuntimeError(f"Alembic upgrade to {revision} failed: {e}") from e
    logger.info("Database migrated to %s", revision)


async def create_schema(url: str | None = None) -> None:
    """Create whatever tables are missing, leaving existing ones alone.

    Runs on a throwaway engine so it works before ``init_db()`` and from
    a different event loop than the one the server will use.
    """
    get_expected_tables()
    engine = create_engine_for(url or get_database_url())
    try:
        async with engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)
    finally:
        await engine.dispose()


async def verify_schema(engine: AsyncEngine | None) -> None:
    """Fail startup unless every model table exists.

    Raises:
        RuntimeError: If there is no engine or any table is missing.
    """
    if engine is None:
        raise RuntimeError("verify_schema() called before init_db()")

    async with engine.connect() as connection:
        present = await connection.run_sync(
            lambda sync_conn: set(inspect(sync_conn).get_table_names())
        )

    missing = sorted(get_expected_tables() - present)
    if missing:
        raise RuntimeError(
            f"Missing tables {', '.join(missing)} in "
            f"{_display_url(get_settings().database.url)}. "
            "Run 'diagramsync-admin db upgrade' (PostgreSQL) or "
            "'diagramsync-admin db create' (SQLite)."
        )


def _display_url(url: str | None) -> str:
    """The URL with any password replaced by ``***``."""
    if not url:
        return "<unset>"
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable DATABASE__URL>"
