"""diagramsync - workspace synchronization for collaborative diagram editing.

Authoritative workspace storage, session-gated HTTP API, realtime
broadcast of persisted changes, and the client-side cache that mirrors it.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from diagramsync.config import LoggingConfig

__version__ = "0.1.0"

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"


def configure_logging(config: LoggingConfig) -> Path | None:
    """Attach console and (optionally) rotating-file handlers to the root logger.

    Each server process writes its own ``diagramsync.<pid>.log`` so reload
    workers do not contend for one file.

    Returns:
        The log file path, or None when file logging is disabled.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler()
    console.setLevel(config.level.upper())
    console.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
    root.addHandler(console)

    if config.directory is None:
        return None

    config.directory.mkdir(parents=True, exist_ok=True)
    log_file = config.directory / f"diagramsync.{os.getpid()}.log"
    handler = RotatingFileHandler(
        log_file,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(config.file_level.upper())
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
    return log_file


def main() -> None:
    """Run the diagramsync server under uvicorn."""
    import uvicorn

    from diagramsync.config import get_settings

    settings = get_settings()
    log_file = configure_logging(settings.log)
    logger = logging.getLogger(__name__)
    if log_file is not None:
        logger.info("Writing logs to %s", log_file.absolute())

    if settings.database.url and settings.dev.auto_create_schema:
        import asyncio

        from diagramsync.db.bootstrap import create_schema

        # SQLite deployments create tables directly; PostgreSQL uses Alembic
        asyncio.run(create_schema())

    logger.info(
        "diagramsync %s listening on http://%s:%s",
        __version__,
        settings.app.host,
        settings.app.port,
    )
    uvicorn.run(
        "diagramsync.server.app:create_asgi_app",
        factory=True,
        host=settings.app.host,
        port=settings.app.port,
        reload=settings.dev.reload,
        log_config=None,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
