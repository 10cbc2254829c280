"""Shared pytest fixtures for diagramsync tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from diagramsync.config import SessionConfig, Settings, get_settings
from diagramsync.db.bootstrap import create_schema
from diagramsync.db.engine import close_db

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

TEST_SECRET = "test-secret-not-for-production"

_SETTINGS_PREFIXES = (
    "DATABASE__",
    "APP__",
    "SESSION__",
    "REALTIME__",
    "CLIENT__",
    "LOG__",
    "DEV__",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop ambient settings env vars and the cached Settings around each test."""
    for key in list(os.environ):
        if key.startswith(_SETTINGS_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[str]:
    """A fresh SQLite database file with every table created.

    Yields the database URL. The module-level engine is disposed afterwards
    so the next test starts from a clean engine in its own event loop.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    monkeypatch.setenv("DATABASE__URL", url)
    get_settings.cache_clear()
    await create_schema(url)
    yield url
    await close_db()


@pytest.fixture
def settings(db: str) -> Settings:
    """Settings pointing at the test database with a cheap bcrypt cost."""
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        database={"url": db},
        session=SessionConfig(secret=TEST_SECRET, bcrypt_rounds=4),
    )
