"""diagramsync settings, read from the environment and ``.env``.

Server, admin CLI and sync client all go through ``get_settings()``.
Tests build ``Settings(_env_file=None, ...)`` to ignore the local ``.env``.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/diagramsync/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class DatabaseConfig(BaseModel):
    """Database connection configuration.

    ``sqlite+aiosqlite:///path.db`` for single-node deployments,
    ``postgresql+asyncpg://...`` for PostgreSQL. The pool and timeout
    fields apply to PostgreSQL only.
    """

    url: str | None = None
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle_seconds: int = 3600
    connect_timeout_seconds: float = 10
    command_timeout_seconds: float = 30


class LoggingConfig(BaseModel):
    """Console and rotating-file log output for the server process."""

    level: str = "INFO"
    file_level: str = "DEBUG"
    directory: Path | None = Path("logs")
    """Where per-process log files go. None disables file logging."""
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5


class AppConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"  # nosec B104
    port: int = 8080
    base_url: str = "http://localhost:8080"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    static_dir: Path | None = None
    """Built frontend to serve at ``/``. Unset disables static serving."""


class SessionConfig(BaseModel):
    """Session cookie and credential hashing configuration."""

    secret: SecretStr = SecretStr("dev-secret-change-me")
    cookie_name: str = "session"
    max_age_seconds: int = 14 * 24 * 60 * 60
    bcrypt_rounds: int = 10

    @field_validator("bcrypt_rounds")
    @classmethod
    def _rounds_in_bcrypt_range(cls, value: int) -> int:
        if not 4 <= value <= 31:
            msg = "SESSION__BCRYPT_ROUNDS must be between 4 and 31"
            raise ValueError(msg)
        return value


class RealtimeConfig(BaseModel):
    """Socket.IO broadcast configuration."""

    require_auth: bool = True
    """Reject socket connections that carry no valid session cookie."""
    message_queue_url: str | None = None
    """Message queue for cross-process fan-out (e.g. ``redis://``).

    Unset keeps the room registry in-process.
    """


class ClientConfig(BaseModel):
    """Defaults for the Python sync client."""

    api_base: str = "http://localhost:8080"
    timeout_seconds: float | None = None
    """HTTP timeout for workspace calls. None waits indefinitely."""


class DevConfig(BaseModel):
    """Development and testing toggles."""

    database_echo: bool = False
    auto_create_schema: bool = False
    reload: bool = False


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Application settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``DATABASE__URL``, ``SESSION__SECRET``, ``LOG__LEVEL`` and so on.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database: DatabaseConfig = DatabaseConfig()
    app: AppConfig = AppConfig()
    session: SessionConfig = SessionConfig()
    realtime: RealtimeConfig = RealtimeConfig()
    client: ClientConfig = ClientConfig()
    log: LoggingConfig = LoggingConfig()
    dev: DevConfig = DevConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    if settings.session.secret.get_secret_value() == "dev-secret-change-me":
        logger.warning("SESSION__SECRET is the development default; set it")

    return settings
