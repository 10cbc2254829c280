"""Tests for pydantic-settings configuration."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from diagramsync.config import SessionConfig, Settings, get_settings

if TYPE_CHECKING:
    from pytest import LogCaptureFixture


class TestDefaults:
    """Settings defaults with no environment."""

    def test_database_url_unset(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.database.url is None

    def test_client_timeout_defaults_to_none(self) -> None:
        """Workspace calls wait indefinitely unless configured."""
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.client.timeout_seconds is None

    def test_realtime_requires_auth_and_stays_in_process(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.realtime.require_auth is True
        assert s.realtime.message_queue_url is None

    def test_session_cookie_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.session.cookie_name == "session"
        assert s.session.max_age_seconds == 14 * 24 * 60 * 60


class TestEnvironmentOverrides:
    """Nested env vars use the double-underscore delimiter."""

    def test_database_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE__URL", "sqlite+aiosqlite:///x.db")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.database.url == "sqlite+aiosqlite:///x.db"

    def test_session_secret_is_secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SESSION__SECRET", "s3cret")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.session.secret.get_secret_value() == "s3cret"
        assert "s3cret" not in repr(s.session)

    def test_static_dir_parsed_as_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP__STATIC_DIR", "dist")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.app.static_dir == Path("dist")

    def test_cors_origins_json_list(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP__CORS_ORIGINS", '["http://a.test", "http://b.test"]')
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.app.cors_origins == ["http://a.test", "http://b.test"]

    def test_log_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG__LEVEL", "DEBUG")
        monkeypatch.setenv("LOG__DIRECTORY", "/var/log/diagramsync")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.log.level == "DEBUG"
        assert s.log.directory == Path("/var/log/diagramsync")


class TestBcryptRounds:
    """bcrypt cost must be in the range bcrypt accepts."""

    def test_accepts_minimum(self) -> None:
        assert SessionConfig(bcrypt_rounds=4).bcrypt_rounds == 4

    @pytest.mark.parametrize("rounds", [3, 32])
    def test_rejects_out_of_range(self, rounds: int) -> None:
        with pytest.raises(ValidationError, match="BCRYPT_ROUNDS"):
            SessionConfig(bcrypt_rounds=rounds)


class TestGetSettings:
    """Cached singleton access."""

    def test_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_cache_clear_rereads_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_settings()
        monkeypatch.setenv("APP__PORT", "9999")
        get_settings.cache_clear()
        second = get_settings()
        assert second is not first
        assert second.app.port == 9999

    def test_warns_on_default_secret(self, caplog: LogCaptureFixture) -> None:
        with caplog.at_level("WARNING", logger="diagramsync.config"):
            get_settings()
        assert "SESSION__SECRET" in caplog.text
