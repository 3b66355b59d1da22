from __future__ import annotations

from support_pulse.config import DEFAULT_STAFF_ROLES, SyncSettings
from support_pulse.db import DEFAULT_SQLITE_URI, ensure_async_uri, get_database_uri


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SUPPORT_PULSE_MAX_PAGES", "3")
    monkeypatch.setenv("SUPPORT_PULSE_SYNC_CACHE_TTL", "0")
    monkeypatch.setenv("SUPPORT_PULSE_STAFF_ROLES", "agent, ,lead")
    monkeypatch.setenv("SUPPORT_PULSE_HTTP_TIMEOUT", "not-a-number")

    settings = SyncSettings.from_env()

    assert settings.max_pages == 3
    assert settings.cache_ttl_seconds == 0
    assert settings.staff_roles == ("agent", "lead")
    assert settings.http_timeout == 30.0


def test_settings_clamp_and_defaults(monkeypatch):
    monkeypatch.setenv("SUPPORT_PULSE_MAX_PAGES", "0")
    monkeypatch.delenv("SUPPORT_PULSE_STAFF_ROLES", raising=False)

    settings = SyncSettings.from_env()

    assert settings.max_pages == 1
    assert settings.staff_roles == DEFAULT_STAFF_ROLES


def test_database_uri_fallback_chain(monkeypatch):
    for name in ("SUPPORT_PULSE_DB_URI", "DATABASE_URI", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    assert get_database_uri() == DEFAULT_SQLITE_URI

    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db/mirror")
    assert get_database_uri() == "postgresql+asyncpg://u:p@db/mirror"

    monkeypatch.setenv("SUPPORT_PULSE_DB_URI", "sqlite:///x.db")
    assert get_database_uri() == "sqlite+aiosqlite:///x.db"


def test_async_uri_untouched_when_already_async():
    uri = "postgresql+asyncpg://u@h/db"
    assert ensure_async_uri(uri) == uri
