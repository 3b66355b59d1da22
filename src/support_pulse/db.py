"""Database URI resolution for the local mirror.

Environment Variables:
    SUPPORT_PULSE_DB_URI: Connection string for the ticket mirror
    DATABASE_URI / DATABASE_URL: Fallbacks when the above is unset

Without any of these the mirror lives in a SQLite file in the working
directory.
"""

from __future__ import annotations

import os

DEFAULT_SQLITE_URI = "sqlite+aiosqlite:///./support_pulse.db"


def ensure_async_uri(uri: str) -> str:
    """Rewrite sync driver schemes to their async counterparts."""
    if uri.startswith("sqlite://"):
        return uri.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if uri.startswith("postgresql://"):
        return uri.replace("postgresql://", "postgresql+asyncpg://", 1)
    if uri.startswith("postgres://"):
        return uri.replace("postgres://", "postgresql+asyncpg://", 1)
    return uri


def get_database_uri() -> str:
    """Get the mirror connection URI with fallback chain."""
    uri = (
        os.getenv("SUPPORT_PULSE_DB_URI")
        or os.getenv("DATABASE_URI")
        or os.getenv("DATABASE_URL")
    )
    if uri:
        return ensure_async_uri(uri)
    return DEFAULT_SQLITE_URI


def resolve_db_uri(ns) -> str:
    uri = getattr(ns, "db", None)
    if uri:
        return ensure_async_uri(uri)
    return get_database_uri()
