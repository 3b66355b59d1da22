from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from support_pulse.db import ensure_async_uri

from .sqlalchemy import SupportStore
from .utils import _format_datetime_value, _load_metrics, _parse_datetime_value

T = TypeVar("T")


def detect_db_type(conn_string: str) -> str:
    """
    Detect database type from connection string.

    :param conn_string: Database connection string.
    :return: 'postgres' or 'sqlite'.
    :raises ValueError: If the scheme is not supported.
    """
    if not conn_string:
        raise ValueError("Connection string is required")

    conn_lower = conn_string.lower()
    if conn_lower.startswith(("postgresql://", "postgres://", "postgresql+asyncpg://")):
        return "postgres"
    if conn_lower.startswith(("sqlite://", "sqlite+aiosqlite://")):
        return "sqlite"

    scheme = conn_string.split("://", 1)[0] if "://" in conn_string else "unknown"
    raise ValueError(
        "Could not detect database type from connection string. "
        f"Supported: postgresql://, postgres://, sqlite://. Got scheme: '{scheme}'"
    )


def create_store(conn_string: str, echo: bool = False) -> SupportStore:
    """Create a SupportStore, normalizing the URI to an async driver."""
    detect_db_type(conn_string)
    return SupportStore(ensure_async_uri(conn_string), echo=echo)


async def run_with_store(db_url: str, handler: Callable[[SupportStore], Awaitable[T]]) -> T:
    """Create a store and run ``handler`` within its context."""
    store = create_store(db_url)
    async with store:
        return await handler(store)


__all__ = [
    "SupportStore",
    "create_store",
    "detect_db_type",
    "run_with_store",
    "_format_datetime_value",
    "_load_metrics",
    "_parse_datetime_value",
]
