"""Runtime settings for the sync engine, read from environment variables.

Environment Variables:
    SUPPORT_PULSE_MAX_PAGES: Page cap per sync invocation (default 10)
    SUPPORT_PULSE_PAGE_SIZE: Incremental export page-size ceiling (default 1000)
    SUPPORT_PULSE_HTTP_TIMEOUT: Outbound request timeout in seconds (default 30)
    SUPPORT_PULSE_SYNC_CACHE_TTL: Seconds a completed sync result is reused (default 120)
    SUPPORT_PULSE_TICKET_LIMIT: Row cap for ticket reads (default 3000)
    SUPPORT_PULSE_STAFF_ROLES: Comma separated roles for the roster sync
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Tuple

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 10
INCREMENTAL_PAGE_SIZE = 1000
DEFAULT_TICKET_LIMIT = 3000
DEFAULT_SYNC_CACHE_TTL = 120
DEFAULT_STAFF_ROLES: Tuple[str, ...] = ("agent", "admin")


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default
    return max(minimum, value)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class SyncSettings:
    max_pages: int = DEFAULT_MAX_PAGES
    page_size: int = INCREMENTAL_PAGE_SIZE
    http_timeout: float = 30.0
    cache_ttl_seconds: int = DEFAULT_SYNC_CACHE_TTL
    ticket_limit: int = DEFAULT_TICKET_LIMIT
    staff_roles: Tuple[str, ...] = field(default=DEFAULT_STAFF_ROLES)

    @classmethod
    def from_env(cls) -> "SyncSettings":
        roles_raw = os.getenv("SUPPORT_PULSE_STAFF_ROLES", "")
        roles = tuple(r.strip() for r in roles_raw.split(",") if r.strip())
        return cls(
            max_pages=_env_int("SUPPORT_PULSE_MAX_PAGES", DEFAULT_MAX_PAGES, 1),
            page_size=_env_int("SUPPORT_PULSE_PAGE_SIZE", INCREMENTAL_PAGE_SIZE, 1),
            http_timeout=_env_float("SUPPORT_PULSE_HTTP_TIMEOUT", 30.0),
            cache_ttl_seconds=_env_int(
                "SUPPORT_PULSE_SYNC_CACHE_TTL", DEFAULT_SYNC_CACHE_TTL
            ),
            ticket_limit=_env_int("SUPPORT_PULSE_TICKET_LIMIT", DEFAULT_TICKET_LIMIT, 1),
            staff_roles=roles or DEFAULT_STAFF_ROLES,
        )
