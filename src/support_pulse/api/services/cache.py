from __future__ import annotations

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from redis import asyncio as aioredis

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get a value from the cache."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Set a value in the cache with TTL."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop a key if present."""


class MemoryBackend(CacheBackend):
    """Process-local cache; expiry is measured with the injected clock."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._store: Dict[str, Tuple[float, Any]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if not entry:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._store.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._store[key] = (self._clock() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisBackend(CacheBackend):
    """Redis-backed cache so several API workers share sync results.

    The connection is checked on first use; when Redis cannot be reached the
    backend keeps working from process memory.
    """

    def __init__(self, redis_url: str, clock: Clock = time.monotonic) -> None:
        self._fallback = MemoryBackend(clock=clock)
        self._display_url = redis_url.split("@")[-1]
        self._client = aioredis.from_url(redis_url, decode_responses=True)
        self._available: Optional[bool] = None

    async def _ready(self) -> bool:
        if self._available is None:
            try:
                await self._client.ping()
                self._available = True
                logger.info("Redis cache connected: %s", self._display_url)
            except Exception as e:
                logger.warning("Redis unavailable, falling back to memory: %s", e)
                self._available = False
        return self._available

    async def get(self, key: str) -> Optional[Any]:
        if not await self._ready():
            return await self._fallback.get(key)
        try:
            raw = await self._client.get(key)
        except Exception as e:
            logger.warning("Redis get failed: %s", e)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if not await self._ready():
            await self._fallback.set(key, value, ttl_seconds)
            return
        try:
            await self._client.setex(key, ttl_seconds, json.dumps(value))
        except Exception as e:
            logger.warning("Redis set failed: %s", e)

    async def delete(self, key: str) -> None:
        if not await self._ready():
            await self._fallback.delete(key)
            return
        try:
            await self._client.delete(key)
        except Exception as e:
            logger.warning("Redis delete failed: %s", e)


class TTLCache:
    """Cache with configurable backend (memory or Redis)."""

    def __init__(
        self,
        ttl_seconds: int,
        backend: Optional[CacheBackend] = None,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._backend = backend or MemoryBackend()

    async def get(self, key: str) -> Optional[Any]:
        if self.ttl_seconds <= 0:
            return None
        return await self._backend.get(key)

    async def set(self, key: str, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        await self._backend.set(key, value, self.ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._backend.delete(key)


def sync_cache_key(instance_id: str, start_time: int) -> str:
    return f"support_pulse:sync:{instance_id}:{int(start_time)}"


def create_cache(
    ttl_seconds: int,
    redis_url: Optional[str] = None,
    clock: Clock = time.monotonic,
) -> TTLCache:
    """Build a TTLCache, using Redis when REDIS_URL is set or passed."""
    url = redis_url or os.getenv("REDIS_URL")
    if url:
        backend: CacheBackend = RedisBackend(url, clock=clock)
    else:
        backend = MemoryBackend(clock=clock)
    return TTLCache(ttl_seconds=ttl_seconds, backend=backend)
