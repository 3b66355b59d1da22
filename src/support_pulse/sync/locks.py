"""Advisory per-instance locks around the delta sync.

Two overlapping syncs for one instance would read the same cursor and race
on advancing it. Calls for the same ``instance_id`` are serialized here;
different instances never block each other. The registry is process-local.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class InstanceLockRegistry:
    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, instance_id: str) -> asyncio.Lock:
        lock = self._locks.get(instance_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[instance_id] = lock
        return lock

    def is_locked(self, instance_id: str) -> bool:
        lock = self._locks.get(instance_id)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, instance_id: str) -> AsyncIterator[None]:
        async with self.lock_for(instance_id):
            yield
