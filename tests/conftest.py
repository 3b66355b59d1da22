from __future__ import annotations

import pytest_asyncio

from support_pulse.storage import SupportStore


@pytest_asyncio.fixture
async def store(tmp_path):
    mirror = SupportStore(f"sqlite+aiosqlite:///{tmp_path / 'mirror.db'}")
    async with mirror:
        yield mirror


@pytest_asyncio.fixture
async def session(store):
    async with store.session_factory() as s:
        yield s
