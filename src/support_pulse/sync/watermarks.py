from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from support_pulse.models.support import SyncStatus

logger = logging.getLogger(__name__)


async def get_cursor(session: AsyncSession, instance_id: str) -> SyncStatus | None:
    return await session.get(SyncStatus, instance_id)


async def get_watermark(session: AsyncSession, instance_id: str) -> int | None:
    row = await get_cursor(session, instance_id)
    if row is None:
        return None
    return int(row.last_sync_timestamp)


async def advance_cursor(
    session: AsyncSession,
    instance_id: str,
    watermark: int,
    ticket_count: int,
) -> int:
    """Record ``watermark`` for ``instance_id`` and return the stored value.

    The stored watermark never moves backwards; a smaller value only refreshes
    the display date and the cached ticket count.
    """
    now = datetime.now(timezone.utc)
    row = await get_cursor(session, instance_id)
    if row is None:
        row = SyncStatus(
            instance_id=instance_id,
            last_sync_timestamp=int(watermark),
            last_sync_date=now,
            ticket_count=ticket_count,
        )
        session.add(row)
    else:
        current = int(row.last_sync_timestamp or 0)
        if watermark < current:
            logger.warning(
                "Refusing to move cursor for %s backwards (%d < %d)",
                instance_id,
                watermark,
                current,
            )
        row.last_sync_timestamp = max(current, int(watermark))
        row.last_sync_date = now
        row.ticket_count = ticket_count
    await session.flush()
    return int(row.last_sync_timestamp)
