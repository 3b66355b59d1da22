from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select

from support_pulse.models.support import SyncStatus, Ticket
from support_pulse.sync import watermarks


class SyncStatusMixin:
    async def get_cursor(self, instance_id: str) -> Optional[int]:
        async with self.session_factory() as session:
            return await watermarks.get_watermark(session, instance_id)

    async def get_sync_status(self, instance_id: str) -> Optional[SyncStatus]:
        async with self.session_factory() as session:
            return await watermarks.get_cursor(session, instance_id)

    async def advance_cursor(self, instance_id: str, watermark: int) -> int:
        """Persist the watermark together with a fresh ticket count."""
        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    select(func.count())
                    .select_from(Ticket)
                    .where(Ticket.instance_id == instance_id)
                )
                stored = await watermarks.advance_cursor(
                    session, instance_id, watermark, int(result.scalar_one())
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return stored
