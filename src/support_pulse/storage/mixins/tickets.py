from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import func, select

from support_pulse.models.support import Ticket
from support_pulse.storage.utils import _format_datetime_value, _load_metrics

TICKET_CONFLICT_COLUMNS = ["instance_id", "id"]
# created_at, subject, brand and channel keep their first-seen values
TICKET_UPDATE_COLUMNS = ["status", "updated_at", "metrics_json", "assignee_id"]


def _ticket_row(item: Any) -> Dict[str, Any]:
    if isinstance(item, dict):
        return dict(item)
    return item.to_row()


class TicketMixin:
    async def write_tickets(self, tickets: List[Any]) -> int:
        """Upsert reconciled tickets in one statement; returns rows written."""
        if not tickets:
            return 0
        by_key: Dict[tuple, Dict[str, Any]] = {}
        for item in tickets:
            row = _ticket_row(item)
            by_key[(row["instance_id"], row["id"])] = row
        rows = list(by_key.values())

        await self._upsert_many(
            Ticket.__table__,
            rows,
            conflict_columns=TICKET_CONFLICT_COLUMNS,
            update_columns=TICKET_UPDATE_COLUMNS,
        )
        return len(rows)

    async def count_tickets(self, instance_id: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(Ticket)
                .where(Ticket.instance_id == instance_id)
            )
            return int(result.scalar_one())

    async def get_tickets(self, instance_id: str, limit: int) -> List[Dict[str, Any]]:
        """Newest-created tickets first, with ``metrics`` decoded."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Ticket)
                .where(Ticket.instance_id == instance_id)
                .order_by(Ticket.created_at.desc(), Ticket.id.desc())
                .limit(limit)
            )
            rows = result.scalars().all()
        tickets: List[Dict[str, Any]] = []
        for t in rows:
            tickets.append(
                {
                    "id": t.id,
                    "instance_id": t.instance_id,
                    "subject": t.subject,
                    "status": t.status,
                    "created_at": _format_datetime_value(t.created_at),
                    "updated_at": _format_datetime_value(t.updated_at),
                    "brand_name": t.brand_name,
                    "channel": t.channel,
                    "assignee_id": t.assignee_id,
                    "metrics": _load_metrics(t.metrics_json),
                }
            )
        return tickets
