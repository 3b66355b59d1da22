from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import select

from support_pulse.models.support import User

USER_CONFLICT_COLUMNS = ["instance_id", "id"]
USER_UPDATE_COLUMNS = ["name", "email", "active", "photo_url"]


class UserMixin:
    async def write_users(self, users: List[Any]) -> int:
        """Upsert users; a missing photo never clears one stored by the roster sync."""
        if not users:
            return 0
        by_key: Dict[tuple, Dict[str, Any]] = {}
        for item in users:
            row = dict(item) if isinstance(item, dict) else item.to_row()
            by_key[(row["instance_id"], row["id"])] = row
        rows = list(by_key.values())

        await self._upsert_many(
            User.__table__,
            rows,
            conflict_columns=USER_CONFLICT_COLUMNS,
            update_columns=USER_UPDATE_COLUMNS,
            coalesce_columns=["photo_url"],
        )
        return len(rows)

    async def get_users(self, instance_id: str) -> List[Dict[str, Any]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(User).where(User.instance_id == instance_id).order_by(User.id)
            )
            rows = result.scalars().all()
        return [
            {
                "id": u.id,
                "instance_id": u.instance_id,
                "name": u.name,
                "email": u.email,
                "role": u.role,
                "active": bool(u.active),
                "photo_url": u.photo_url,
            }
            for u in rows
        ]
