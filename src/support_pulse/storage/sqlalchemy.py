from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from support_pulse.models.support import Base

from .mixins import SyncStatusMixin, TicketMixin, UserMixin

logger = logging.getLogger(__name__)


class SupportStore(TicketMixin, UserMixin, SyncStatusMixin):
    """Async ticket mirror backed by SQLAlchemy (SQLite or PostgreSQL)."""

    def __init__(self, conn_string: str, echo: bool = False) -> None:
        engine_kwargs: Dict[str, Any] = {"echo": echo}

        if "sqlite" not in conn_string.lower():
            engine_kwargs.update(
                {
                    "pool_size": 5,
                    "max_overflow": 10,
                    "pool_pre_ping": True,
                    "pool_recycle": 3600,
                }
            )

        self.engine = create_async_engine(conn_string, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False, class_=AsyncSession
        )

    def _insert_for_dialect(self, model: Any):
        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            return sqlite_insert(model)
        if dialect in ("postgres", "postgresql"):
            return pg_insert(model)
        raise ValueError(f"Unsupported SQL dialect for upserts: {dialect}")

    async def _upsert_many(
        self,
        model: Any,
        rows: List[Dict[str, Any]],
        conflict_columns: List[str],
        update_columns: List[str],
        coalesce_columns: Sequence[str] = (),
    ) -> None:
        """INSERT ... ON CONFLICT DO UPDATE for ``rows``, committed as one batch.

        Columns listed in ``coalesce_columns`` keep their stored value when the
        incoming one is NULL.
        """
        if not rows:
            return

        stmt = self._insert_for_dialect(model)
        set_: Dict[str, Any] = {}
        for col in update_columns:
            incoming = getattr(stmt.excluded, col)
            if col in coalesce_columns:
                set_[col] = func.coalesce(incoming, model.c[col])
            else:
                set_[col] = incoming
        stmt = stmt.on_conflict_do_update(
            index_elements=[model.c[col] for col in conflict_columns],
            set_=set_,
        )
        async with self.session_factory() as session:
            try:
                await session.execute(stmt, rows)
                await session.commit()
            except Exception:
                logger.exception(
                    "Upsert of %d rows into %s failed", len(rows), model.name
                )
                await session.rollback()
                raise

    async def __aenter__(self) -> "SupportStore":
        await self.ensure_tables()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.engine.dispose()

    async def ensure_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
