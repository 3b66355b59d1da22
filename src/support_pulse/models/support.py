"""Relational schema for the helpdesk mirror.

- SyncStatus: per-instance watermark of the incremental export
- Ticket: one row per (instance, remote ticket id)
- User: agents and requesters seen by either sync path
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class TicketStatus(str, Enum):
    """Ticket statuses reported by the helpdesk."""

    NEW = "new"
    OPEN = "open"
    PENDING = "pending"
    HOLD = "hold"
    SOLVED = "solved"
    CLOSED = "closed"
    DELETED = "deleted"
    SPAM = "spam"


class SyncStatus(Base):
    """Durable sync cursor for one helpdesk instance.

    ``last_sync_timestamp`` is the incremental export watermark in epoch
    seconds and never decreases.
    """

    __tablename__ = "sync_status"

    instance_id = Column(Text, primary_key=True)
    last_sync_timestamp = Column(BigInteger, nullable=False, default=0)
    last_sync_date = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    ticket_count = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<SyncStatus(instance={self.instance_id!r}, "
            f"watermark={self.last_sync_timestamp}, tickets={self.ticket_count})>"
        )


class Ticket(Base):
    __tablename__ = "tickets"

    instance_id = Column(Text, primary_key=True)
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    subject = Column(Text, nullable=True)
    status = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    brand_name = Column(Text, nullable=False, default="Inconnu")
    channel = Column(Text, nullable=False, default="autre")
    metrics_json = Column(Text, nullable=True, comment="Serialized metric set")
    assignee_id = Column(BigInteger, nullable=True)

    __table_args__ = (
        Index("ix_tickets_instance_created", "instance_id", "created_at"),
    )


class User(Base):
    __tablename__ = "users"

    instance_id = Column(Text, primary_key=True)
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    role = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    photo_url = Column(Text, nullable=True)
