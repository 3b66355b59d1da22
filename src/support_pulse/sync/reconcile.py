"""Join one export page's side-loaded entities onto its tickets.

Brands and metric sets only live for the duration of a page: their lookups
are rebuilt from each payload and folded into the ticket rows, which are the
only thing persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from support_pulse.connectors.zendesk import IncrementalPage
from support_pulse.models.support import TicketStatus
from support_pulse.storage.utils import _dump_metrics, _parse_datetime_value

UNKNOWN_BRAND = "Inconnu"
DEFAULT_CHANNEL = "autre"
KNOWN_STATUSES = frozenset(s.value for s in TicketStatus)

logger = logging.getLogger(__name__)


@dataclass
class ReconciledTicket:
    id: int
    instance_id: str
    subject: Optional[str]
    status: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    brand_name: str
    channel: str
    metrics: Optional[Dict[str, Any]]
    assignee_id: Optional[int]

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "instance_id": self.instance_id,
            "subject": self.subject,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "brand_name": self.brand_name,
            "channel": self.channel,
            "metrics_json": _dump_metrics(self.metrics),
            "assignee_id": self.assignee_id,
        }


@dataclass
class ReconciledUser:
    id: int
    instance_id: str
    name: Optional[str]
    email: Optional[str]
    role: Optional[str]
    active: bool
    photo_url: Optional[str]

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "instance_id": self.instance_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "active": self.active,
            "photo_url": self.photo_url,
        }


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def build_brand_map(brands: Iterable[Dict[str, Any]]) -> Dict[int, str]:
    brand_map: Dict[int, str] = {}
    for brand in brands:
        brand_id = _as_int(brand.get("id"))
        if brand_id is not None and brand.get("name"):
            brand_map[brand_id] = str(brand["name"])
    return brand_map


def build_metric_map(metric_sets: Iterable[Dict[str, Any]]) -> Dict[int, Dict[str, Any]]:
    metric_map: Dict[int, Dict[str, Any]] = {}
    for metric_set in metric_sets:
        ticket_id = _as_int(metric_set.get("ticket_id"))
        if ticket_id is not None:
            metric_map[ticket_id] = metric_set
    return metric_map


def resolve_channel(ticket: Dict[str, Any]) -> str:
    via = ticket.get("via")
    if isinstance(via, dict) and via.get("channel"):
        return str(via["channel"])
    return DEFAULT_CHANNEL


def reconcile_tickets(
    tickets: Iterable[Dict[str, Any]],
    brands: Iterable[Dict[str, Any]],
    metric_sets: Iterable[Dict[str, Any]],
    instance_id: str,
) -> List[ReconciledTicket]:
    """Enrich raw tickets with brand names, channels and metric sets.

    Tickets without a usable id are skipped. A ticket id repeated within the
    batch keeps its last occurrence, in first-seen order.
    """
    brand_map = build_brand_map(brands)
    metric_map = build_metric_map(metric_sets)

    by_id: Dict[int, ReconciledTicket] = {}
    for raw in tickets:
        ticket_id = _as_int(raw.get("id"))
        if ticket_id is None:
            continue
        status = raw.get("status")
        if isinstance(status, str) and status not in KNOWN_STATUSES:
            logger.debug("Keeping unrecognized status %r on ticket %d", status, ticket_id)
        by_id[ticket_id] = ReconciledTicket(
            id=ticket_id,
            instance_id=instance_id,
            subject=raw.get("subject"),
            status=status,
            created_at=_parse_datetime_value(raw.get("created_at")),
            updated_at=_parse_datetime_value(raw.get("updated_at")),
            brand_name=brand_map.get(_as_int(raw.get("brand_id")), UNKNOWN_BRAND),
            channel=resolve_channel(raw),
            metrics=metric_map.get(ticket_id),
            assignee_id=_as_int(raw.get("assignee_id")),
        )
    return list(by_id.values())


def reconcile_users(
    users: Iterable[Dict[str, Any]], instance_id: str
) -> List[ReconciledUser]:
    by_id: Dict[int, ReconciledUser] = {}
    for raw in users:
        user_id = _as_int(raw.get("id"))
        if user_id is None:
            continue
        photo = raw.get("photo")
        photo_url = photo.get("content_url") if isinstance(photo, dict) else None
        active = raw.get("active")
        by_id[user_id] = ReconciledUser(
            id=user_id,
            instance_id=instance_id,
            name=raw.get("name"),
            email=raw.get("email"),
            role=raw.get("role"),
            active=True if active is None else bool(active),
            photo_url=photo_url,
        )
    return list(by_id.values())


def reconcile_page(page: IncrementalPage, instance_id: str) -> List[ReconciledTicket]:
    return reconcile_tickets(page.tickets, page.brands, page.metric_sets, instance_id)
