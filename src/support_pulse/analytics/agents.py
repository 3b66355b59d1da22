"""Resolved-ticket leaderboard per assignee."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

UNASSIGNED = "Non assigné"
RESOLVED_STATUSES = frozenset({"solved", "closed"})
TOP_AGENTS = 10


def agent_performance(
    tickets: Iterable[Mapping[str, Any]],
    users: Iterable[Mapping[str, Any]] = (),
    limit: int = TOP_AGENTS,
) -> List[Dict[str, Any]]:
    """Count solved or closed tickets per assignee, best first.

    Every assignee seen on a ticket gets an entry, even with zero resolved
    tickets. Names come from ``users``; unknown ids read ``Agent {id}`` and
    tickets without an assignee are grouped under ``Non assigné``. Ties keep
    first-seen order.
    """
    names = {u.get("id"): u.get("name") for u in users if u.get("id") is not None}
    board: Dict[Any, Dict[str, Any]] = {}
    for ticket in tickets:
        key = ticket.get("assignee_id") or UNASSIGNED
        entry = board.get(key)
        if entry is None:
            if key == UNASSIGNED:
                name = UNASSIGNED
            else:
                name = names.get(key) or f"Agent {key}"
            entry = board[key] = {"id": key, "name": name, "solved": 0}
        if ticket.get("status") in RESOLVED_STATUSES:
            entry["solved"] += 1

    ranked = sorted(board.values(), key=lambda e: e["solved"], reverse=True)
    return ranked[:limit]
