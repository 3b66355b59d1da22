"""Agent presence lookup across the Zendesk endpoints that may expose it.

Which endpoint answers depends on the instance plan (omnichannel routing,
Talk, or neither), so ``fetch_agent_statuses`` walks an ordered strategy list
and keeps the first endpoint whose response one of the typed adapters can
parse. The winning endpoint and the parsed shape are recorded on the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from support_pulse.connectors.exceptions import APIException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentPresence:
    agent_id: int
    status: str
    name: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class PresenceSnapshot:
    endpoint: str
    shape: str
    agents: List[AgentPresence] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "shape": self.shape,
            "agents": [
                {
                    "agent_id": a.agent_id,
                    "status": a.status,
                    "name": a.name,
                    "updated_at": a.updated_at,
                }
                for a in self.agents
            ],
        }


class PresenceUnavailable(Exception):
    """No presence endpoint answered with a parseable payload."""

    def __init__(self, attempts: List[Tuple[str, str]]) -> None:
        super().__init__("No agent presence endpoint succeeded")
        self.attempts = attempts


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_agent_availabilities(payload: Dict[str, Any]) -> Optional[List[AgentPresence]]:
    """JSON:API shape: ``{"data": [{"id", "attributes": {"agent_status": ...}}]}``."""
    data = payload.get("data")
    if not isinstance(data, list):
        return None
    agents: List[AgentPresence] = []
    for item in data:
        if not isinstance(item, dict):
            return None
        attributes = item.get("attributes")
        if not isinstance(attributes, dict):
            return None
        agent_id = _as_int(attributes.get("agent_id", item.get("id")))
        if agent_id is None:
            return None
        status = attributes.get("agent_status")
        if isinstance(status, dict):
            status = status.get("name")
        agents.append(
            AgentPresence(
                agent_id=agent_id,
                status=str(status or "unknown").lower(),
                updated_at=attributes.get("updated_at"),
            )
        )
    return agents


def parse_voice_activity(payload: Dict[str, Any]) -> Optional[List[AgentPresence]]:
    """Talk shape: ``{"agents_activity": [{"agent_id", "name", "status"}]}``."""
    rows = payload.get("agents_activity")
    if not isinstance(rows, list):
        return None
    agents: List[AgentPresence] = []
    for row in rows:
        if not isinstance(row, dict):
            return None
        agent_id = _as_int(row.get("agent_id"))
        if agent_id is None:
            return None
        status = row.get("status") or row.get("agent_state") or "unknown"
        agents.append(
            AgentPresence(
                agent_id=agent_id,
                status=str(status).lower(),
                name=row.get("name"),
                updated_at=row.get("updated_at"),
            )
        )
    return agents


def parse_user_roster(payload: Dict[str, Any]) -> Optional[List[AgentPresence]]:
    """Last resort: the roster only tells active from suspended accounts."""
    users = payload.get("users")
    if not isinstance(users, list):
        return None
    agents: List[AgentPresence] = []
    for user in users:
        if not isinstance(user, dict):
            return None
        agent_id = _as_int(user.get("id"))
        if agent_id is None:
            return None
        agents.append(
            AgentPresence(
                agent_id=agent_id,
                status="active" if user.get("active", True) else "inactive",
                name=user.get("name"),
                updated_at=user.get("updated_at"),
            )
        )
    return agents


PresenceAdapter = Callable[[Dict[str, Any]], Optional[List[AgentPresence]]]


@dataclass(frozen=True)
class PresenceStrategy:
    shape: str
    path: str
    adapter: PresenceAdapter
    params: Tuple[Tuple[str, Any], ...] = ()


DEFAULT_PRESENCE_STRATEGIES: Tuple[PresenceStrategy, ...] = (
    PresenceStrategy(
        shape="agent_availabilities",
        path="/api/v2/agent_availabilities",
        adapter=parse_agent_availabilities,
    ),
    PresenceStrategy(
        shape="voice_agents_activity",
        path="/api/v2/channels/voice/stats/agents_activity.json",
        adapter=parse_voice_activity,
    ),
    PresenceStrategy(
        shape="user_roster",
        path="/api/v2/users.json",
        adapter=parse_user_roster,
        params=(("role[]", "agent"), ("role[]", "admin")),
    ),
)


async def fetch_agent_statuses(
    client: Any,
    strategies: Sequence[PresenceStrategy] = DEFAULT_PRESENCE_STRATEGIES,
) -> PresenceSnapshot:
    """Return the first presence snapshot any strategy can produce.

    ``client`` must expose ``async get(path, params=None) -> dict``.
    Raises PresenceUnavailable listing every attempt when all fail.
    """
    attempts: List[Tuple[str, str]] = []
    for strategy in strategies:
        try:
            payload = await client.get(strategy.path, params=list(strategy.params) or None)
        except APIException as exc:
            logger.info("Presence endpoint %s failed: %s", strategy.path, exc)
            attempts.append((strategy.path, str(exc)))
            continue

        agents = strategy.adapter(payload) if isinstance(payload, dict) else None
        if agents is None:
            attempts.append((strategy.path, f"unrecognized {strategy.shape} payload"))
            continue
        return PresenceSnapshot(endpoint=strategy.path, shape=strategy.shape, agents=agents)

    raise PresenceUnavailable(attempts)
