"""
Zendesk Support connector.

Covers the three read paths the mirror needs:
- the incremental ticket export (with side-loaded users, metric sets and brands)
- the staff roster (users filtered by role)
- raw GETs used by the agent presence strategies

Authentication uses an API token over HTTP Basic (``{email}/token:{token}``).
"""

from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import httpx

from support_pulse.api.utils.logging import sanitize_for_log
from support_pulse.config import INCREMENTAL_PAGE_SIZE
from support_pulse.connectors.exceptions import (
    APIException,
    AuthenticationException,
    RateLimitException,
)

logger = logging.getLogger(__name__)

INCREMENTAL_TICKETS_PATH = "/api/v2/incremental/tickets.json"
INCREMENTAL_SIDELOADS = "users,metric_sets,brands"
USERS_PATH = "/api/v2/users.json"

QueryParams = Union[Dict[str, Any], Sequence[Tuple[str, Any]]]


def sanitize_domain(domain: Optional[str]) -> str:
    """Strip scheme and surrounding slashes from a helpdesk domain."""
    if not domain:
        return ""
    clean = re.sub(r"https?://", "", domain, flags=re.IGNORECASE)
    clean = clean.replace("://", "")
    return clean.strip().strip("/").strip()


@dataclass(frozen=True)
class ZendeskCredentials:
    email: str
    token: str

    def __post_init__(self) -> None:
        if not self.email or not self.token:
            raise ValueError("Zendesk credentials require both 'email' and 'token'")

    def authorization_header(self) -> str:
        raw = f"{self.email}/token:{self.token}".encode("utf-8")
        return f"Basic {base64.b64encode(raw).decode('ascii')}"

    def __repr__(self) -> str:
        return f"ZendeskCredentials(email={self.email!r}, token='***')"


def _records(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


@dataclass
class IncrementalPage:
    """One page of the incremental ticket export."""

    tickets: List[Dict[str, Any]] = field(default_factory=list)
    users: List[Dict[str, Any]] = field(default_factory=list)
    brands: List[Dict[str, Any]] = field(default_factory=list)
    metric_sets: List[Dict[str, Any]] = field(default_factory=list)
    end_time: Optional[int] = None
    count: int = 0
    end_of_stream: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IncrementalPage":
        tickets = _records(payload.get("tickets"))
        raw_end = payload.get("end_time")
        try:
            end_time = int(raw_end) if raw_end is not None else None
        except (TypeError, ValueError):
            end_time = None
        raw_count = payload.get("count")
        try:
            count = int(raw_count) if raw_count is not None else len(tickets)
        except (TypeError, ValueError):
            count = len(tickets)
        return cls(
            tickets=tickets,
            users=_records(payload.get("users")),
            brands=_records(payload.get("brands")),
            metric_sets=_records(payload.get("metric_sets")),
            end_time=end_time,
            count=count,
            end_of_stream=bool(payload.get("end_of_stream", False)),
        )

    def has_more(self, page_size: int = INCREMENTAL_PAGE_SIZE) -> bool:
        """True when the export signals another page after this one."""
        if self.end_of_stream or self.end_time is None:
            return False
        return self.count >= page_size


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    retry_after = response.headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        return max(1.0, float(retry_after))
    except (ValueError, TypeError):
        return None


class ZendeskClient:
    """
    Async HTTP client for one Zendesk instance.

    :param domain: Instance domain, e.g. ``acme.zendesk.com`` (scheme optional).
    :param credentials: Agent email and API token.
    :param timeout: Request timeout in seconds.
    :param transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        domain: str,
        credentials: ZendeskCredentials,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.domain = sanitize_domain(domain)
        if not self.domain:
            raise ValueError("Zendesk domain is required")
        self.credentials = credentials
        self.timeout = timeout
        self.base_url = f"https://{self.domain}"
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": self.credentials.authorization_header(),
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ZendeskClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[QueryParams] = None,
    ) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, path, params=params)
        except httpx.RequestError as e:
            raise APIException(f"Request to {self.domain}{path} failed: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationException(
                f"Zendesk rejected credentials ({status}) for {path}",
                status_code=status,
                body=response.text,
            )
        if status == 429:
            retry_after = _parse_retry_after(response)
            wait = f"{retry_after:.0f}s" if retry_after else "a minute"
            raise RateLimitException(
                f"Zendesk API rate limit reached (429), retry in {wait}",
                retry_after_seconds=retry_after,
                body=response.text,
            )
        if status >= 400:
            raise APIException(
                f"HTTP {status}: {response.text[:100]}",
                status_code=status,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise APIException(
                f"Invalid JSON from {path}", status_code=status, body=response.text
            ) from e
        if not isinstance(payload, dict):
            raise APIException(
                f"Unexpected payload from {path}: expected a JSON object, got "
                f"{type(payload).__name__}",
                status_code=status,
                body=response.text,
            )
        return payload

    async def get(self, path: str, params: Optional[QueryParams] = None) -> Dict[str, Any]:
        return await self._request("GET", path, params)

    async def fetch_incremental_page(self, start_time: int) -> IncrementalPage:
        """Fetch one incremental export page starting at ``start_time``."""
        logger.debug(
            "Fetching incremental tickets for %s since %d",
            sanitize_for_log(self.domain),
            start_time,
        )
        payload = await self.get(
            INCREMENTAL_TICKETS_PATH,
            params={"start_time": int(start_time), "include": INCREMENTAL_SIDELOADS},
        )
        return IncrementalPage.from_payload(payload)

    async def list_users(self, roles: Sequence[str]) -> List[Dict[str, Any]]:
        """Single-page roster fetch filtered by role."""
        params = [("role[]", role) for role in roles]
        payload = await self.get(USERS_PATH, params=params)
        return _records(payload.get("users"))
