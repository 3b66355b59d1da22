"""End-to-end delta sync: cursor → pages → reconcile → upsert → cursor.

The cursor is only advanced after the page that produced it has been
committed, so an interrupted sync resumes from the last durable watermark and
re-fetches at most one page of already-written (idempotently re-written)
rows. Failures after the first committed page never raise: the result carries
``state=ABORTED`` and an ``error`` string next to whatever was synchronized.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from support_pulse.api.services.cache import TTLCache, create_cache, sync_cache_key
from support_pulse.api.utils.logging import sanitize_for_log
from support_pulse.config import SyncSettings
from support_pulse.connectors.exceptions import ConnectorException
from support_pulse.connectors.zendesk import ZendeskClient, ZendeskCredentials
from support_pulse.sync.locks import InstanceLockRegistry
from support_pulse.sync.paginator import IncrementalPaginator
from support_pulse.sync.reconcile import reconcile_page, reconcile_users

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, ZendeskCredentials], Any]


class SyncState(str, Enum):
    START = "start"
    FETCHING_PAGE = "fetching_page"
    RECONCILING = "reconciling"
    WRITING = "writing"
    CURSOR_ADVANCED = "cursor_advanced"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class DeltaSyncResult:
    instance_id: str
    synced_count: int = 0
    users_count: int = 0
    has_more: bool = False
    last_watermark: Optional[int] = None
    pages_fetched: int = 0
    state: SyncState = SyncState.START
    error: Optional[str] = None
    error_status: Optional[int] = None
    from_cache: bool = False

    @property
    def aborted(self) -> bool:
        return self.state == SyncState.ABORTED

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeltaSyncResult":
        payload = dict(data)
        payload["state"] = SyncState(payload.get("state", SyncState.DONE.value))
        return cls(**payload)


@dataclass
class StaffSyncResult:
    instance_id: str
    count: int = 0
    error: Optional[str] = None
    error_status: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.error is None


def _default_client_factory(timeout: float) -> ClientFactory:
    def factory(domain: str, credentials: ZendeskCredentials) -> ZendeskClient:
        return ZendeskClient(domain, credentials, timeout=timeout)

    return factory


async def _close_client(client: Any) -> None:
    close = getattr(client, "close", None)
    if close is not None:
        await close()


class DeltaSyncOrchestrator:
    """
    Runs delta and roster syncs for helpdesk instances against one store.

    :param store: An entered SupportStore (or anything with the same methods).
    :param settings: Page cap, page size, timeouts and cache TTL.
    :param client_factory: Builds a remote client for ``(domain, credentials)``.
    :param cache: Result cache keyed by ``(instance_id, start_time)``.
    :param locks: Per-instance advisory locks.
    """

    def __init__(
        self,
        store: Any,
        settings: Optional[SyncSettings] = None,
        client_factory: Optional[ClientFactory] = None,
        cache: Optional[TTLCache] = None,
        locks: Optional[InstanceLockRegistry] = None,
    ) -> None:
        self.store = store
        self.settings = settings or SyncSettings()
        self.client_factory = client_factory or _default_client_factory(
            self.settings.http_timeout
        )
        self.cache = cache or create_cache(self.settings.cache_ttl_seconds)
        self.locks = locks or InstanceLockRegistry()

    async def run_delta_sync(
        self,
        instance_id: str,
        domain: str,
        credentials: ZendeskCredentials,
        fallback_start_time: int,
    ) -> DeltaSyncResult:
        key = sync_cache_key(instance_id, fallback_start_time)
        async with self.locks.hold(instance_id):
            cached = await self.cache.get(key)
            if cached is not None:
                logger.info("Returning cached sync result for %s", instance_id)
                result = DeltaSyncResult.from_dict(cached)
                result.from_cache = True
                return result

            result = await self._run_delta_sync(
                instance_id, domain, credentials, fallback_start_time
            )
            if result.state == SyncState.DONE and not result.has_more:
                await self.cache.set(key, result.to_dict())
            return result

    async def _run_delta_sync(
        self,
        instance_id: str,
        domain: str,
        credentials: ZendeskCredentials,
        fallback_start_time: int,
    ) -> DeltaSyncResult:
        result = DeltaSyncResult(instance_id=instance_id)
        safe_instance = sanitize_for_log(instance_id)

        try:
            stored = await self.store.get_cursor(instance_id)
        except SQLAlchemyError as exc:
            logger.exception("Cursor store unavailable for %s", safe_instance)
            result.state = SyncState.ABORTED
            result.has_more = True
            result.error = f"Cursor store unavailable: {exc}"
            return result

        start_time = stored if stored is not None else int(fallback_start_time)
        result.last_watermark = start_time
        logger.info(
            "Delta sync for %s starting at %d (%s)",
            safe_instance,
            start_time,
            "stored cursor" if stored is not None else "fallback",
        )

        try:
            client = self.client_factory(domain, credentials)
        except ValueError as exc:
            logger.warning(
                "Delta sync for %s rejected: %s", safe_instance, sanitize_for_log(str(exc))
            )
            result.state = SyncState.ABORTED
            result.has_more = True
            result.error = str(exc)
            result.error_status = 400
            return result

        paginator = IncrementalPaginator(
            client,
            max_pages=self.settings.max_pages,
            page_size=self.settings.page_size,
        )
        result.state = SyncState.FETCHING_PAGE
        try:
            async with aclosing(paginator.pages(start_time)) as pages:
                async for page in pages:
                    result.state = SyncState.RECONCILING
                    tickets = reconcile_page(page, instance_id)
                    users = reconcile_users(page.users, instance_id)

                    result.state = SyncState.WRITING
                    result.synced_count += await self.store.write_tickets(tickets)
                    result.users_count += await self.store.write_users(users)

                    if page.end_time is not None:
                        result.last_watermark = await self.store.advance_cursor(
                            instance_id, page.end_time
                        )
                        result.state = SyncState.CURSOR_ADVANCED
                    result.state = SyncState.FETCHING_PAGE
        except ConnectorException as exc:
            logger.warning(
                "Delta sync for %s aborted on remote error after %d tickets: %s",
                safe_instance,
                result.synced_count,
                sanitize_for_log(str(exc)),
            )
            result.state = SyncState.ABORTED
            result.error = str(exc)
            result.error_status = getattr(exc, "status_code", None)
        except SQLAlchemyError as exc:
            logger.error(
                "Delta sync for %s aborted on store error after %d tickets: %s",
                safe_instance,
                result.synced_count,
                exc,
            )
            result.state = SyncState.ABORTED
            result.error = f"Store write failed: {exc}"
        finally:
            await _close_client(client)

        result.pages_fetched = paginator.pages_fetched
        if result.state == SyncState.ABORTED:
            result.has_more = True
        else:
            result.state = SyncState.DONE
            result.has_more = paginator.has_more

        logger.info(
            "Delta sync for %s finished: state=%s synced=%d pages=%d has_more=%s watermark=%s",
            safe_instance,
            result.state.value,
            result.synced_count,
            result.pages_fetched,
            result.has_more,
            result.last_watermark,
        )
        return result

    async def run_staff_sync(
        self,
        instance_id: str,
        domain: str,
        credentials: ZendeskCredentials,
        roles: Optional[Sequence[str]] = None,
    ) -> StaffSyncResult:
        """Single-page roster fetch; upserts users only, never touches the cursor."""
        result = StaffSyncResult(instance_id=instance_id)
        try:
            client = self.client_factory(domain, credentials)
        except ValueError as exc:
            result.error = str(exc)
            result.error_status = 400
            return result

        try:
            raw_users = await client.list_users(roles or self.settings.staff_roles)
            users = reconcile_users(raw_users, instance_id)
            result.count = await self.store.write_users(users)
        except ConnectorException as exc:
            logger.warning(
                "Staff sync for %s failed: %s",
                sanitize_for_log(instance_id),
                sanitize_for_log(str(exc)),
            )
            result.error = str(exc)
            result.error_status = getattr(exc, "status_code", None)
        except SQLAlchemyError as exc:
            logger.error("Staff sync for %s failed to write: %s", instance_id, exc)
            result.error = f"Store write failed: {exc}"
        finally:
            await _close_client(client)
        return result
