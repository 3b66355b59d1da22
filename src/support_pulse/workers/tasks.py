"""Celery tasks wrapping the sync orchestrator.

- run_instance_sync: one delta sync, re-enqueued while the export has more
- run_staff_sync: roster refresh for one instance
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from support_pulse.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

# The incremental export allows 10 requests a minute per instance.
CHAIN_COUNTDOWN_SECONDS = 6
DEFAULT_MAX_CHAIN = 5


def _orchestrator_for(store):
    from support_pulse.config import SyncSettings
    from support_pulse.sync.orchestrator import DeltaSyncOrchestrator

    return DeltaSyncOrchestrator(store, settings=SyncSettings.from_env())


async def _run_delta(
    instance_id: str, domain: str, email: str, token: str, start_time: int
) -> dict[str, Any]:
    from support_pulse.connectors.zendesk import ZendeskCredentials
    from support_pulse.db import get_database_uri
    from support_pulse.storage import run_with_store

    credentials = ZendeskCredentials(email=email, token=token)

    async def _sync_handler(store):
        return await _orchestrator_for(store).run_delta_sync(
            instance_id, domain, credentials, start_time
        )

    result = await run_with_store(get_database_uri(), _sync_handler)
    return result.to_dict()


async def _run_staff(
    instance_id: str, domain: str, email: str, token: str
) -> dict[str, Any]:
    from support_pulse.connectors.zendesk import ZendeskCredentials
    from support_pulse.db import get_database_uri
    from support_pulse.storage import run_with_store

    credentials = ZendeskCredentials(email=email, token=token)

    async def _staff_handler(store):
        return await _orchestrator_for(store).run_staff_sync(
            instance_id, domain, credentials
        )

    result = await run_with_store(get_database_uri(), _staff_handler)
    return {"count": result.count, "error": result.error}


@celery_app.task(bind=True, max_retries=3, queue="sync")
def run_instance_sync(
    self,
    instance_id: str,
    domain: str,
    email: str,
    token: str,
    start_time: int = 0,
    chain_depth: int = 0,
    max_chain: Optional[int] = None,
) -> dict:
    limit = DEFAULT_MAX_CHAIN if max_chain is None else max_chain
    logger.info(
        "Starting delta sync task: instance_id=%s chain_depth=%d", instance_id, chain_depth
    )
    result = asyncio.run(_run_delta(instance_id, domain, email, token, start_time))

    if result.get("state") == "aborted":
        if result.get("error_status") == 429:
            raise self.retry(countdown=60)
        logger.warning(
            "Delta sync task for %s aborted: %s", instance_id, result.get("error")
        )
        return result

    if result.get("has_more") and chain_depth + 1 < limit:
        self.apply_async(
            kwargs={
                "instance_id": instance_id,
                "domain": domain,
                "email": email,
                "token": token,
                "start_time": start_time,
                "chain_depth": chain_depth + 1,
                "max_chain": limit,
            },
            countdown=CHAIN_COUNTDOWN_SECONDS,
        )
        result["continued"] = True
    return result


@celery_app.task(bind=True, max_retries=3, queue="sync")
def run_staff_sync(self, instance_id: str, domain: str, email: str, token: str) -> dict:
    result = asyncio.run(_run_staff(instance_id, domain, email, token))
    if result.get("error"):
        logger.warning("Staff sync task for %s failed: %s", instance_id, result["error"])
    return result
