from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from support_pulse.analytics.themes import summarize_tickets
from support_pulse.api.utils.logging import sanitize_for_log
from support_pulse.connectors.presence import PresenceUnavailable, fetch_agent_statuses
from support_pulse.sync.orchestrator import DeltaSyncOrchestrator

from .schemas import AgentStatusRequest, StaffSyncRequest, SyncRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["sync"])


def get_orchestrator(request: Request) -> DeltaSyncOrchestrator:
    return request.app.state.orchestrator


def _error(message: Optional[str], status_code: int) -> JSONResponse:
    return JSONResponse({"error": message or "unknown error"}, status_code=status_code)


@router.post("/sync")
async def sync(
    payload: SyncRequest,
    orchestrator: DeltaSyncOrchestrator = Depends(get_orchestrator),
) -> Any:
    result = await orchestrator.run_delta_sync(
        payload.instance_id,
        payload.domain,
        payload.credentials(),
        payload.start_time,
    )
    if result.aborted and result.synced_count == 0:
        return _error(result.error, result.error_status or 502)

    body: Dict[str, Any] = {
        "success": True,
        "synced": result.synced_count,
        "hasMore": result.has_more,
        "last_timestamp": result.last_watermark,
        "pages": result.pages_fetched,
        "cached": result.from_cache,
    }
    if result.error:
        body["error"] = result.error
    return body


@router.post("/sync/staff")
async def sync_staff(
    payload: StaffSyncRequest,
    orchestrator: DeltaSyncOrchestrator = Depends(get_orchestrator),
) -> Any:
    result = await orchestrator.run_staff_sync(
        payload.instance_id,
        payload.domain,
        payload.credentials(),
        roles=payload.roles,
    )
    if not result.success:
        return _error(result.error, result.error_status or 502)
    return {"success": True, "count": result.count}


@router.get("/tickets")
async def get_tickets(
    instance_id: str = Query(alias="instanceId", min_length=1),
    limit: Optional[int] = Query(default=None, ge=1),
    orchestrator: DeltaSyncOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    cap = orchestrator.settings.ticket_limit
    effective = min(limit, cap) if limit else cap
    tickets = await orchestrator.store.get_tickets(instance_id, effective)
    users = await orchestrator.store.get_users(instance_id)
    return {"tickets": tickets, "users": users}


@router.get("/analytics/summary")
async def analytics_summary(
    instance_id: str = Query(alias="instanceId", min_length=1),
    orchestrator: DeltaSyncOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    tickets = await orchestrator.store.get_tickets(
        instance_id, orchestrator.settings.ticket_limit
    )
    users = await orchestrator.store.get_users(instance_id)
    return summarize_tickets(tickets, users)


@router.post("/agents/statuses")
async def get_agent_statuses(
    payload: AgentStatusRequest,
    orchestrator: DeltaSyncOrchestrator = Depends(get_orchestrator),
) -> Any:
    try:
        client = orchestrator.client_factory(payload.domain, payload.credentials())
    except ValueError as exc:
        return _error(str(exc), 400)
    try:
        snapshot = await fetch_agent_statuses(client)
    except PresenceUnavailable as exc:
        logger.warning(
            "No presence endpoint answered for %s", sanitize_for_log(payload.domain)
        )
        return JSONResponse(
            {
                "error": str(exc),
                "attempts": [
                    {"endpoint": endpoint, "error": error}
                    for endpoint, error in exc.attempts
                ],
            },
            status_code=502,
        )
    finally:
        close = getattr(client, "close", None)
        if close is not None:
            await close()
    return snapshot.to_dict()
