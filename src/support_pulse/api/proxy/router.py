"""Pass-through proxy used by the browser for calls it cannot make directly.

Authentication is attached from whichever credential headers the caller
sent: helpdesk email/token become HTTP Basic, an AI key becomes a Bearer
token (and wins when both are present). Upstream status and body are
returned verbatim.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx
from fastapi import APIRouter, Query, Request, Response

from support_pulse.api.utils.logging import sanitize_for_log
from support_pulse.connectors.zendesk import ZendeskCredentials

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["proxy"])

PROXY_TIMEOUT_SECONDS = 60.0


def build_upstream_headers(request: Request) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    zd_email = request.headers.get("X-Zendesk-Email")
    zd_token = request.headers.get("X-Zendesk-Token")
    if zd_email and zd_token:
        headers["Authorization"] = ZendeskCredentials(
            email=zd_email, token=zd_token
        ).authorization_header()

    ai_key = request.headers.get("X-OpenAI-Key")
    if ai_key:
        headers["Authorization"] = f"Bearer {ai_key}"

    content_type = request.headers.get("Content-Type")
    if content_type:
        headers["Content-Type"] = content_type
    return headers


@router.api_route("/proxy", methods=["GET", "POST", "PUT", "DELETE"])
async def proxy(
    request: Request,
    url: Optional[str] = Query(default=None),
) -> Response:
    if not url:
        return Response("Missing target URL", status_code=400)
    if not url.startswith(("http://", "https://")):
        return Response("Target URL must be http(s)", status_code=400)

    body = await request.body() if request.method in ("POST", "PUT") else None
    transport = getattr(request.app.state, "proxy_transport", None)

    async with httpx.AsyncClient(
        timeout=PROXY_TIMEOUT_SECONDS, transport=transport
    ) as client:
        try:
            upstream = await client.request(
                request.method,
                url,
                headers=build_upstream_headers(request),
                content=body,
            )
        except httpx.RequestError as exc:
            logger.warning(
                "Proxy request to %s failed: %s", sanitize_for_log(url, 200), exc
            )
            return Response(f"Upstream request failed: {exc}", status_code=502)

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type="application/json",
    )
