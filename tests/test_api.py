from __future__ import annotations

import httpx
import pytest
import pytest_asyncio
from fakes import FakeIncrementalSource, make_page, make_tickets

from support_pulse.api.main import create_app
from support_pulse.api.services.cache import TTLCache
from support_pulse.config import SyncSettings
from support_pulse.connectors.exceptions import APIException, AuthenticationException
from support_pulse.sync.orchestrator import DeltaSyncOrchestrator

T0 = 1_700_000_000
T1 = T0 + 3600
ACCESS = {"domain": "acme.zendesk.com", "email": "ops@acme.test", "token": "tok-1"}


class PresenceSource(FakeIncrementalSource):
    def __init__(self, responses):
        super().__init__()
        self.responses = responses

    async def get(self, path, params=None):
        response = self.responses.get(path, APIException("HTTP 404: missing", 404))
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def sources():
    return []


@pytest_asyncio.fixture
async def app(store, sources):
    def client_factory(domain, credentials):
        source = sources.pop(0)
        if isinstance(source, Exception):
            raise source
        return source

    orchestrator = DeltaSyncOrchestrator(
        store,
        settings=SyncSettings(ticket_limit=50),
        client_factory=client_factory,
        cache=TTLCache(0),
    )
    return create_app(orchestrator=orchestrator)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestSyncEndpoint:
    @pytest.mark.asyncio
    async def test_sync_reports_progress(self, client, sources):
        sources.append(
            FakeIncrementalSource([make_page(make_tickets(1, 3), end_time=T1)])
        )
        resp = await client.post(
            "/api/v1/sync", json={**ACCESS, "instanceId": "acme", "startTime": T0}
        )

        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "synced": 3,
            "hasMore": False,
            "last_timestamp": T1,
            "pages": 1,
            "cached": False,
        }

    @pytest.mark.asyncio
    async def test_failure_before_any_write_maps_status(self, client, sources):
        sources.append(
            FakeIncrementalSource([AuthenticationException("HTTP 401", status_code=401)])
        )
        resp = await client.post("/api/v1/sync", json={**ACCESS, "instanceId": "acme"})

        assert resp.status_code == 401
        assert "401" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_partial_failure_is_success_with_error(self, client, sources):
        sources.append(
            FakeIncrementalSource(
                [
                    make_page(make_tickets(1, 2), end_time=T1, count=1000),
                    APIException("HTTP 500: boom", status_code=500),
                ]
            )
        )
        resp = await client.post("/api/v1/sync", json={**ACCESS, "instanceId": "acme"})

        body = resp.json()
        assert resp.status_code == 200
        assert body["synced"] == 2
        assert body["hasMore"] is True
        assert "500" in body["error"]

    @pytest.mark.asyncio
    async def test_unusable_domain_is_bad_request(self, client, sources):
        sources.append(ValueError("Zendesk domain is required"))
        resp = await client.post(
            "/api/v1/sync", json={**ACCESS, "domain": "https://", "instanceId": "acme"}
        )

        assert resp.status_code == 400
        assert resp.json() == {"error": "Zendesk domain is required"}

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, client):
        resp = await client.post("/api/v1/sync", json={"domain": "x"})
        assert resp.status_code == 422


class TestReadEndpoints:
    @pytest.mark.asyncio
    async def test_tickets_and_users(self, client, sources):
        sources.append(
            FakeIncrementalSource(
                [
                    make_page(
                        make_tickets(1, 3),
                        end_time=T1,
                        users=[{"id": 9, "name": "Ana", "role": "agent"}],
                    )
                ]
            )
        )
        await client.post("/api/v1/sync", json={**ACCESS, "instanceId": "acme"})

        resp = await client.get("/api/v1/tickets", params={"instanceId": "acme", "limit": 2})

        body = resp.json()
        assert resp.status_code == 200
        assert len(body["tickets"]) == 2
        assert body["tickets"][0]["brand_name"] == "Acme"
        assert [u["name"] for u in body["users"]] == ["Ana"]

    @pytest.mark.asyncio
    async def test_tickets_requires_instance(self, client):
        resp = await client.get("/api/v1/tickets")
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_instance_is_empty(self, client):
        resp = await client.get("/api/v1/tickets", params={"instanceId": "nobody"})
        assert resp.json() == {"tickets": [], "users": []}

    @pytest.mark.asyncio
    async def test_analytics_summary(self, client, sources):
        raw = make_tickets(1, 2)
        raw[0]["subject"] = "Facture impayée"
        raw[0]["status"] = "solved"
        for ticket in raw:
            ticket["assignee_id"] = 7
        page = make_page(raw, end_time=T1, users=[{"id": 7, "name": "Ana", "role": "agent"}])
        sources.append(FakeIncrementalSource([page]))
        await client.post("/api/v1/sync", json={**ACCESS, "instanceId": "acme"})

        resp = await client.get("/api/v1/analytics/summary", params={"instanceId": "acme"})

        body = resp.json()
        assert body["total"] == 2
        assert body["themes"]["Facturation"] == 1
        assert body["by_channel"] == {"email": 2}
        assert body["agents"] == [{"id": 7, "name": "Ana", "solved": 1}]

    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json() == {"status": "ok"}


class TestStaffAndPresence:
    @pytest.mark.asyncio
    async def test_staff_sync(self, client, sources):
        sources.append(FakeIncrementalSource(users=[{"id": 1, "name": "Ana"}]))
        resp = await client.post(
            "/api/v1/sync/staff", json={**ACCESS, "instanceId": "acme", "roles": ["agent"]}
        )
        assert resp.json() == {"success": True, "count": 1}

    @pytest.mark.asyncio
    async def test_agent_statuses(self, client, sources):
        presence = PresenceSource(
            {
                "/api/v2/channels/voice/stats/agents_activity.json": {
                    "agents_activity": [{"agent_id": 4, "name": "Bo", "status": "online"}]
                }
            }
        )
        sources.append(presence)
        resp = await client.post("/api/v1/agents/statuses", json=ACCESS)

        body = resp.json()
        assert body["shape"] == "voice_agents_activity"
        assert body["agents"][0]["agent_id"] == 4
        assert presence.closed is True

    @pytest.mark.asyncio
    async def test_agent_statuses_unusable_domain(self, client, sources):
        sources.append(ValueError("Zendesk domain is required"))
        resp = await client.post(
            "/api/v1/agents/statuses", json={**ACCESS, "domain": "https://"}
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_agent_statuses_unavailable(self, client, sources):
        sources.append(PresenceSource({}))
        resp = await client.post("/api/v1/agents/statuses", json=ACCESS)

        assert resp.status_code == 502
        assert len(resp.json()["attempts"]) == 3


class TestProxy:
    @pytest.mark.asyncio
    async def test_forwards_with_basic_auth(self, app, client):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["url"] = str(request.url)
            return httpx.Response(201, json={"ok": True})

        app.state.proxy_transport = httpx.MockTransport(handler)
        resp = await client.post(
            "/api/v1/proxy",
            params={"url": "https://acme.zendesk.com/api/v2/tickets.json"},
            headers={"X-Zendesk-Email": "ops@acme.test", "X-Zendesk-Token": "tok"},
            json={"ticket": {}},
        )

        assert resp.status_code == 201
        assert resp.json() == {"ok": True}
        assert seen["auth"].startswith("Basic ")
        assert seen["url"] == "https://acme.zendesk.com/api/v2/tickets.json"

    @pytest.mark.asyncio
    async def test_ai_key_takes_precedence(self, app, client):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={})

        app.state.proxy_transport = httpx.MockTransport(handler)
        await client.get(
            "/api/v1/proxy",
            params={"url": "https://api.example.test/v1/models"},
            headers={
                "X-Zendesk-Email": "a@b.c",
                "X-Zendesk-Token": "t",
                "X-OpenAI-Key": "sk-test",
            },
        )

        assert seen["auth"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_missing_or_invalid_url(self, client):
        assert (await client.get("/api/v1/proxy")).status_code == 400
        resp = await client.get("/api/v1/proxy", params={"url": "file:///etc/passwd"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_upstream_failure_is_502(self, app, client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        app.state.proxy_transport = httpx.MockTransport(handler)
        resp = await client.get("/api/v1/proxy", params={"url": "https://down.test/"})
        assert resp.status_code == 502
