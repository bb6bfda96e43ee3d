"""
Tests for the HTTP surface of the Sleeper gateway.
"""

import uuid
from unittest.mock import AsyncMock

import httpx
import pytest
from starlette.applications import Starlette

from sleeper_gateway.metrics import get_metrics_collector
from sleeper_gateway.models import GatewayEnv
from sleeper_gateway.server import create_app


@pytest.fixture
def app(env):
    return create_app(env)


def client_for(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://gateway")


class TestServerCreation:

    def test_create_app_returns_starlette(self, app):
        assert isinstance(app, Starlette)

    def test_routes_registered(self, app):
        paths = {route.path for route in app.routes}
        assert {"/health", "/execute"} <= paths


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, app):
        async with client_for(app) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "sleeper-client"
        assert data["version"] == "1.0.0"
        assert "timestamp" in data

    @pytest.mark.asyncio
    async def test_health_reports_metrics(self, app, sleeper):
        async with client_for(app) as client:
            await client.post("/execute", json={"tool": "get_league_info", "params": {"sport": "baseball"}})
            response = await client.get("/health")

        counters = response.json()["metrics"]["counters"]
        assert counters["tool_executions_total|sport=baseball|status=failure|tool=get_league_info"] == 1
        assert counters["http_requests_total|method=POST|path=/execute|status_code=200"] == 1


class TestExecute:

    @pytest.mark.asyncio
    async def test_success_echoes_trace_headers(self, app, sleeper):
        sleeper.add("/league/lg1", {"league_id": "lg1", "name": "Test League"})

        async with client_for(app) as client:
            response = await client.post(
                "/execute",
                json={"tool": "get_league_info", "params": {"sport": "football", "league_id": "lg1"}},
                headers={
                    "X-Correlation-ID": "abc-123",
                    "X-Flaim-Eval-Run": "run-7",
                    "X-Flaim-Eval-Trace": "trace-9",
                },
            )

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Test League"
        assert response.headers["x-correlation-id"] == "abc-123"
        assert response.headers["x-flaim-eval-run"] == "run-7"
        assert response.headers["x-flaim-eval-trace"] == "trace-9"

    @pytest.mark.asyncio
    async def test_generates_correlation_id(self, app, sleeper):
        async with client_for(app) as client:
            response = await client.post(
                "/execute", json={"tool": "get_league_info", "params": {"sport": "baseball"}}
            )

        assert response.status_code == 200
        assert response.json()["code"] == "SPORT_NOT_SUPPORTED"
        uuid.UUID(response.headers["x-correlation-id"])
        assert "x-flaim-eval-run" not in response.headers

    @pytest.mark.asyncio
    async def test_failure_envelope_is_http_200(self, app, sleeper):
        sleeper.add("/league/lg1", status=429)

        async with client_for(app) as client:
            response = await client.post(
                "/execute",
                json={"tool": "get_league_info", "params": {"sport": "football", "league_id": "lg1"}},
            )

        assert response.status_code == 200
        assert response.json()["code"] == "SLEEPER_RATE_LIMIT"

    @pytest.mark.asyncio
    async def test_malformed_json_is_500(self, app):
        async with client_for(app) as client:
            response = await client.post(
                "/execute",
                content=b"{not json",
                headers={"Content-Type": "application/json", "X-Correlation-ID": "bad-1"},
            )

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "INTERNAL_ERROR"
        assert response.headers["x-correlation-id"] == "bad-1"

    @pytest.mark.asyncio
    async def test_caller_credentials_not_sent_upstream(self, app, sleeper):
        sleeper.add("/league/lg1", {"league_id": "lg1"})

        async with client_for(app) as client:
            await client.post(
                "/execute",
                json={"tool": "get_league_info", "params": {"sport": "football", "league_id": "lg1"}},
                headers={"Authorization": "Bearer caller-token"},
            )

        assert "authorization" not in sleeper.calls[0].headers

    @pytest.mark.asyncio
    async def test_host_auth_header_forwarded(self, kv, sleeper):
        sleeper.add("/league/lg1", {"league_id": "lg1"})
        app = create_app(GatewayEnv(players_cache=kv, auth_header="Bearer host"))

        async with client_for(app) as client:
            await client.post(
                "/execute",
                json={"tool": "get_league_info", "params": {"sport": "football", "league_id": "lg1"}},
            )

        assert sleeper.calls[0].headers["authorization"] == "Bearer host"


class TestNotFound:

    @pytest.mark.asyncio
    async def test_endpoint_directory(self, app):
        async with client_for(app) as client:
            response = await client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {
            "error": "Endpoint not found",
            "endpoints": {
                "/health": "GET - Health check",
                "/execute": "POST - Execute tool (called by gateway)",
            },
        }

    @pytest.mark.asyncio
    async def test_wrong_method_gets_endpoint_directory(self, app):
        async with client_for(app) as client:
            response = await client.get("/execute")

        assert response.status_code == 404
        assert response.json()["error"] == "Endpoint not found"
        assert "/execute" in response.json()["endpoints"]


class TestMiddleware:

    @pytest.mark.asyncio
    async def test_cors_headers(self, app):
        async with client_for(app) as client:
            response = await client.get("/health", headers={"Origin": "https://example.org"})

        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    async def test_request_metrics(self, app):
        async with client_for(app) as client:
            await client.get("/health")
            await client.get("/missing")

        metrics = get_metrics_collector()
        assert metrics.get_counter("http_requests_total", method="GET", path="/health", status_code="200") == 1
        assert metrics.get_counter("http_errors_total", method="GET", path="/other", status_code="404") == 1


class TestLifespan:

    @pytest.mark.asyncio
    async def test_shutdown_closes_player_cache(self):
        store = AsyncMock()
        app = create_app(GatewayEnv(players_cache=store))

        async with app.router.lifespan_context(app):
            store.close.assert_not_awaited()

        store.close.assert_awaited_once()
