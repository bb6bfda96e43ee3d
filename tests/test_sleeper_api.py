"""
Tests for the Sleeper upstream client.
"""

import asyncio

import httpx
import pytest

from sleeper_gateway.errors import ErrorCode, GatewayError
from sleeper_gateway.sleeper_api import (
    canonical_sport_to_sleeper, fetch_sleeper_json, raise_for_sleeper_status,
    sleeper_fetch, sleeper_sport_to_canonical,
)


class TestSportMapping:

    def test_canonical_to_sleeper(self):
        assert canonical_sport_to_sleeper("football") == "nfl"
        assert canonical_sport_to_sleeper("basketball") == "nba"

    def test_sleeper_to_canonical(self):
        assert sleeper_sport_to_canonical("nfl") == "football"
        assert sleeper_sport_to_canonical("nba") == "basketball"

    def test_unknown_sport_passes_through(self):
        assert canonical_sport_to_sleeper("baseball") == "baseball"


class TestStatusMapping:
    """Test mapping of upstream status codes onto error codes."""

    @pytest.mark.parametrize("status,code", [
        (404, ErrorCode.SLEEPER_NOT_FOUND),
        (429, ErrorCode.SLEEPER_RATE_LIMIT),
        (400, ErrorCode.SLEEPER_BAD_REQUEST),
        (500, ErrorCode.SLEEPER_API_ERROR),
        (503, ErrorCode.SLEEPER_API_ERROR),
    ])
    def test_error_statuses(self, status, code):
        with pytest.raises(GatewayError) as exc_info:
            raise_for_sleeper_status(httpx.Response(status))
        assert exc_info.value.code == code
        assert exc_info.value.status == status

    def test_other_status_message_carries_status(self):
        with pytest.raises(GatewayError) as exc_info:
            raise_for_sleeper_status(httpx.Response(502))
        assert "502" in str(exc_info.value)

    def test_success_does_not_raise(self):
        raise_for_sleeper_status(httpx.Response(200, json={}))


class TestFetch:
    """Test requests against the fake upstream."""

    @pytest.mark.asyncio
    async def test_fetch_json_sends_fixed_headers(self, sleeper):
        sleeper.add("/league/123", {"league_id": "123"})

        data = await fetch_sleeper_json("/league/123")

        assert data == {"league_id": "123"}
        request = sleeper.calls[0]
        assert str(request.url) == "https://api.sleeper.app/v1/league/123"
        assert request.headers["accept"] == "application/json"
        assert request.headers["user-agent"].startswith("sleeper-gateway/")
        assert "authorization" not in request.headers

    @pytest.mark.asyncio
    async def test_auth_header_forwarded_when_present(self, sleeper):
        sleeper.add("/league/123", {})

        await fetch_sleeper_json("/league/123", auth_header="Bearer abc")

        assert sleeper.calls[0].headers["authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_rate_limit(self, sleeper):
        sleeper.add("/league/123", status=429)

        with pytest.raises(GatewayError) as exc_info:
            await fetch_sleeper_json("/league/123")
        assert exc_info.value.code == ErrorCode.SLEEPER_RATE_LIMIT

    @pytest.mark.asyncio
    async def test_not_found(self, sleeper):
        with pytest.raises(GatewayError) as exc_info:
            await fetch_sleeper_json("/league/missing")
        assert exc_info.value.code == ErrorCode.SLEEPER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_httpx_timeout_maps_to_sleeper_timeout(self, sleeper):
        sleeper.add_raw("/league/123", httpx.ReadTimeout("timed out"))

        with pytest.raises(GatewayError) as exc_info:
            await sleeper_fetch("/league/123")
        assert exc_info.value.code == ErrorCode.SLEEPER_TIMEOUT

    @pytest.mark.asyncio
    async def test_hard_deadline_cancels_slow_request(self, sleeper):
        async def slow(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json={})

        sleeper.add_raw("/league/123", slow)

        with pytest.raises(GatewayError) as exc_info:
            await sleeper_fetch("/league/123", timeout=httpx.Timeout(0.05))
        assert exc_info.value.code == ErrorCode.SLEEPER_TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_error_is_distinct_from_timeout(self, sleeper):
        sleeper.add_raw("/league/123", httpx.ConnectError("refused"))

        with pytest.raises(GatewayError) as exc_info:
            await sleeper_fetch("/league/123")
        assert exc_info.value.code == ErrorCode.SLEEPER_API_ERROR
        assert "Network error" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_json_body(self, sleeper):
        sleeper.add_raw("/league/123", httpx.Response(200, text="<html>"))

        with pytest.raises(GatewayError) as exc_info:
            await fetch_sleeper_json("/league/123")
        assert exc_info.value.code == ErrorCode.SLEEPER_API_ERROR
