"""
Shared fixtures: a fake Sleeper upstream served through httpx.MockTransport.
"""

import json
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import httpx
import pytest

from sleeper_gateway.kv_store import MemoryKVStore
from sleeper_gateway.metrics import reset_metrics_collector
from sleeper_gateway.models import GatewayEnv
from sleeper_gateway.players_cache import clear_in_memory_cache

API_PREFIX = "/v1"


class FakeSleeper:
    """
    Path-keyed canned responses for the Sleeper API.

    A route is either JSON data, an ``httpx.Response``, an exception to raise
    or a callable taking the request.
    """

    def __init__(self):
        self.routes: Dict[str, Any] = {}
        self.calls: List[httpx.Request] = []

    def add(self, path: str, data: Any = None, status: int = 200) -> None:
        if status != 200:
            self.routes[path] = httpx.Response(status)
            return
        # Serialize explicitly so that None goes out as a JSON null body
        self.routes[path] = httpx.Response(
            status, content=json.dumps(data).encode(), headers={"Content-Type": "application/json"}
        )

    def add_raw(self, path: str, route: Any) -> None:
        self.routes[path] = route

    def paths(self) -> List[str]:
        return [self._path(r) for r in self.calls]

    def count(self, path: str) -> int:
        return self.paths().count(path)

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        return path[len(API_PREFIX):] if path.startswith(API_PREFIX) else path

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get(self._path(request))
        if route is None:
            return httpx.Response(404)
        if isinstance(route, BaseException):
            raise route
        if callable(route):
            route = route(request)
            if hasattr(route, "__await__"):
                route = await route
        # Responses are single-use; hand out a fresh copy each call
        return httpx.Response(route.status_code, content=route.content, headers=route.headers)


@pytest.fixture(autouse=True)
def fresh_state():
    clear_in_memory_cache()
    reset_metrics_collector()
    yield
    clear_in_memory_cache()


@pytest.fixture
def sleeper():
    fake = FakeSleeper()

    def client_factory(timeout: Optional[httpx.Timeout] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(fake.handler), timeout=timeout)

    with patch("sleeper_gateway.sleeper_api.create_http_client", side_effect=client_factory):
        yield fake


@pytest.fixture
def kv():
    return MemoryKVStore()


@pytest.fixture
def env(kv):
    return GatewayEnv(players_cache=kv)
