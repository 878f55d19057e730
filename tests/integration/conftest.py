from __future__ import annotations

from collections.abc import Callable

import fakeredis.aioredis
import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from ride_estimator.api import deps
from ride_estimator.main import app
from ride_estimator.services.backend_client import RideBackendClient
from ride_estimator.services.geocoding import GeocodingResolver
from ride_estimator.services.routing import RouteResolver

Responder = Callable[[httpx.Request], httpx.Response]


class UpstreamStub:
    """Answers every outbound provider and backend call; unknown routes get a 503."""

    def __init__(self) -> None:
        self.responders: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def set(self, host: str, path: str, responder: Responder) -> None:
        self.responders[(host, path)] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for (host, path), responder in self.responders.items():
            if request.url.host == host and request.url.path.startswith(path):
                return responder(request)
        return httpx.Response(503)


@pytest.fixture()
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture()
async def app_client(settings, upstream: UpstreamStub):
    transport = httpx.MockTransport(upstream.handler)
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)

    async def override_redis():
        return redis

    async def override_geocoding():
        return GeocodingResolver(redis=redis, settings=settings, transport=transport)

    async def override_routes():
        return RouteResolver(settings=settings, transport=transport)

    async def override_backend():
        return RideBackendClient(settings, transport=transport)

    app.dependency_overrides[deps.get_redis_client] = override_redis
    app.dependency_overrides[deps.get_geocoding_resolver] = override_geocoding
    app.dependency_overrides[deps.get_route_resolver] = override_routes
    app.dependency_overrides[deps.get_backend_client] = override_backend

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    await redis.aclose()
