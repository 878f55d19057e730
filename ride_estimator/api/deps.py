from __future__ import annotations

from fastapi import Depends
from redis.asyncio import Redis

from ride_estimator.core.config import get_settings
from ride_estimator.integrations.redis import get_redis
from ride_estimator.services.backend_client import RideBackendClient
from ride_estimator.services.drivers import DriverLocator
from ride_estimator.services.fares import FareEstimationOrchestrator
from ride_estimator.services.geocoding import GeocodingResolver
from ride_estimator.services.routing import RouteResolver


async def get_redis_client() -> Redis:
    return await get_redis()


async def get_geocoding_resolver(redis: Redis = Depends(get_redis_client)) -> GeocodingResolver:
    return GeocodingResolver(redis=redis, settings=get_settings())


async def get_route_resolver() -> RouteResolver:
    return RouteResolver(settings=get_settings())


async def get_backend_client() -> RideBackendClient:
    return RideBackendClient(get_settings())


async def get_fare_orchestrator(
    backend: RideBackendClient = Depends(get_backend_client),
) -> FareEstimationOrchestrator:
    return FareEstimationOrchestrator(backend)


async def get_driver_locator(backend: RideBackendClient = Depends(get_backend_client)) -> DriverLocator:
    return DriverLocator(backend)
