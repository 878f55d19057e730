from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from ride_estimator.core.config import Settings, get_settings
from ride_estimator.services.locations import Location, Point, haversine_km, lnglat_pairs_to_points
from ride_estimator.services.providers import HttpJsonProvider, Provider, ProviderChain

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RouteRequest:
    pickup: Location
    dropoff: Location


@dataclass(slots=True)
class RoutePath:
    points: list[Point]
    source: str

    @property
    def distance_km(self) -> float:
        return sum(haversine_km(a, b) for a, b in zip(self.points, self.points[1:]))


def _has_path(points: list[Point]) -> bool:
    return len(points) >= 2


class OSRMRouteProvider(HttpJsonProvider[RouteRequest, list[Point]]):
    name = "osrm"

    def __init__(self, base_url: str, *, profile: str = "driving", **kwargs) -> None:
        super().__init__(base_url, **kwargs)
        self.profile = profile

    async def resolve(self, request: RouteRequest) -> list[Point]:
        pickup, dropoff = request.pickup, request.dropoff
        # OSRM takes lng,lat
        coordinates = f"{pickup.longitude},{pickup.latitude};{dropoff.longitude},{dropoff.latitude}"
        payload = await self._get_json(
            f"/route/v1/{self.profile}/{coordinates}",
            params={"overview": "full", "geometries": "geojson"},
        )
        if not isinstance(payload, dict) or payload.get("code", "Ok") != "Ok":
            return []
        routes = payload.get("routes")
        if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
            return []
        geometry = routes[0].get("geometry") or {}
        return lnglat_pairs_to_points(geometry.get("coordinates") if isinstance(geometry, dict) else None)


class GraphHopperRouteProvider(HttpJsonProvider[RouteRequest, list[Point]]):
    name = "graphhopper"

    def __init__(self, base_url: str, api_key: str, *, vehicle: str = "car", **kwargs) -> None:
        super().__init__(base_url, **kwargs)
        self.api_key = api_key
        self.vehicle = vehicle

    async def resolve(self, request: RouteRequest) -> list[Point]:
        pickup, dropoff = request.pickup, request.dropoff
        params = [
            ("point", f"{pickup.latitude},{pickup.longitude}"),
            ("point", f"{dropoff.latitude},{dropoff.longitude}"),
            ("vehicle", self.vehicle),
            ("locale", "en"),
            ("calc_points", "true"),
            ("points_encoded", "false"),
            ("key", self.api_key),
        ]
        payload = await self._get_json("/api/1/route", params=params)
        paths = payload.get("paths") if isinstance(payload, dict) else None
        if not isinstance(paths, list) or not paths or not isinstance(paths[0], dict):
            return []
        points = paths[0].get("points") or {}
        return lnglat_pairs_to_points(points.get("coordinates") if isinstance(points, dict) else None)


class StraightLineRouteProvider(Provider[RouteRequest, list[Point]]):
    """Evenly interpolated points on the straight line between pickup and dropoff. Never fails."""

    name = "direct"

    def __init__(self, steps: int = 10) -> None:
        self.steps = max(1, steps)

    async def resolve(self, request: RouteRequest) -> list[Point]:
        return interpolate_line(request.pickup.point, request.dropoff.point, self.steps)


def interpolate_line(start: Point, end: Point, steps: int) -> list[Point]:
    d_lat = end[0] - start[0]
    d_lng = end[1] - start[1]
    points = [start]
    for i in range(1, steps):
        ratio = i / steps
        points.append((start[0] + d_lat * ratio, start[1] + d_lng * ratio))
    # exact endpoints, no float drift on the last point
    points.append(end)
    return points


class RouteResolver:
    def __init__(
        self,
        chain: ProviderChain[RouteRequest, list[Point]] | None = None,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.chain = chain or self._default_chain(transport)

    def _default_chain(self, transport: httpx.AsyncBaseTransport | None) -> ProviderChain[RouteRequest, list[Point]]:
        settings = self.settings
        http_kwargs = {
            "timeout_sec": settings.provider_timeout_sec,
            "user_agent": settings.user_agent,
            "transport": transport,
        }
        providers: list[Provider[RouteRequest, list[Point]]] = [OSRMRouteProvider(settings.osrm_base_url, **http_kwargs)]
        if settings.graphhopper_api_key:
            providers.append(
                GraphHopperRouteProvider(settings.graphhopper_base_url, settings.graphhopper_api_key, **http_kwargs)
            )
        return ProviderChain(
            "route",
            providers,
            terminal=StraightLineRouteProvider(settings.route_interpolation_steps),
            timeout_sec=settings.provider_timeout_sec,
            is_empty=lambda points: not _has_path(points),
        )

    async def route_between(self, pickup: Location, dropoff: Location) -> RoutePath:
        outcome = await self.chain.execute(RouteRequest(pickup=pickup, dropoff=dropoff))
        logger.info(
            "Route resolved",
            extra={"source": outcome.provider, "points": len(outcome.value), "fallback": outcome.exhausted},
        )
        return RoutePath(points=list(outcome.value), source=outcome.provider)
