from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from ride_estimator.api.deps import get_route_resolver
from ride_estimator.core.exceptions import ValidationAppError
from ride_estimator.core.responses import success_response
from ride_estimator.schemas.route import RoutePreviewResponse
from ride_estimator.services.locations import Location, format_coordinates, is_valid_lat_lng
from ride_estimator.services.routing import RouteResolver

router = APIRouter(prefix="/routes", tags=["Routes"])


def _try_parse_coordinates(raw: str) -> Location | None:
    try:
        lat_str, lng_str = raw.split(",", 1)
        lat = float(lat_str.strip())
        lng = float(lng_str.strip())
    except ValueError:
        return None
    if not is_valid_lat_lng(lat, lng):
        return None
    return Location(latitude=lat, longitude=lng, address=format_coordinates(lat, lng))


def _resolve_point(raw: str, field: str) -> Location:
    parsed = _try_parse_coordinates(raw)
    if parsed is None:
        raise ValidationAppError(f"Expected '<lat>,<lng>' for {field}", {"field": field, "value": raw})
    return parsed


@router.get("/preview")
async def route_preview(
    request: Request,
    pickup_raw: str = Query(alias="pickup"),
    dropoff_raw: str = Query(alias="dropoff"),
    resolver: RouteResolver = Depends(get_route_resolver),
):
    pickup = _resolve_point(pickup_raw, "pickup")
    dropoff = _resolve_point(dropoff_raw, "dropoff")

    path = await resolver.route_between(pickup, dropoff)
    data = RoutePreviewResponse(points=path.points, source=path.source, distance_km=round(path.distance_km, 3))
    return success_response(data=data.model_dump(), request=request)
