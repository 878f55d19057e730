from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from ride_estimator.api.deps import get_geocoding_resolver
from ride_estimator.core.config import get_settings
from ride_estimator.core.responses import success_response
from ride_estimator.schemas.location import LocationSchema, LocationSuggestResponse
from ride_estimator.services.geocoding import GeocodingResolver

router = APIRouter(prefix="/locations", tags=["Locations"])
settings = get_settings()


@router.get("/suggest")
async def location_suggest(
    request: Request,
    q: str = Query(min_length=settings.search_min_query_length, max_length=200),
    resolver: GeocodingResolver = Depends(get_geocoding_resolver),
):
    result = await resolver.search(q)
    data = LocationSuggestResponse(
        locations=[LocationSchema.from_location(item) for item in result.locations],
        source=result.source,
        used_fallback=result.used_fallback,
    )
    return success_response(data=data.model_dump(), request=request)


@router.get("/reverse")
async def location_reverse(
    request: Request,
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    resolver: GeocodingResolver = Depends(get_geocoding_resolver),
):
    location = await resolver.reverse(lat, lng)
    return success_response(data=LocationSchema.from_location(location).model_dump(), request=request)


@router.get("/popular")
async def popular_places(
    request: Request,
    city: str | None = Query(default=None, max_length=64),
    resolver: GeocodingResolver = Depends(get_geocoding_resolver),
):
    data = [LocationSchema.from_location(item).model_dump() for item in resolver.popular_places(city)]
    return success_response(data=data, request=request)
