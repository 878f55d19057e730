from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from ride_estimator.api.deps import get_driver_locator
from ride_estimator.core.enums import VehicleType
from ride_estimator.core.responses import success_response
from ride_estimator.schemas.fare import NearbyDriversResponse
from ride_estimator.services.drivers import DriverLocator
from ride_estimator.services.locations import Location, format_coordinates

router = APIRouter(prefix="/drivers", tags=["Drivers"])


@router.get("/nearby")
async def nearby_drivers(
    request: Request,
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    vehicle_type: VehicleType = Query(),
    radius: float | None = Query(default=None, gt=0, le=50),
    locator: DriverLocator = Depends(get_driver_locator),
):
    location = Location(latitude=lat, longitude=lng, address=format_coordinates(lat, lng))
    result = await locator.nearby(location, vehicle_type, radius_km=radius)
    data = NearbyDriversResponse(drivers=result.drivers, used_fallback=result.used_fallback)
    return success_response(data=data.model_dump(mode="json", by_alias=True), request=request)
