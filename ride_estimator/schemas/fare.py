from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from ride_estimator.core.enums import VehicleType
from ride_estimator.schemas.location import LocationSchema
from ride_estimator.schemas.ride import Driver, FareEstimate


class FareEstimateRequest(BaseModel):
    pickup: LocationSchema
    dropoff: LocationSchema


class FareBatchResponse(BaseModel):
    estimates: dict[VehicleType, FareEstimate]
    used_fallback: bool
    selected: VehicleType | None = None
    failures: dict[VehicleType, str] = {}
    notice: dict[str, Any] | None = None


class NearbyDriversResponse(BaseModel):
    drivers: list[Driver]
    used_fallback: bool
