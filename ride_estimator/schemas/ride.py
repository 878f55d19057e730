from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ride_estimator.core.enums import PaymentStatus, RideStatus, VehicleType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FareEstimate(CamelModel):
    vehicle_type: VehicleType
    estimated_distance_km: float = Field(alias="estimatedDistance")
    estimated_duration_min: int = Field(alias="estimatedDuration")
    estimated_fare: float
    base_fare: str
    per_km_rate: str
    per_minute_rate: str
    surge_pricing: str = "1.0"

    @field_validator("base_fare", "per_km_rate", "per_minute_rate", "surge_pricing", mode="before")
    @classmethod
    def decimal_as_string(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("estimated_duration_min", mode="before")
    @classmethod
    def whole_minutes(cls, value: object) -> object:
        if isinstance(value, float):
            return round(value)
        return value


class DriverInfo(CamelModel):
    vehicle_type: VehicleType
    vehicle_model: str
    vehicle_plate: str
    rating: str
    is_verified: bool = False

    @field_validator("rating", mode="before")
    @classmethod
    def rating_as_string(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class DriverProfile(CamelModel):
    full_name: str
    profile_image: str | None = None


class Driver(CamelModel):
    driver_id: str
    latitude: str
    longitude: str
    distance: float
    estimated_arrival: int
    driver_info: DriverInfo
    profile: DriverProfile

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def coordinate_as_string(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class CreateRideData(CamelModel):
    pickup_address: str
    pickup_lat: float
    pickup_lng: float
    dropoff_address: str
    dropoff_lat: float
    dropoff_lng: float
    vehicle_type: VehicleType
    payment_method: str = "cash"
    rider_notes: str | None = None


class RideRequest(CamelModel):
    id: str
    rider_id: str | None = None
    pickup_address: str
    pickup_latitude: str | None = None
    pickup_longitude: str | None = None
    dropoff_address: str
    dropoff_latitude: str | None = None
    dropoff_longitude: str | None = None
    vehicle_type: VehicleType
    estimated_distance: str | None = None
    estimated_duration: int | None = None
    estimated_fare: str | None = None
    status: RideStatus = RideStatus.SEARCHING
    driver_id: str | None = None
    actual_fare: str | None = None
    payment_method: str = "cash"
    payment_status: PaymentStatus = PaymentStatus.PENDING
    rider_notes: str | None = None
    created_at: str | None = None
    accepted_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    cancelled_at: str | None = None
    cancellation_reason: str | None = None

    @field_validator(
        "pickup_latitude",
        "pickup_longitude",
        "dropoff_latitude",
        "dropoff_longitude",
        "estimated_distance",
        "estimated_fare",
        "actual_fare",
        mode="before",
    )
    @classmethod
    def decimal_as_string(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value
