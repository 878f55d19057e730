from __future__ import annotations

import logging
from dataclasses import dataclass

from ride_estimator.core.enums import VehicleType
from ride_estimator.core.exceptions import BackendRequestError
from ride_estimator.schemas.ride import Driver, DriverInfo, DriverProfile
from ride_estimator.services.backend_client import RideBackendClient
from ride_estimator.services.locations import Location

logger = logging.getLogger(__name__)

_PLACEHOLDER_MODELS: dict[VehicleType, tuple[str, str]] = {
    VehicleType.CAR: ("Honda City", "Maruti Swift"),
    VehicleType.AUTO: ("Bajaj Auto", "TVS Auto"),
}
_TWO_WHEELER_MODELS = ("Honda Activa", "Hero Splendor")


@dataclass(slots=True)
class DriverSearchResult:
    drivers: list[Driver]
    used_fallback: bool = False


def placeholder_drivers(location: Location, vehicle_type: VehicleType) -> list[Driver]:
    first_model, second_model = _PLACEHOLDER_MODELS.get(vehicle_type, _TWO_WHEELER_MODELS)
    return [
        Driver(
            driver_id="mock_driver_1",
            latitude=str(location.latitude + 0.01),
            longitude=str(location.longitude + 0.01),
            distance=1.2,
            estimated_arrival=3,
            driver_info=DriverInfo(
                vehicle_type=vehicle_type,
                vehicle_model=first_model,
                vehicle_plate="DL 01 AB 1234",
                rating="4.8",
                is_verified=True,
            ),
            profile=DriverProfile(full_name="Rajesh Kumar"),
        ),
        Driver(
            driver_id="mock_driver_2",
            latitude=str(location.latitude - 0.015),
            longitude=str(location.longitude + 0.008),
            distance=2.1,
            estimated_arrival=5,
            driver_info=DriverInfo(
                vehicle_type=vehicle_type,
                vehicle_model=second_model,
                vehicle_plate="DL 02 CD 5678",
                rating="4.6",
                is_verified=True,
            ),
            profile=DriverProfile(full_name="Amit Singh"),
        ),
    ]


class DriverLocator:
    def __init__(self, backend: RideBackendClient, *, radius_km: float | None = None) -> None:
        self.backend = backend
        self.radius_km = backend.settings.drivers_radius_km if radius_km is None else radius_km

    async def nearby(
        self,
        location: Location,
        vehicle_type: VehicleType,
        radius_km: float | None = None,
    ) -> DriverSearchResult:
        try:
            drivers = await self.backend.available_drivers(
                location.latitude,
                location.longitude,
                vehicle_type,
                radius_km=self.radius_km if radius_km is None else radius_km,
            )
        except BackendRequestError as exc:
            logger.warning(
                "Error fetching drivers, using placeholder drivers",
                extra={"vehicle_type": vehicle_type.value, "error": exc.message},
            )
            return DriverSearchResult(drivers=placeholder_drivers(location, vehicle_type), used_fallback=True)

        logger.info("Found drivers", extra={"vehicle_type": vehicle_type.value, "count": len(drivers)})
        return DriverSearchResult(drivers=drivers)
