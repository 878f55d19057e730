from __future__ import annotations

import asyncio
import logging

from ride_estimator.core.enums import VehicleType
from ride_estimator.core.exceptions import BackendUnreachable, ValidationAppError
from ride_estimator.schemas.ride import CreateRideData, Driver, RideRequest
from ride_estimator.services.backend_client import RideBackendClient
from ride_estimator.services.drivers import DriverLocator, DriverSearchResult
from ride_estimator.services.fares import FareEstimationBatch, FareEstimationOrchestrator
from ride_estimator.services.locations import Location
from ride_estimator.services.routing import RoutePath, RouteResolver

logger = logging.getLogger(__name__)


class BookingSession:
    """Rider booking flow: pickup/dropoff -> fares + route -> vehicle -> drivers -> ride request."""

    def __init__(
        self,
        backend: RideBackendClient,
        routes: RouteResolver,
        *,
        fares: FareEstimationOrchestrator | None = None,
        drivers: DriverLocator | None = None,
    ) -> None:
        self.backend = backend
        self.routes = routes
        self.fares = fares or FareEstimationOrchestrator(backend)
        self.driver_locator = drivers or DriverLocator(backend)

        self.pickup: Location | None = None
        self.dropoff: Location | None = None
        self.fare_batch: FareEstimationBatch | None = None
        self.selected_vehicle: VehicleType | None = None
        self.drivers: list[Driver] = []
        self.drivers_fallback = False
        self.route: RoutePath | None = None

    @property
    def degraded(self) -> bool:
        return bool(self.fare_batch and self.fare_batch.used_fallback) or self.drivers_fallback

    def _clear_trip(self) -> None:
        self.fares.invalidate()
        self.fare_batch = None
        self.selected_vehicle = None
        self.drivers = []
        self.drivers_fallback = False
        self.route = None

    async def set_pickup(self, location: Location | None) -> None:
        self.pickup = location
        await self._refresh()

    async def set_dropoff(self, location: Location | None) -> None:
        self.dropoff = location
        await self._refresh()

    async def _refresh(self) -> None:
        self._clear_trip()
        if self.pickup is None or self.dropoff is None:
            return

        pickup, dropoff = self.pickup, self.dropoff
        batch, route = await asyncio.gather(
            self.fares.estimate(pickup, dropoff),
            self.routes.route_between(pickup, dropoff),
        )
        if batch is None or pickup is not self.pickup or dropoff is not self.dropoff:
            # superseded by a newer pickup/dropoff while in flight
            return

        self.fare_batch = batch
        self.route = route
        if batch.notice is not None:
            logger.warning("Fare estimation degraded", extra={"code": batch.notice.code, "notice": batch.notice.message})
        if batch.selected is not None:
            await self.select_vehicle(batch.selected)

    async def select_vehicle(self, vehicle_type: VehicleType) -> DriverSearchResult | None:
        self.selected_vehicle = vehicle_type
        self.drivers = []
        self.drivers_fallback = False
        if self.pickup is None:
            return None

        result = await self.driver_locator.nearby(self.pickup, vehicle_type)
        if self.selected_vehicle != vehicle_type:
            return None
        self.drivers = result.drivers
        self.drivers_fallback = result.used_fallback
        return result

    async def book(self, payment_method: str = "cash", notes: str | None = None) -> RideRequest:
        if self.pickup is None or self.dropoff is None or self.selected_vehicle is None:
            raise ValidationAppError(
                "Please select pickup, dropoff locations and vehicle type.",
                {
                    "pickup": self.pickup is not None,
                    "dropoff": self.dropoff is not None,
                    "vehicle_type": self.selected_vehicle is not None,
                },
            )
        if not await self.backend.is_healthy():
            raise BackendUnreachable("Ride backend is unreachable, booking is unavailable")

        ride = CreateRideData(
            pickup_address=self.pickup.address,
            pickup_lat=self.pickup.latitude,
            pickup_lng=self.pickup.longitude,
            dropoff_address=self.dropoff.address,
            dropoff_lat=self.dropoff.latitude,
            dropoff_lng=self.dropoff.longitude,
            vehicle_type=self.selected_vehicle,
            payment_method=payment_method,
            rider_notes=notes or None,
        )
        ride_request = await self.backend.create_ride_request(ride)
        logger.info("Ride request created", extra={"ride_id": ride_request.id, "vehicle_type": ride_request.vehicle_type.value})
        return ride_request
