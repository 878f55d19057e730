from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from ride_estimator.core.enums import VehicleType
from ride_estimator.core.exceptions import AppError, BackendUnreachable, PartialBatchFailure
from ride_estimator.schemas.ride import FareEstimate
from ride_estimator.services.backend_client import RideBackendClient
from ride_estimator.services.locations import Location

logger = logging.getLogger(__name__)

KM_PER_DEGREE = 111
MIN_DURATION_MIN = 5
VEHICLE_ORDER: tuple[VehicleType, ...] = tuple(VehicleType)


@dataclass(frozen=True, slots=True)
class FareRate:
    base_fare: str
    per_km_rate: str
    per_minute_rate: str
    duration_factor: float = 1.0
    surge_pricing: str = "1.0"


FALLBACK_RATES: dict[VehicleType, FareRate] = {
    VehicleType.AUTO: FareRate("25", "8", "1.5"),
    VehicleType.BIKE: FareRate("15", "5", "1.0", duration_factor=0.8),
    VehicleType.CYCLE: FareRate("10", "3", "0.5", duration_factor=1.5),
    VehicleType.CAR: FareRate("40", "12", "2.0"),
}


def round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


class LocalFareModel:
    """Deterministic fare table used when the backend cannot price a trip."""

    def __init__(self, rates: dict[VehicleType, FareRate] | None = None) -> None:
        self.rates = rates or FALLBACK_RATES

    @staticmethod
    def distance_km(pickup: Location, dropoff: Location) -> float:
        return math.hypot(dropoff.latitude - pickup.latitude, dropoff.longitude - pickup.longitude) * KM_PER_DEGREE

    @staticmethod
    def baseline_duration_min(distance_km: float) -> int:
        return max(MIN_DURATION_MIN, int(round_half_up(distance_km * 2)))

    def estimate(self, pickup: Location, dropoff: Location, vehicle_type: VehicleType) -> FareEstimate:
        rate = self.rates[vehicle_type]
        distance = self.distance_km(pickup, dropoff)
        baseline = self.baseline_duration_min(distance)
        # every type is priced on the baseline duration; the factor only changes the reported ETA
        fare = float(rate.base_fare) + distance * float(rate.per_km_rate) + baseline * float(rate.per_minute_rate)
        return FareEstimate(
            vehicle_type=vehicle_type,
            estimated_distance_km=distance,
            estimated_duration_min=int(round_half_up(baseline * rate.duration_factor)),
            estimated_fare=round_half_up(fare, 2),
            base_fare=rate.base_fare,
            per_km_rate=rate.per_km_rate,
            per_minute_rate=rate.per_minute_rate,
            surge_pricing=rate.surge_pricing,
        )

    def estimate_all(self, pickup: Location, dropoff: Location) -> dict[VehicleType, FareEstimate]:
        return {vehicle_type: self.estimate(pickup, dropoff, vehicle_type) for vehicle_type in VEHICLE_ORDER}


@dataclass(slots=True)
class FareEstimationBatch:
    estimates: dict[VehicleType, FareEstimate]
    used_fallback: bool = False
    selected: VehicleType | None = None
    failures: dict[VehicleType, str] = field(default_factory=dict)
    notice: AppError | None = None
    generation: int = 0

    def get(self, vehicle_type: VehicleType) -> FareEstimate | None:
        return self.estimates.get(vehicle_type)


def first_priced(estimates: dict[VehicleType, FareEstimate]) -> VehicleType | None:
    return next((vehicle_type for vehicle_type in VEHICLE_ORDER if vehicle_type in estimates), None)


class FareEstimationOrchestrator:
    """Prices a trip for every vehicle type at once.

    The backend is probed first; when it is down, or when every per-type
    request fails, the local fare model prices all types instead. A call that
    is overtaken by a newer one returns ``None``.
    """

    def __init__(self, backend: RideBackendClient, fare_model: LocalFareModel | None = None) -> None:
        self.backend = backend
        self.fare_model = fare_model or LocalFareModel()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> int:
        self._generation += 1
        return self._generation

    def _fallback_batch(
        self,
        pickup: Location,
        dropoff: Location,
        *,
        generation: int,
        notice: AppError,
        failures: dict[VehicleType, str] | None = None,
    ) -> FareEstimationBatch:
        estimates = self.fare_model.estimate_all(pickup, dropoff)
        return FareEstimationBatch(
            estimates=estimates,
            used_fallback=True,
            selected=first_priced(estimates),
            failures=dict(failures or {}),
            notice=notice,
            generation=generation,
        )

    async def estimate(self, pickup: Location, dropoff: Location) -> FareEstimationBatch | None:
        generation = self.invalidate()
        batch = await self._estimate(pickup, dropoff, generation)
        if generation != self._generation:
            logger.info("Discarding stale fare batch", extra={"generation": generation, "current": self._generation})
            return None
        return batch

    async def _estimate(self, pickup: Location, dropoff: Location, generation: int) -> FareEstimationBatch:
        if not await self.backend.is_healthy():
            logger.warning("Backend unreachable, using local fare model")
            return self._fallback_batch(pickup, dropoff, generation=generation, notice=BackendUnreachable())

        results = await asyncio.gather(
            *(self.backend.fare_estimate(pickup, dropoff, vehicle_type) for vehicle_type in VEHICLE_ORDER),
            return_exceptions=True,
        )

        estimates: dict[VehicleType, FareEstimate] = {}
        failures: dict[VehicleType, str] = {}
        for vehicle_type, result in zip(VEHICLE_ORDER, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                failures[vehicle_type] = getattr(result, "message", None) or str(result) or result.__class__.__name__
                logger.warning(
                    "Fare estimate failed",
                    extra={"vehicle_type": vehicle_type.value, "error": failures[vehicle_type]},
                )
                continue
            estimates[vehicle_type] = result

        if not estimates:
            logger.error("All fare estimates failed", extra={"failures": {key.value: value for key, value in failures.items()}})
            return self._fallback_batch(
                pickup,
                dropoff,
                generation=generation,
                notice=BackendUnreachable(
                    "Failed to get fare estimates, showing estimated prices",
                    {"failures": {key.value: value for key, value in failures.items()}},
                ),
                failures=failures,
            )

        notice = PartialBatchFailure([vehicle_type.value for vehicle_type in failures]) if failures else None
        return FareEstimationBatch(
            estimates=estimates,
            used_fallback=False,
            selected=first_priced(estimates),
            failures=failures,
            notice=notice,
            generation=generation,
        )
