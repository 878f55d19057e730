from __future__ import annotations

import asyncio

import pytest

from ride_estimator.core.enums import VehicleType
from ride_estimator.core.exceptions import BackendRequestError
from ride_estimator.schemas.ride import FareEstimate
from ride_estimator.services.fares import (
    FareEstimationOrchestrator,
    LocalFareModel,
    first_priced,
    round_half_up,
)
from ride_estimator.services.locations import Location


def _backend_estimate(vehicle_type: VehicleType, fare: float) -> FareEstimate:
    return FareEstimate(
        vehicle_type=vehicle_type,
        estimated_distance_km=1.6,
        estimated_duration_min=6,
        estimated_fare=fare,
        base_fare="30",
        per_km_rate="9",
        per_minute_rate="1.5",
    )


class FakeBackend:
    def __init__(self, healthy: bool = True, failing: set[VehicleType] | None = None) -> None:
        self.healthy = healthy
        self.failing = failing or set()
        self.health_checks = 0
        self.requests: list[VehicleType] = []
        self.gate: asyncio.Event | None = None

    async def is_healthy(self, *, force: bool = False) -> bool:
        self.health_checks += 1
        return self.healthy

    async def fare_estimate(self, pickup: Location, dropoff: Location, vehicle_type: VehicleType) -> FareEstimate:
        self.requests.append(vehicle_type)
        if self.gate is not None:
            await self.gate.wait()
        if vehicle_type in self.failing:
            raise BackendRequestError(f"backend_http_500:/rides/fare-estimate ({vehicle_type.value})")
        return _backend_estimate(vehicle_type, fare=100.0)


def test_round_half_up_rounds_halves_away_from_zero():
    assert round_half_up(2.5) == 3
    assert round_half_up(7.5) == 8
    assert round_half_up(45.055, 2) == 45.06
    assert round_half_up(0.125, 2) == 0.13


def test_local_model_prices_every_type(pickup, dropoff):
    estimates = LocalFareModel().estimate_all(pickup, dropoff)

    assert list(estimates) == [VehicleType.AUTO, VehicleType.BIKE, VehicleType.CYCLE, VehicleType.CAR]
    assert estimates[VehicleType.AUTO].estimated_distance_km == pytest.approx(1.5698, abs=1e-4)
    expected = {
        VehicleType.AUTO: (45.06, 5),
        VehicleType.BIKE: (27.85, 4),
        VehicleType.CYCLE: (17.21, 8),
        VehicleType.CAR: (68.84, 5),
    }
    for vehicle_type, (fare, duration) in expected.items():
        assert estimates[vehicle_type].estimated_fare == pytest.approx(fare)
        assert estimates[vehicle_type].estimated_duration_min == duration
        assert estimates[vehicle_type].surge_pricing == "1.0"


def test_local_model_enforces_minimum_duration_and_scales_long_trips():
    model = LocalFareModel()
    start = Location(28.6139, 77.2090, "A")

    assert model.baseline_duration_min(0) == 5
    assert model.estimate(start, start, VehicleType.AUTO).estimated_fare == pytest.approx(25 + 5 * 1.5)

    far = Location(28.7139, 77.2090, "B")  # 0.1 degree north, 11.1 km
    car = model.estimate(start, far, VehicleType.CAR)
    assert car.estimated_duration_min == 22
    assert car.estimated_fare == pytest.approx(round(40 + 11.1 * 12 + 22 * 2.0, 2))


def test_local_model_exposes_rate_card_as_strings(pickup, dropoff):
    bike = LocalFareModel().estimate(pickup, dropoff, VehicleType.BIKE)

    assert (bike.base_fare, bike.per_km_rate, bike.per_minute_rate) == ("15", "5", "1.0")


def test_first_priced_follows_vehicle_order():
    assert first_priced({}) is None
    assert first_priced({VehicleType.CAR: object(), VehicleType.BIKE: object()}) is VehicleType.BIKE


@pytest.mark.asyncio
async def test_healthy_backend_prices_all_types(pickup, dropoff):
    backend = FakeBackend()
    orchestrator = FareEstimationOrchestrator(backend)

    batch = await orchestrator.estimate(pickup, dropoff)

    assert batch is not None
    assert batch.used_fallback is False
    assert batch.notice is None
    assert batch.selected is VehicleType.AUTO
    assert sorted(backend.requests, key=lambda item: item.value) == sorted(VehicleType, key=lambda item: item.value)
    assert all(estimate.estimated_fare == 100.0 for estimate in batch.estimates.values())


@pytest.mark.asyncio
async def test_unhealthy_backend_uses_local_model_without_fare_requests(pickup, dropoff):
    backend = FakeBackend(healthy=False)
    orchestrator = FareEstimationOrchestrator(backend)

    batch = await orchestrator.estimate(pickup, dropoff)

    assert backend.requests == []
    assert batch.used_fallback is True
    assert batch.notice.code == "backend_unreachable"
    assert set(batch.estimates) == set(VehicleType)
    assert batch.get(VehicleType.AUTO).estimated_fare == pytest.approx(45.06)
    assert batch.selected is VehicleType.AUTO


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("failing", "selected"),
    [
        ({VehicleType.AUTO, VehicleType.CYCLE}, VehicleType.BIKE),
        ({VehicleType.AUTO, VehicleType.BIKE, VehicleType.CYCLE}, VehicleType.CAR),
    ],
)
async def test_partial_failure_keeps_successful_types_only(pickup, dropoff, failing, selected):
    backend = FakeBackend(failing=failing)
    orchestrator = FareEstimationOrchestrator(backend)

    batch = await orchestrator.estimate(pickup, dropoff)

    assert batch.used_fallback is False
    assert set(batch.estimates) == set(VehicleType) - failing
    assert set(batch.failures) == failing
    assert batch.selected is selected
    assert batch.notice.code == "partial_batch_failure"
    assert batch.notice.details["failed"] == [item.value for item in VehicleType if item in failing]
    assert batch.get(VehicleType.AUTO) is None


@pytest.mark.asyncio
async def test_total_failure_after_healthy_probe_uses_local_model(pickup, dropoff):
    backend = FakeBackend(failing=set(VehicleType))
    orchestrator = FareEstimationOrchestrator(backend)

    batch = await orchestrator.estimate(pickup, dropoff)

    assert batch.used_fallback is True
    assert batch.notice.code == "backend_unreachable"
    assert batch.notice.message == "Failed to get fare estimates, showing estimated prices"
    assert set(batch.failures) == set(VehicleType)
    assert batch.get(VehicleType.CAR).estimated_fare == pytest.approx(68.84)


@pytest.mark.asyncio
async def test_overtaken_estimate_returns_none(pickup, dropoff):
    backend = FakeBackend()
    backend.gate = asyncio.Event()
    orchestrator = FareEstimationOrchestrator(backend)

    first = asyncio.create_task(orchestrator.estimate(pickup, dropoff))
    await asyncio.sleep(0)
    second = asyncio.create_task(orchestrator.estimate(dropoff, pickup))
    await asyncio.sleep(0)
    backend.gate.set()

    assert await first is None
    latest = await second
    assert latest is not None
    assert latest.generation == orchestrator.generation


@pytest.mark.asyncio
async def test_invalidate_discards_in_flight_batch(pickup, dropoff):
    backend = FakeBackend()
    backend.gate = asyncio.Event()
    orchestrator = FareEstimationOrchestrator(backend)

    task = asyncio.create_task(orchestrator.estimate(pickup, dropoff))
    await asyncio.sleep(0)
    orchestrator.invalidate()
    backend.gate.set()

    assert await task is None
