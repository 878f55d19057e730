from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import ValidationError

from ride_estimator.core.config import Settings, get_settings
from ride_estimator.core.enums import VehicleType
from ride_estimator.core.exceptions import BackendRequestError
from ride_estimator.schemas.ride import CreateRideData, Driver, FareEstimate, RideRequest
from ride_estimator.services.locations import Location

logger = logging.getLogger(__name__)


class RideBackendClient:
    """HTTP client for the ride backend. Every call is time-bounded; none is retried."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.base_url = self.settings.backend_base_url.rstrip("/")
        self.timeout = self.settings.backend_timeout_sec
        self._api_token = self.settings.backend_api_token
        self._transport = transport
        self._health_cache_ttl_sec = self.settings.health_cache_ttl_sec
        self._health_cached_at: datetime | None = None
        self._health_cached_ok: bool | None = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=self._headers(),
                    json=json_body,
                    params=params,
                )
        except httpx.TimeoutException as exc:
            raise BackendRequestError(f"backend_timeout:{path}", {"error": str(exc)}) from exc
        except httpx.HTTPError as exc:
            raise BackendRequestError(f"backend_network_error:{path}", {"error": str(exc)}) from exc

        if response.status_code >= 400:
            detail = response.text.strip()[:500]
            raise BackendRequestError(
                f"backend_http_{response.status_code}:{path}",
                {"status_code": response.status_code, "detail": detail},
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise BackendRequestError(f"backend_invalid_json:{path}") from exc
        if not isinstance(payload, dict) or "data" not in payload:
            raise BackendRequestError(f"backend_invalid_payload:{path}")
        return payload["data"]

    @staticmethod
    def _pluck(data: Any, key: str, path: str) -> Any:
        if not isinstance(data, dict) or key not in data:
            raise BackendRequestError(f"backend_invalid_payload:{path}", {"missing": key})
        return data[key]

    async def is_healthy(self, *, force: bool = False) -> bool:
        now = datetime.now(timezone.utc)
        if (
            not force
            and self._health_cached_at is not None
            and (now - self._health_cached_at).total_seconds() < self._health_cache_ttl_sec
            and self._health_cached_ok is not None
        ):
            return self._health_cached_ok

        healthy = False
        try:
            async with httpx.AsyncClient(
                timeout=min(self.timeout, self.settings.health_timeout_sec),
                transport=self._transport,
            ) as client:
                response = await client.get(f"{self.base_url}/health", headers=self._headers())
            healthy = response.status_code == 200
            if not healthy:
                logger.error("Backend responded with error", extra={"status_code": response.status_code})
        except httpx.HTTPError as exc:
            logger.error("Backend connection failed", extra={"error": str(exc)})

        self._health_cached_at = now
        self._health_cached_ok = healthy
        return healthy

    async def fare_estimate(self, pickup: Location, dropoff: Location, vehicle_type: VehicleType) -> FareEstimate:
        path = "/rides/fare-estimate"
        data = await self._request(
            "POST",
            path,
            json_body={
                "pickupLat": pickup.latitude,
                "pickupLng": pickup.longitude,
                "dropoffLat": dropoff.latitude,
                "dropoffLng": dropoff.longitude,
                "vehicleType": vehicle_type.value,
            },
        )
        try:
            return FareEstimate.model_validate(data)
        except ValidationError as exc:
            raise BackendRequestError(f"backend_invalid_payload:{path}", {"error": str(exc)}) from exc

    async def available_drivers(
        self,
        lat: float,
        lng: float,
        vehicle_type: VehicleType,
        radius_km: float = 5,
    ) -> list[Driver]:
        path = "/rides/drivers/available"
        data = await self._request(
            "GET",
            path,
            params={"lat": lat, "lng": lng, "vehicleType": vehicle_type.value, "radius": radius_km},
        )
        drivers = self._pluck(data, "drivers", path)
        try:
            return [Driver.model_validate(item) for item in drivers or []]
        except (ValidationError, TypeError) as exc:
            raise BackendRequestError(f"backend_invalid_payload:{path}", {"error": str(exc)}) from exc

    async def create_ride_request(self, ride: CreateRideData) -> RideRequest:
        path = "/rides/request"
        data = await self._request("POST", path, json_body=ride.model_dump(by_alias=True, exclude_none=True, mode="json"))
        return self._validate_ride(self._pluck(data, "rideRequest", path), path)

    async def get_ride_request(self, ride_id: str) -> RideRequest:
        path = f"/rides/request/{ride_id}"
        data = await self._request("GET", path)
        return self._validate_ride(self._pluck(data, "ride", path), path)

    async def cancel_ride_request(self, ride_id: str, reason: str | None = None) -> RideRequest:
        path = f"/rides/request/{ride_id}/cancel"
        data = await self._request("PUT", path, json_body={"reason": reason})
        return self._validate_ride(data, path)

    async def ride_history(self) -> list[RideRequest]:
        path = "/rides/history"
        data = await self._request("GET", path)
        return [self._validate_ride(item, path) for item in self._pluck(data, "rides", path) or []]

    @staticmethod
    def _validate_ride(data: Any, path: str) -> RideRequest:
        try:
            return RideRequest.model_validate(data)
        except ValidationError as exc:
            raise BackendRequestError(f"backend_invalid_payload:{path}", {"error": str(exc)}) from exc
