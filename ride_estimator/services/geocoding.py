from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

import httpx
from redis.asyncio import Redis

from ride_estimator.core.config import Settings, get_settings
from ride_estimator.core.exceptions import GeolocationTimeout, PermissionDenied
from ride_estimator.services.locations import Location, format_coordinates, safe_float
from ride_estimator.services.places import KnownPlacesProvider, PopularPlacesProvider, popular_places
from ride_estimator.services.providers import HttpJsonProvider, Provider, ProviderChain

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReverseRequest:
    lat: float
    lng: float


@dataclass(slots=True)
class ForwardGeocodeResult:
    locations: list[Location]
    source: str
    used_fallback: bool


@dataclass(slots=True)
class DevicePosition:
    latitude: float
    longitude: float
    accuracy: float | None = None


class PositionSource(Protocol):
    """Device geolocation capability. Implementations raise PermissionDenied or GeolocationTimeout."""

    async def current_position(
        self, *, high_accuracy: bool, timeout_sec: float, maximum_age_sec: float
    ) -> DevicePosition: ...

    def watch(
        self, *, high_accuracy: bool, timeout_sec: float, maximum_age_sec: float
    ) -> AsyncIterator[DevicePosition]: ...


class NominatimSearchProvider(HttpJsonProvider[str, list[Location]]):
    name = "nominatim"

    def __init__(
        self,
        base_url: str,
        *,
        country_codes: list[str] | None = None,
        limit: int = 5,
        **kwargs,
    ) -> None:
        super().__init__(base_url, **kwargs)
        self.country_codes = country_codes or []
        self.limit = limit

    async def resolve(self, request: str) -> list[Location]:
        params = {
            "q": request,
            "format": "json",
            "limit": self.limit,
            "addressdetails": 1,
        }
        if self.country_codes:
            params["countrycodes"] = ",".join(self.country_codes)
        payload = await self._get_json("/search", params=params)
        if not isinstance(payload, list):
            return []

        result: list[Location] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            lat = safe_float(item.get("lat"))
            lng = safe_float(item.get("lon"))
            display_name = str(item.get("display_name") or "").strip()
            if lat is None or lng is None or not display_name:
                continue
            result.append(Location(latitude=lat, longitude=lng, address=display_name))
        return result


class PhotonSearchProvider(HttpJsonProvider[str, list[Location]]):
    name = "photon"

    def __init__(self, base_url: str, *, limit: int = 5, language: str = "en", **kwargs) -> None:
        super().__init__(base_url, **kwargs)
        self.limit = limit
        self.language = language

    @staticmethod
    def _label(properties: dict) -> str:
        parts = [str(properties.get("name") or "").strip()]
        for key in ("city", "country"):
            value = str(properties.get(key) or "").strip()
            if value:
                parts.append(value)
        return ", ".join(part for part in parts if part)

    async def resolve(self, request: str) -> list[Location]:
        payload = await self._get_json("/api/", params={"q": request, "limit": self.limit, "lang": self.language})
        features = payload.get("features") if isinstance(payload, dict) else None
        if not isinstance(features, list):
            return []

        result: list[Location] = []
        for feature in features:
            if not isinstance(feature, dict):
                continue
            coordinates = (feature.get("geometry") or {}).get("coordinates")
            if not isinstance(coordinates, list) or len(coordinates) < 2:
                continue
            lng = safe_float(coordinates[0])
            lat = safe_float(coordinates[1])
            label = self._label(feature.get("properties") or {})
            if lat is None or lng is None or not label:
                continue
            result.append(Location(latitude=lat, longitude=lng, address=label))
        return result


class BigDataCloudReverseProvider(HttpJsonProvider[ReverseRequest, str]):
    name = "bigdatacloud"

    def __init__(self, base_url: str, *, language: str = "en", **kwargs) -> None:
        super().__init__(base_url, **kwargs)
        self.language = language

    async def resolve(self, request: ReverseRequest) -> str:
        payload = await self._get_json(
            "/data/reverse-geocode-client",
            params={"latitude": request.lat, "longitude": request.lng, "localityLanguage": self.language},
        )
        if not isinstance(payload, dict):
            return ""

        locality = payload.get("locality")
        if locality and locality != "null":
            parts = [locality]
            city = payload.get("city")
            if city and city != locality:
                parts.append(city)
            for key in ("principalSubdivision", "countryName"):
                if payload.get(key):
                    parts.append(payload[key])
            return ", ".join(str(part) for part in parts)
        return str(payload.get("display_name") or "").strip()


class NominatimReverseProvider(HttpJsonProvider[ReverseRequest, str]):
    name = "nominatim_reverse"

    @staticmethod
    def _compose_address(address: dict) -> str:
        parts: list[str] = []
        road = address.get("road")
        if address.get("house_number") and road:
            parts.append(f"{address['house_number']} {road}")
        elif road:
            parts.append(road)
        if address.get("suburb"):
            parts.append(address["suburb"])
        locality = address.get("city") or address.get("town") or address.get("village")
        if locality:
            parts.append(locality)
        for key in ("state", "country"):
            if address.get(key):
                parts.append(address[key])
        return ", ".join(str(part) for part in parts)

    async def resolve(self, request: ReverseRequest) -> str:
        payload = await self._get_json(
            "/reverse",
            params={"format": "json", "lat": request.lat, "lon": request.lng, "zoom": 18, "addressdetails": 1},
        )
        if not isinstance(payload, dict):
            return ""
        if payload.get("display_name"):
            return str(payload["display_name"])
        if isinstance(payload.get("address"), dict):
            return self._compose_address(payload["address"])
        return ""


class CoordinateLabelProvider(Provider[ReverseRequest, str]):
    name = "coordinates"

    async def resolve(self, request: ReverseRequest) -> str:
        return format_coordinates(request.lat, request.lng)


class GeocodingResolver:
    """Forward and reverse geocoding over provider chains. No public method raises."""

    def __init__(
        self,
        *,
        forward_chain: ProviderChain[str, list[Location]] | None = None,
        reverse_chain: ProviderChain[ReverseRequest, str] | None = None,
        position_source: PositionSource | None = None,
        redis: Redis | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.redis = redis
        self.position_source = position_source
        self.forward_chain = forward_chain or self._default_forward_chain(transport)
        self.reverse_chain = reverse_chain or self._default_reverse_chain(transport)

    def _http_kwargs(self, transport: httpx.AsyncBaseTransport | None) -> dict:
        return {
            "timeout_sec": self.settings.provider_timeout_sec,
            "user_agent": self.settings.user_agent,
            "transport": transport,
        }

    def _default_forward_chain(self, transport: httpx.AsyncBaseTransport | None) -> ProviderChain[str, list[Location]]:
        settings = self.settings
        return ProviderChain(
            "forward_geocode",
            [
                NominatimSearchProvider(
                    settings.nominatim_base_url,
                    country_codes=settings.nominatim_country_codes,
                    limit=settings.geocode_result_limit,
                    **self._http_kwargs(transport),
                ),
                PhotonSearchProvider(
                    settings.photon_base_url,
                    limit=settings.geocode_result_limit,
                    language=settings.geocode_language,
                    **self._http_kwargs(transport),
                ),
                KnownPlacesProvider(settings.popular_places_city),
            ],
            terminal=PopularPlacesProvider(settings.popular_places_city),
            timeout_sec=settings.provider_timeout_sec,
        )

    def _default_reverse_chain(self, transport: httpx.AsyncBaseTransport | None) -> ProviderChain[ReverseRequest, str]:
        settings = self.settings
        return ProviderChain(
            "reverse_geocode",
            [
                BigDataCloudReverseProvider(
                    settings.bigdatacloud_base_url,
                    language=settings.geocode_language,
                    **self._http_kwargs(transport),
                ),
                NominatimReverseProvider(settings.nominatim_base_url, **self._http_kwargs(transport)),
            ],
            terminal=CoordinateLabelProvider(),
            timeout_sec=settings.provider_timeout_sec,
            is_empty=lambda label: not label or not label.strip(),
        )

    @property
    def default_location(self) -> Location:
        return Location(
            latitude=self.settings.default_latitude,
            longitude=self.settings.default_longitude,
            address=self.settings.default_address,
        )

    @staticmethod
    def _normalize_text(value: str) -> str:
        return " ".join(value.strip().lower().split())

    @staticmethod
    def _normalize_coords(lat: float, lng: float) -> tuple[float, float]:
        return round(lat, 5), round(lng, 5)

    async def _cache_get(self, key: str) -> str | None:
        if self.redis is None:
            return None
        try:
            value = await self.redis.get(key)
        except Exception as exc:
            logger.warning("Geocode cache read failed", extra={"key": key, "error": str(exc)})
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def _cache_set(self, key: str, value: str) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.setex(key, self.settings.geocode_cache_ttl_sec, value)
        except Exception as exc:
            logger.warning("Geocode cache write failed", extra={"key": key, "error": str(exc)})

    def popular_places(self, city: str | None = None) -> list[Location]:
        return popular_places(city or self.settings.popular_places_city)

    async def search(self, address: str) -> ForwardGeocodeResult:
        normalized = self._normalize_text(address)
        key = f"geocode:forward:{normalized}"
        cached = await self._cache_get(key)
        if cached:
            try:
                locations = [Location.from_dict(item) for item in json.loads(cached)]
            except (ValueError, TypeError):
                logger.warning("Discarding malformed geocode cache entry", extra={"key": key})
            else:
                return ForwardGeocodeResult(locations=locations, source="cache", used_fallback=False)

        outcome = await self.forward_chain.execute(address.strip())
        if not outcome.exhausted:
            await self._cache_set(key, json.dumps([item.to_dict() for item in outcome.value]))
        return ForwardGeocodeResult(
            locations=list(outcome.value),
            source=outcome.provider,
            used_fallback=outcome.exhausted,
        )

    async def forward(self, address: str) -> list[Location]:
        return (await self.search(address)).locations

    async def reverse(self, lat: float, lng: float) -> Location:
        norm_lat, norm_lng = self._normalize_coords(lat, lng)
        key = f"geocode:reverse:{norm_lat},{norm_lng}"
        cached = await self._cache_get(key)
        if cached:
            return Location(latitude=lat, longitude=lng, address=cached)

        outcome = await self.reverse_chain.execute(ReverseRequest(lat=lat, lng=lng))
        if not outcome.exhausted:
            await self._cache_set(key, outcome.value)
        return Location(latitude=lat, longitude=lng, address=outcome.value)

    async def current_device_position(self) -> Location:
        if self.position_source is None:
            logger.info("Geolocation is not available, using default location")
            return self.default_location

        timeout_sec = self.settings.geolocation_timeout_sec
        try:
            # the source gets its own timeout; the outer one guards sources that ignore it
            async with asyncio.timeout(timeout_sec + 1):
                position = await self.position_source.current_position(
                    high_accuracy=True,
                    timeout_sec=timeout_sec,
                    maximum_age_sec=self.settings.geolocation_maximum_age_sec,
                )
        except (PermissionDenied, GeolocationTimeout) as exc:
            logger.warning("Geolocation failed, using default location", extra={"error": exc.code})
            return self.default_location
        except TimeoutError:
            logger.warning("Geolocation failed, using default location", extra={"error": "geolocation_timeout"})
            return self.default_location
        except Exception as exc:
            logger.warning("Geolocation failed, using default location", extra={"error": str(exc)})
            return self.default_location

        return await self.reverse(position.latitude, position.longitude)

    async def watch_position(self) -> AsyncIterator[Location]:
        if self.position_source is None:
            logger.warning("Geolocation is not available, position watch not started")
            return

        stream = self.position_source.watch(
            high_accuracy=True,
            timeout_sec=self.settings.watch_timeout_sec,
            maximum_age_sec=self.settings.watch_maximum_age_sec,
        )
        try:
            async for position in stream:
                yield await self.reverse(position.latitude, position.longitude)
        except (PermissionDenied, GeolocationTimeout) as exc:
            logger.error("Location watch error", extra={"error": exc.code})
        except Exception as exc:
            logger.error("Location watch error", extra={"error": str(exc)})
