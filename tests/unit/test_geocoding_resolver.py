from __future__ import annotations

import json

import fakeredis.aioredis
import httpx
import pytest

from ride_estimator.core.exceptions import GeolocationTimeout, PermissionDenied
from ride_estimator.services.geocoding import (
    BigDataCloudReverseProvider,
    CoordinateLabelProvider,
    DevicePosition,
    GeocodingResolver,
    NominatimReverseProvider,
    NominatimSearchProvider,
    PhotonSearchProvider,
    ReverseRequest,
)
from ride_estimator.services.locations import Location
from ride_estimator.services.places import PopularPlacesProvider, popular_places
from ride_estimator.services.providers import Provider, ProviderChain


class CountingSearchProvider(Provider[str, list[Location]]):
    name = "counting"

    def __init__(self, result: list[Location]) -> None:
        self.result = result
        self.calls = 0

    async def resolve(self, request: str) -> list[Location]:
        self.calls += 1
        return list(self.result)


class FakePositionSource:
    def __init__(self, position: DevicePosition | None = None, exc: Exception | None = None) -> None:
        self.position = position
        self.exc = exc
        self.calls: list[dict] = []

    async def current_position(self, *, high_accuracy: bool, timeout_sec: float, maximum_age_sec: float) -> DevicePosition:
        self.calls.append({"high_accuracy": high_accuracy, "timeout_sec": timeout_sec, "maximum_age_sec": maximum_age_sec})
        if self.exc is not None:
            raise self.exc
        return self.position

    async def watch(self, *, high_accuracy: bool, timeout_sec: float, maximum_age_sec: float):
        self.calls.append({"high_accuracy": high_accuracy, "timeout_sec": timeout_sec, "maximum_age_sec": maximum_age_sec})
        yield DevicePosition(28.61, 77.20)
        yield DevicePosition(28.62, 77.21)
        if self.exc is not None:
            raise self.exc


def _routes_transport(routes: dict[str, httpx.Response]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        host = request.url.host
        for prefix, response in routes.items():
            if host.startswith(prefix):
                return response
        return httpx.Response(503)

    return httpx.MockTransport(handler)


NOMINATIM_SEARCH_PAYLOAD = [
    {"lat": "28.6562", "lon": "77.2410", "display_name": "Red Fort, Netaji Subhash Marg, Delhi, India"},
    {"lat": "not-a-number", "lon": "77.0", "display_name": "Broken"},
    {"lat": "28.6129", "lon": "77.2295", "display_name": ""},
]


@pytest.mark.asyncio
async def test_nominatim_search_parses_results_and_skips_malformed_items():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=NOMINATIM_SEARCH_PAYLOAD)

    provider = NominatimSearchProvider(
        "http://nominatim.test",
        country_codes=["in"],
        limit=5,
        user_agent="ride-estimator-tests",
        transport=httpx.MockTransport(handler),
    )

    result = await provider.resolve("red fort")

    assert result == [Location(28.6562, 77.2410, "Red Fort, Netaji Subhash Marg, Delhi, India")]
    assert result[0].latitude == pytest.approx(28.6562)
    request = seen[0]
    assert request.url.path == "/search"
    assert request.url.params["countrycodes"] == "in"
    assert request.url.params["format"] == "json"
    assert request.headers["user-agent"] == "ride-estimator-tests"


@pytest.mark.asyncio
async def test_photon_search_reads_geojson_lng_lat_order():
    payload = {
        "features": [
            {
                "geometry": {"coordinates": [77.2295, 28.6129]},
                "properties": {"name": "India Gate", "city": "New Delhi", "country": "India"},
            },
            {"geometry": {"coordinates": [77.0]}, "properties": {"name": "Too short"}},
        ]
    }
    provider = PhotonSearchProvider(
        "http://photon.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload)),
    )

    result = await provider.resolve("india gate")

    assert len(result) == 1
    assert result[0].address == "India Gate, New Delhi, India"
    assert result[0].point == (28.6129, 77.2295)


@pytest.mark.asyncio
async def test_bigdatacloud_reverse_composes_locality_label():
    payload = {
        "locality": "Connaught Place",
        "city": "New Delhi",
        "principalSubdivision": "Delhi",
        "countryName": "India",
    }
    provider = BigDataCloudReverseProvider(
        "http://bigdatacloud.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload)),
    )

    label = await provider.resolve(ReverseRequest(lat=28.6304, lng=77.2177))

    assert label == "Connaught Place, New Delhi, Delhi, India"


@pytest.mark.asyncio
async def test_nominatim_reverse_composes_address_without_display_name():
    payload = {
        "address": {
            "house_number": "12",
            "road": "Janpath",
            "suburb": "Connaught Place",
            "city": "New Delhi",
            "state": "Delhi",
            "country": "India",
        }
    }
    provider = NominatimReverseProvider(
        "http://nominatim.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload)),
    )

    label = await provider.resolve(ReverseRequest(lat=28.6304, lng=77.2177))

    assert label == "12 Janpath, Connaught Place, New Delhi, Delhi, India"


@pytest.mark.asyncio
async def test_coordinate_label_uses_four_decimals():
    label = await CoordinateLabelProvider().resolve(ReverseRequest(lat=28.61394, lng=77.20902))
    assert label == "28.6139, 77.2090"


@pytest.mark.asyncio
async def test_forward_search_falls_back_from_nominatim_to_photon(settings):
    transport = _routes_transport(
        {
            "nominatim": httpx.Response(500),
            "photon": httpx.Response(
                200,
                json={
                    "features": [
                        {
                            "geometry": {"coordinates": [77.2410, 28.6562]},
                            "properties": {"name": "Red Fort", "city": "Delhi", "country": "India"},
                        }
                    ]
                },
            ),
        }
    )
    resolver = GeocodingResolver(settings=settings, transport=transport)

    result = await resolver.search("Red Fort")

    assert result.source == "photon"
    assert result.used_fallback is False
    assert [item.address for item in result.locations] == ["Red Fort, Delhi, India"]


@pytest.mark.asyncio
async def test_forward_search_uses_offline_gazetteer_when_online_geocoders_fail(settings):
    resolver = GeocodingResolver(settings=settings, transport=_routes_transport({}))

    result = await resolver.search("connaught")

    assert result.source == "known_places"
    assert result.used_fallback is False
    assert result.locations[0].address == "Connaught Place, New Delhi, India"


@pytest.mark.asyncio
async def test_forward_search_returns_popular_places_when_everything_fails(settings):
    resolver = GeocodingResolver(settings=settings, transport=_routes_transport({}))

    result = await resolver.search("zzzz nowhere")

    assert result.used_fallback is True
    assert result.source == "popular_places"
    assert result.locations == popular_places("Delhi")


@pytest.mark.asyncio
async def test_forward_results_are_cached_but_fallbacks_are_not(settings):
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    provider = CountingSearchProvider([Location(28.6562, 77.2410, "Red Fort, Delhi")])
    chain = ProviderChain("forward_geocode", [provider], terminal=PopularPlacesProvider())
    resolver = GeocodingResolver(forward_chain=chain, redis=redis, settings=settings)

    first = await resolver.search("  Red   Fort ")
    second = await resolver.search("red fort")

    assert provider.calls == 1
    assert first.source == "counting"
    assert second.source == "cache"
    assert second.locations == first.locations
    cached = json.loads(await redis.get("geocode:forward:red fort"))
    assert cached == [{"latitude": 28.6562, "longitude": 77.2410, "address": "Red Fort, Delhi"}]

    empty_chain = ProviderChain("forward_geocode", [CountingSearchProvider([])], terminal=PopularPlacesProvider())
    resolver = GeocodingResolver(forward_chain=empty_chain, redis=redis, settings=settings)
    fallback = await resolver.search("unknown place")

    assert fallback.used_fallback is True
    assert await redis.get("geocode:forward:unknown place") is None


@pytest.mark.asyncio
async def test_reverse_falls_back_to_coordinate_label(settings):
    resolver = GeocodingResolver(settings=settings, transport=_routes_transport({}))

    location = await resolver.reverse(28.6139, 77.2090)

    assert location.address == "28.6139, 77.2090"
    assert location.point == (28.6139, 77.2090)


@pytest.mark.asyncio
async def test_reverse_skips_blank_labels(settings):
    transport = _routes_transport(
        {
            "bigdatacloud": httpx.Response(200, json={"locality": "", "display_name": "   "}),
            "nominatim": httpx.Response(200, json={"display_name": "Janpath, New Delhi, India"}),
        }
    )
    resolver = GeocodingResolver(settings=settings, transport=transport)

    location = await resolver.reverse(28.6304, 77.2177)

    assert location.address == "Janpath, New Delhi, India"


@pytest.mark.asyncio
async def test_device_position_is_reverse_geocoded(settings):
    transport = _routes_transport({"bigdatacloud": httpx.Response(200, json={"locality": "Janpath", "countryName": "India"})})
    source = FakePositionSource(position=DevicePosition(28.6304, 77.2177, accuracy=12.0))
    resolver = GeocodingResolver(settings=settings, transport=transport, position_source=source)

    location = await resolver.current_device_position()

    assert location.address == "Janpath, India"
    assert location.point == (28.6304, 77.2177)
    assert source.calls == [{"high_accuracy": True, "timeout_sec": 10.0, "maximum_age_sec": 60.0}]


@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [PermissionDenied(), GeolocationTimeout(), RuntimeError("sensor offline")])
async def test_device_position_errors_fall_back_to_default_location(settings, exc):
    resolver = GeocodingResolver(settings=settings, transport=_routes_transport({}), position_source=FakePositionSource(exc=exc))

    location = await resolver.current_device_position()

    assert location == resolver.default_location
    assert location.address == "New Delhi, India"
    assert location.point == (28.6139, 77.2090)


@pytest.mark.asyncio
async def test_device_position_without_source_uses_default(settings):
    resolver = GeocodingResolver(settings=settings, transport=_routes_transport({}))

    assert await resolver.current_device_position() == resolver.default_location


@pytest.mark.asyncio
async def test_watch_position_yields_reverse_geocoded_updates_until_error(settings):
    source = FakePositionSource(exc=PermissionDenied())
    resolver = GeocodingResolver(settings=settings, transport=_routes_transport({}), position_source=source)

    updates = [location async for location in resolver.watch_position()]

    assert [item.address for item in updates] == ["28.6100, 77.2000", "28.6200, 77.2100"]
    assert source.calls == [{"high_accuracy": True, "timeout_sec": 5.0, "maximum_age_sec": 30.0}]


@pytest.mark.asyncio
async def test_watch_position_without_source_yields_nothing(settings):
    resolver = GeocodingResolver(settings=settings, transport=_routes_transport({}))

    assert [location async for location in resolver.watch_position()] == []


def test_popular_places_unknown_city_defaults_to_delhi(settings):
    resolver = GeocodingResolver(settings=settings, transport=_routes_transport({}))

    assert resolver.popular_places("Atlantis") == popular_places("Delhi")
    assert [item.address for item in resolver.popular_places("Mumbai")][0] == "Mumbai Central"


@pytest.mark.asyncio
async def test_reverse_cache_hit_decodes_bytes_from_redis(settings):
    redis = fakeredis.aioredis.FakeRedis()
    transport = _routes_transport({"bigdatacloud": httpx.Response(200, json={"locality": "Connaught Place", "countryName": "India"})})
    await GeocodingResolver(settings=settings, redis=redis, transport=transport).reverse(28.6315, 77.2167)

    resolver = GeocodingResolver(settings=settings, redis=redis, transport=_routes_transport({}))
    location = await resolver.reverse(28.6315, 77.2167)

    assert location.address == "Connaught Place, India"
    assert isinstance(location.address, str)
