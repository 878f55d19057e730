from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any

Point = tuple[float, float]  # (lat, lng)

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True, slots=True)
class Location:
    """A resolved place. Two locations are equal when their addresses are."""

    latitude: float = field(compare=False)
    longitude: float = field(compare=False)
    address: str

    @property
    def point(self) -> Point:
        return self.latitude, self.longitude

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Any) -> Location:
        if not isinstance(payload, dict):
            raise ValueError("location payload must be an object")
        latitude = safe_float(payload.get("latitude"))
        longitude = safe_float(payload.get("longitude"))
        address = payload.get("address")
        if latitude is None or longitude is None or not isinstance(address, str):
            raise ValueError(f"malformed location payload: {payload!r}")
        return cls(latitude=latitude, longitude=longitude, address=address)


def safe_float(value: Any) -> float | None:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def is_valid_lat_lng(lat: float, lng: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lng <= 180


def lnglat_pairs_to_points(raw_coords: Any) -> list[Point]:
    """Convert GeoJSON-ordered ``[lng, lat]`` pairs into ``(lat, lng)`` points, skipping bad pairs."""
    if not isinstance(raw_coords, list):
        return []
    points: list[Point] = []
    for pair in raw_coords:
        if not isinstance(pair, (list, tuple)) or len(pair) < 2:
            continue
        lng = safe_float(pair[0])
        lat = safe_float(pair[1])
        if lat is None or lng is None or not is_valid_lat_lng(lat, lng):
            continue
        points.append((lat, lng))
    return points


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.4f}, {lng:.4f}"


def haversine_km(a: Point, b: Point) -> float:
    lat1 = math.radians(a[0])
    lat2 = math.radians(b[0])
    d_lat = lat2 - lat1
    d_lng = math.radians(b[1] - a[1])

    x = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(x), math.sqrt(1 - x))
