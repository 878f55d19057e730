from __future__ import annotations

from ride_estimator.services.locations import Location
from ride_estimator.services.providers import Provider

DEFAULT_CITY = "Delhi"

POPULAR_PLACES: dict[str, tuple[Location, ...]] = {
    "Delhi": (
        Location(28.6562, 77.2410, "Red Fort, Delhi"),
        Location(28.6129, 77.2295, "India Gate, Delhi"),
        Location(28.5562, 77.1000, "IGI Airport, Delhi"),
        Location(28.6507, 77.2334, "Chandni Chowk, Delhi"),
        Location(28.5355, 77.3910, "Noida Sector 18"),
        Location(28.4595, 77.0266, "Gurgaon Cyber City"),
    ),
    "Mumbai": (
        Location(19.0760, 72.8777, "Mumbai Central"),
        Location(19.0896, 72.8656, "Bandra West, Mumbai"),
        Location(19.0330, 72.8397, "Chhatrapati Shivaji Terminus"),
    ),
}

# Searchable offline gazetteer, used when every online geocoder is down.
KNOWN_PLACES: dict[str, tuple[Location, ...]] = {
    "Delhi": (
        Location(28.6562, 77.2410, "Red Fort, Old Delhi, New Delhi, India"),
        Location(28.6129, 77.2295, "India Gate, Rajpath, New Delhi, India"),
        Location(28.5562, 77.1000, "Indira Gandhi International Airport, New Delhi, India"),
        Location(28.6507, 77.2334, "Chandni Chowk, Old Delhi, New Delhi, India"),
        Location(28.5355, 77.3910, "Sector 18, Noida, Uttar Pradesh, India"),
        Location(28.4595, 77.0266, "Cyber City, Gurgaon, Haryana, India"),
        Location(28.4817, 77.1873, "Nehru Place, New Delhi, India"),
        Location(28.6304, 77.2177, "Connaught Place, New Delhi, India"),
        Location(28.6692, 77.4538, "Akshardham Temple, New Delhi, India"),
        Location(28.5244, 77.1855, "Saket Mall, New Delhi, India"),
    ),
    "Mumbai": (
        Location(19.0760, 72.8777, "Mumbai Central, Mumbai, Maharashtra, India"),
        Location(19.0896, 72.8656, "Bandra West, Mumbai, Maharashtra, India"),
        Location(19.0330, 72.8397, "Chhatrapati Shivaji Terminus, Mumbai, Maharashtra, India"),
        Location(19.0176, 72.8562, "Colaba, Mumbai, Maharashtra, India"),
        Location(19.0728, 72.8826, "Andheri East, Mumbai, Maharashtra, India"),
    ),
}


def popular_places(city: str | None = None) -> list[Location]:
    return list(POPULAR_PLACES.get(city or DEFAULT_CITY) or POPULAR_PLACES[DEFAULT_CITY])


def search_known_places(query: str, city: str | None = None) -> list[Location]:
    normalized = query.strip().lower()
    if not normalized:
        return []
    places = KNOWN_PLACES.get(city or DEFAULT_CITY) or KNOWN_PLACES[DEFAULT_CITY]
    return [place for place in places if normalized in place.address.lower()]


class KnownPlacesProvider(Provider[str, list[Location]]):
    name = "known_places"

    def __init__(self, city: str | None = None) -> None:
        self.city = city

    async def resolve(self, request: str) -> list[Location]:
        return search_known_places(request, self.city)


class PopularPlacesProvider(Provider[str, list[Location]]):
    """Terminal forward-geocoding fallback: ignores the query and returns the city's popular places."""

    name = "popular_places"

    def __init__(self, city: str | None = None) -> None:
        self.city = city

    async def resolve(self, request: str) -> list[Location]:
        return popular_places(self.city)
