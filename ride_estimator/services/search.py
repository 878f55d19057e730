from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ride_estimator.core.config import Settings, get_settings
from ride_estimator.core.enums import SearchState
from ride_estimator.services.geocoding import ForwardGeocodeResult, GeocodingResolver
from ride_estimator.services.locations import Location
from ride_estimator.services.recent_searches import InMemoryRecentSearchStorage, RecentSearchCache

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchSession:
    query: str = ""
    generation: int = 0
    state: SearchState = SearchState.IDLE
    suggestions: list[Location] = field(default_factory=list)
    is_showing_fallback: bool = False
    value: Location | None = None


class SearchSessionController:
    """Debounced location search for a single input field.

    Every keystroke bumps the session generation. Only the newest query
    survives the debounce delay, and a geocoder response is applied only if
    no newer keystroke, selection or blur happened while it was in flight.
    """

    def __init__(
        self,
        resolver: GeocodingResolver,
        recent: RecentSearchCache | None = None,
        *,
        settings: Settings | None = None,
        debounce_sec: float | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.resolver = resolver
        if recent is None:
            recent = RecentSearchCache.from_settings(InMemoryRecentSearchStorage(), self.settings)
        self.recent = recent
        self.debounce_sec = self.settings.search_debounce_sec if debounce_sec is None else debounce_sec
        self.min_query_length = self.settings.search_min_query_length
        self.suggestion_limit = self.settings.suggestion_limit
        self.session = SearchSession()
        self._timer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> SearchState:
        return self.session.state

    @property
    def suggestions(self) -> list[Location]:
        return list(self.session.suggestions)

    def _next_generation(self) -> int:
        self.session.generation += 1
        return self.session.generation

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _reset(self, state: SearchState = SearchState.IDLE) -> None:
        self.session.state = state
        self.session.suggestions = []
        self.session.is_showing_fallback = False

    def fallback_suggestions(self) -> list[Location]:
        recents = self.recent.entries
        recent_addresses = {item.address for item in recents}
        popular = [item for item in self.resolver.popular_places() if item.address not in recent_addresses]
        return [*recents, *popular][: self.suggestion_limit]

    def _show_fallback(self) -> None:
        self.session.state = SearchState.SHOWING_FALLBACK
        self.session.suggestions = self.fallback_suggestions()
        self.session.is_showing_fallback = True

    async def start(self) -> list[Location]:
        return await self.recent.ensure_loaded()

    async def on_focus(self) -> list[Location]:
        await self.recent.ensure_loaded()
        if len(self.session.query.strip()) < self.min_query_length:
            self._show_fallback()
        return self.suggestions

    def on_input(self, query: str) -> None:
        self.session.query = query
        generation = self._next_generation()
        self._cancel_timer()

        if len(query.strip()) < self.min_query_length:
            self._reset()
            return

        self._reset(SearchState.DEBOUNCING)
        task = asyncio.get_running_loop().create_task(self._debounced_search(query, generation))
        self._timer = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _debounced_search(self, query: str, generation: int) -> None:
        await asyncio.sleep(self.debounce_sec)
        if generation != self.session.generation:
            return
        # past the delay the request is committed; later keystrokes only make its answer stale
        self._timer = None
        self.session.state = SearchState.SEARCHING

        try:
            result = await self.resolver.search(query)
        except Exception:
            logger.exception("Location search error", extra={"query": query})
            result = ForwardGeocodeResult(locations=[], source="error", used_fallback=True)

        await self.recent.ensure_loaded()

        if generation != self.session.generation:
            logger.debug("Discarding stale search response", extra={"query": query, "generation": generation})
            return

        if result.used_fallback or not result.locations:
            self._show_fallback()
        else:
            self.session.state = SearchState.SHOWING_SUGGESTIONS
            self.session.suggestions = result.locations[: self.suggestion_limit]
            self.session.is_showing_fallback = False

    async def select(self, location: Location) -> Location:
        self._cancel_timer()
        self._next_generation()
        self.session.value = location
        self.session.query = location.address
        self._reset()
        await self.recent.remember(location)
        return location

    async def use_current_location(self) -> Location:
        location = await self.resolver.current_device_position()
        return await self.select(location)

    def clear(self) -> None:
        self._cancel_timer()
        self._next_generation()
        self.session.query = ""
        self.session.value = None
        self._reset()

    def blur(self) -> None:
        self._cancel_timer()
        self._next_generation()
        self._reset()

    async def wait(self) -> None:
        while pending := [task for task in self._tasks if not task.done()]:
            await asyncio.gather(*pending, return_exceptions=True)
