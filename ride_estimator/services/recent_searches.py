from __future__ import annotations

import json
import logging
from typing import Protocol

from redis.asyncio import Redis

from ride_estimator.core.config import Settings, get_settings
from ride_estimator.services.locations import Location

logger = logging.getLogger(__name__)

RECENT_SEARCHES_KEY = "recentLocationSearches"


class RecentSearchStorage(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class InMemoryRecentSearchStorage:
    def __init__(self) -> None:
        self.storage: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.storage.get(key)

    async def set(self, key: str, value: str) -> None:
        self.storage[key] = value


class RedisRecentSearchStorage:
    def __init__(self, redis: Redis, namespace: str = "recent") -> None:
        self.redis = redis
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> str | None:
        value = await self.redis.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(self._key(key), value)


class RecentSearchCache:
    """Most recent selections first, unique by address, at most ``limit`` entries."""

    def __init__(
        self,
        storage: RecentSearchStorage,
        *,
        limit: int = 5,
        storage_key: str = RECENT_SEARCHES_KEY,
    ) -> None:
        self.storage = storage
        self.limit = max(1, limit)
        self.storage_key = storage_key
        self._entries: list[Location] = []
        self._loaded = False

    @classmethod
    def from_settings(cls, storage: RecentSearchStorage, settings: Settings | None = None) -> RecentSearchCache:
        settings = settings or get_settings()
        return cls(storage, limit=settings.recent_search_limit, storage_key=settings.recent_searches_storage_key)

    @property
    def entries(self) -> list[Location]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def _parse(self, raw: str) -> list[Location]:
        payload = json.loads(raw)
        if not isinstance(payload, list):
            raise ValueError("recent searches must be a list")
        return [Location.from_dict(item) for item in payload]

    def _normalize(self, items: list[Location]) -> list[Location]:
        unique: list[Location] = []
        seen: set[str] = set()
        for item in items:
            if item.address in seen:
                continue
            seen.add(item.address)
            unique.append(item)
        return unique[: self.limit]

    async def load(self) -> list[Location]:
        try:
            raw = await self.storage.get(self.storage_key)
        except Exception as exc:
            logger.warning("Recent searches storage read failed", extra={"key": self.storage_key, "error": str(exc)})
            raw = None

        entries: list[Location] = []
        if raw:
            try:
                entries = self._parse(raw)
            except (ValueError, TypeError) as exc:
                logger.warning("Error loading recent searches, starting empty", extra={"error": str(exc)})
        self._entries = self._normalize(entries)
        self._loaded = True
        return self.entries

    async def ensure_loaded(self) -> list[Location]:
        if not self._loaded:
            await self.load()
        return self.entries

    def add(self, location: Location) -> list[Location]:
        # single synchronous step: no await between read and write of _entries
        self._entries = self._normalize([location, *(item for item in self._entries if item.address != location.address)])
        return self.entries

    async def save(self) -> None:
        payload = json.dumps([item.to_dict() for item in self._entries])
        try:
            await self.storage.set(self.storage_key, payload)
        except Exception as exc:
            logger.warning("Recent searches storage write failed", extra={"key": self.storage_key, "error": str(exc)})

    async def remember(self, location: Location) -> list[Location]:
        # merge into history from earlier sessions instead of overwriting it
        await self.ensure_loaded()
        entries = self.add(location)
        await self.save()
        return entries
