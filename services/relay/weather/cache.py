"""
Weather cache stores.

Cache key format:  weather:{lowercased, trimmed city}
TTL:               WEATHER_CACHE_TTL_S (30 minutes by default)

"London", " london " and "LONDON" all collapse to weather:london.

Two stores share one async contract (get / peek / set / delete):
  - MemoryCacheStore: process-local, bounded, LRU eviction. Default.
  - RedisCacheStore: used when REDIS_URL is configured.

Values are JSON-compatible dicts (WeatherRecord.to_cache()). Stores raise on
backend failure; WeatherService decides how to degrade.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

_KEY_PREFIX = "weather:"


def cache_key(city: str) -> str:
    """Build the cache key for a city. Case- and whitespace-insensitive."""
    return f"{_KEY_PREFIX}{city.strip().lower()}"


class CacheStore(Protocol):
    name: str

    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def peek(self, key: str) -> dict[str, Any] | None:
        """Read without counting as a use for eviction purposes."""
        ...

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryCacheStore:
    """
    In-process TTL cache with bounded capacity.

    Expired entries are dropped lazily on read. When full, the least recently
    used entry is evicted. A lock guards the map so the store is safe to share
    between the event loop and worker threads; overlapping writes to one key
    are last-writer-wins. peek() reads without refreshing recency, so status
    polling does not keep an entry alive.

    Usage:
        store = MemoryCacheStore(max_entries=100)
        await store.set("weather:london", record.to_cache(), ttl_seconds=1800)
        data = await store.get("weather:london")
    """

    name = "memory"

    def __init__(
        self,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, dict[str, Any]]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _lookup(self, key: str, touch: bool) -> dict[str, Any] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Weather cache miss: %s", key)
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                logger.debug("Weather cache expired: %s", key)
                return None
            if touch:
                self._entries.move_to_end(key)
            logger.debug("Weather cache hit: %s", key)
            return value

    async def get(self, key: str) -> dict[str, Any] | None:
        return self._lookup(key, touch=True)

    async def peek(self, key: str) -> dict[str, Any] | None:
        return self._lookup(key, touch=False)

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Weather cache evicted: %s", evicted)
        logger.debug("Weather cached: key=%s ttl=%ds", key, ttl_seconds)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class RedisCacheStore:
    """
    Redis-backed store for deployments that already run Redis.

    Args:
        redis: An async Redis client (redis.asyncio compatible) created with
               decode_responses=True.
    """

    name = "redis"

    def __init__(self, redis: Any) -> None:
        self._redis = redis

    async def get(self, key: str) -> dict[str, Any] | None:
        raw = await self._redis.get(key)
        if raw is None:
            logger.debug("Weather cache miss: %s", key)
            return None
        logger.debug("Weather cache hit: %s", key)
        return json.loads(raw)

    async def peek(self, key: str) -> dict[str, Any] | None:
        # Redis evicts by its own policy; a plain GET is the read
        return await self.get(key)

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        await self._redis.set(key, json.dumps(value), ex=ttl_seconds)
        logger.debug("Weather cached: key=%s ttl=%ds", key, ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)
