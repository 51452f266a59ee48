"""
WeatherService: cache-then-fetch over Weatherstack.

Flow for get_weather(city):
  - Read cache (key: weather:{city}); on hit return it flagged fromCache=True
  - On miss: require an API key, call Weatherstack, classify the outcome,
    normalise, write through with the configured TTL, return fromCache=False

Failures are returned as WeatherFailure values:
  MISCONFIGURED      no API key; no network call is made
  UPSTREAM_REJECTED  provider sent an error block (its message is surfaced)
  UPSTREAM_INVALID   provider sent something that is not current conditions
  NOT_FOUND          anything else (network, timeouts, unexpected errors)

The cache is best-effort in both directions: read failures count as misses,
write failures are logged and the fresh record is still returned.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from services.relay.weather.cache import CacheStore, cache_key
from services.relay.weather.client import (
    ProviderSchemaError,
    ProviderTransportError,
    WeatherstackClient,
)
from services.relay.weather.models import (
    CacheStatus,
    WeatherErrorKind,
    WeatherFailure,
    WeatherOutcome,
    WeatherRecord,
)
from services.relay.weather.normalizer import normalize_weather

logger = logging.getLogger(__name__)

_DEFAULT_TTL_SECONDS = 30 * 60

MSG_MISCONFIGURED = "Weather service is not configured."
MSG_UPSTREAM_INVALID = "Invalid response from weather service."
MSG_UPSTREAM_REJECTED = "Weather service rejected the request."
MSG_NOT_FOUND = "City not found or service unavailable."


class WeatherService:
    """
    Usage:
        service = WeatherService(client=WeatherstackClient(api_key="..."),
                                 cache=MemoryCacheStore(max_entries=100))
        outcome = await service.get_weather("London")
        if isinstance(outcome, WeatherFailure):
            ...
    """

    def __init__(
        self,
        client: WeatherstackClient,
        cache: CacheStore,
        ttl_seconds: int = _DEFAULT_TTL_SECONDS,
    ) -> None:
        self._client = client
        self._cache = cache
        self._ttl_seconds = ttl_seconds

    @property
    def cache_backend(self) -> str:
        return getattr(self._cache, "name", type(self._cache).__name__)

    async def get_weather(self, city: str) -> WeatherOutcome:
        query = city.strip()
        key = cache_key(query)

        cached = await self._read_cache(key)
        if cached is not None:
            return cached.model_copy(update={"from_cache": True})

        if not self._client.is_configured:
            logger.error("WEATHER_API_KEY not set; refusing weather fetch for %r", query)
            return WeatherFailure(WeatherErrorKind.MISCONFIGURED, MSG_MISCONFIGURED)

        try:
            payload = await self._client.fetch_current(query)
        except ProviderSchemaError:
            return WeatherFailure(WeatherErrorKind.UPSTREAM_INVALID, MSG_UPSTREAM_INVALID)
        except ProviderTransportError as exc:
            logger.warning("Weatherstack unreachable for city=%r: %s", query, exc)
            return WeatherFailure(WeatherErrorKind.NOT_FOUND, MSG_NOT_FOUND)
        except Exception:
            logger.exception("Weatherstack fetch failed for city=%r", query)
            return WeatherFailure(WeatherErrorKind.NOT_FOUND, MSG_NOT_FOUND)

        if payload.error is not None:
            logger.warning(
                "Weatherstack error for city=%r: code=%s type=%s",
                query,
                payload.error.code,
                payload.error.type,
            )
            return WeatherFailure(
                WeatherErrorKind.UPSTREAM_REJECTED,
                payload.error.info or MSG_UPSTREAM_REJECTED,
            )

        if payload.location is None or payload.current is None:
            logger.warning("Weatherstack response for city=%r missing location/current", query)
            return WeatherFailure(WeatherErrorKind.UPSTREAM_INVALID, MSG_UPSTREAM_INVALID)

        record = normalize_weather(payload)
        await self._write_cache(key, record)
        return record.model_copy(update={"from_cache": False})

    async def check_cache_status(self, city: str) -> CacheStatus:
        """Report whether a city is cached. Never contacts the provider."""
        cached = await self._read_cache(cache_key(city), peek=True)
        return CacheStatus(is_cached=cached is not None)

    async def _read_cache(self, key: str, peek: bool = False) -> WeatherRecord | None:
        read = self._cache.peek if peek else self._cache.get
        try:
            raw = await read(key)
        except Exception:
            logger.warning("Weather cache GET failed for key=%s", key, exc_info=True)
            return None
        if raw is None:
            return None

        try:
            return WeatherRecord.model_validate(raw)
        except ValidationError:
            logger.warning("Discarding unreadable weather cache entry: %s", key)
            try:
                await self._cache.delete(key)
            except Exception:
                logger.warning("Weather cache DELETE failed for key=%s", key, exc_info=True)
            return None

    async def _write_cache(self, key: str, record: WeatherRecord) -> None:
        try:
            await self._cache.set(key, record.to_cache(), self._ttl_seconds)
        except Exception:
            logger.warning("Weather cache SET failed for key=%s", key, exc_info=True)
