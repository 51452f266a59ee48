"""
Weather package.

Weatherstack integration with a write-through TTL cache keyed per city.
"""

from services.relay.weather.cache import MemoryCacheStore, RedisCacheStore, cache_key
from services.relay.weather.client import WeatherstackClient
from services.relay.weather.models import (
    CacheStatus,
    WeatherErrorKind,
    WeatherFailure,
    WeatherRecord,
)
from services.relay.weather.normalizer import normalize_weather
from services.relay.weather.service import WeatherService

__all__ = [
    "CacheStatus",
    "MemoryCacheStore",
    "RedisCacheStore",
    "WeatherErrorKind",
    "WeatherFailure",
    "WeatherRecord",
    "WeatherService",
    "WeatherstackClient",
    "cache_key",
    "normalize_weather",
]
