"""
Shared test fixtures for the weather relay test suite.

Provides:
- async FastAPI test client (no network, no Redis)
- a fake Weatherstack client that records calls
- a factory for Weatherstack /current payloads
"""

import os
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("WEATHER_API_KEY", "test-key-123")

from services.relay.middleware.rate_limit import (  # noqa: E402
    WEATHER_TIER,
    MemoryWindowBackend,
    RateLimiter,
)
from services.relay.weather.cache import MemoryCacheStore  # noqa: E402
from services.relay.weather.models import ProviderResponse  # noqa: E402
from services.relay.weather.service import WeatherService  # noqa: E402


def make_weatherstack_response(**overrides: Any) -> dict[str, Any]:
    """Factory for Weatherstack /current response dicts (London, 15°C)."""
    current_overrides = overrides.pop("current", {})
    location_overrides = overrides.pop("location", {})
    base = {
        "location": {
            "name": "London",
            "country": "United Kingdom",
            "region": "City of London, Greater London",
            "lat": "51.517",
            "lon": "-0.106",
            "localtime": "2023-04-25 10:00",
        },
        "current": {
            "temperature": 15,
            "weather_descriptions": ["Partly cloudy"],
            "weather_icons": ["https://example.com/icon.png"],
            "humidity": 72,
            "wind_speed": 10,
            "wind_dir": "SW",
            "pressure": 1015,
            "feelslike": 14,
            "uv_index": 4,
            "visibility": 10,
            "cloudcover": 25,
        },
    }
    base["location"].update(location_overrides)
    base["current"].update(current_overrides)
    base.update(overrides)
    return base


class FakeWeatherstackClient:
    """
    Stand-in for WeatherstackClient.

    Returns `payload` (parsed into ProviderResponse) or raises `error`.
    Records every city it was asked for in `calls`.
    """

    def __init__(
        self,
        payload: dict[str, Any] | None = None,
        error: Exception | None = None,
        configured: bool = True,
    ) -> None:
        self.payload = payload if payload is not None else make_weatherstack_response()
        self.error = error
        self.configured = configured
        self.calls: list[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def fetch_current(self, city: str) -> ProviderResponse:
        self.calls.append(city)
        if self.error is not None:
            raise self.error
        return ProviderResponse.model_validate(self.payload)


@pytest.fixture
def fake_client() -> FakeWeatherstackClient:
    return FakeWeatherstackClient()


@pytest.fixture
def memory_cache() -> MemoryCacheStore:
    return MemoryCacheStore(max_entries=100)


@pytest.fixture
def weather_service(fake_client, memory_cache) -> WeatherService:
    return WeatherService(client=fake_client, cache=memory_cache, ttl_seconds=1800)


@pytest.fixture
def rate_limiter() -> RateLimiter:
    return RateLimiter(MemoryWindowBackend(), limits={WEATHER_TIER: 5}, window_s=60.0)


@pytest.fixture
async def app(weather_service, rate_limiter):
    """The FastAPI app with in-memory dependencies injected into app.state."""
    from services.relay.main import app as _app
    from services.relay.config import settings

    _app.state.redis = None
    _app.state.settings = settings
    _app.state.weather_service = weather_service
    _app.state.rate_limiter = rate_limiter
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
