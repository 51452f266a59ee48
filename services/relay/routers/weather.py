"""
Weather router.

GET /weather/{city}
- Current conditions for a city, served from cache when fresh
- Rate-limited per client (weather tier, see middleware/rate_limit.py)

GET /weather/cache-status/{city}
- Whether the city is cached, plus the caller's remaining weather-tier budget
- Not rate-limited, and does not consume budget
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from starlette.responses import JSONResponse

from services.relay.errors import error_response
from services.relay.middleware.rate_limit import WEATHER_TIER, RateLimiter, get_client_key
from services.relay.weather.models import WeatherErrorKind, WeatherFailure
from services.relay.weather.service import WeatherService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/weather", tags=["weather"])

# Every kind must be listed; a missing one is a KeyError, not a silent 200
_FAILURE_RESPONSES: dict[WeatherErrorKind, tuple[int, str]] = {
    WeatherErrorKind.MISCONFIGURED: (500, "MISCONFIGURED"),
    WeatherErrorKind.UPSTREAM_REJECTED: (400, "BAD_REQUEST"),
    WeatherErrorKind.UPSTREAM_INVALID: (500, "UPSTREAM_INVALID"),
    WeatherErrorKind.NOT_FOUND: (404, "NOT_FOUND"),
}


def _require_city(city: str) -> str:
    if not city.strip():
        raise HTTPException(status_code=422, detail="City must not be empty.")
    return city


def _get_service(request: Request) -> WeatherService | None:
    return getattr(request.app.state, "weather_service", None)


def _service_unavailable(request: Request) -> JSONResponse:
    return error_response(request, 503, "SERVICE_UNAVAILABLE", "Weather service is starting up.")


@router.get("/cache-status/{city}")
async def check_cache_status(city: str, request: Request):
    _require_city(city)
    service = _get_service(request)
    if service is None:
        return _service_unavailable(request)

    status = await service.check_cache_status(city)

    limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is not None and WEATHER_TIER in limiter.limits:
        try:
            remaining = await limiter.remaining(WEATHER_TIER, get_client_key(request))
        except Exception:
            logger.warning("Rate limit lookup failed for cache-status", exc_info=True)
        else:
            status = status.model_copy(update={"requests_remaining": remaining})

    return status.to_response()


@router.get("/{city}")
async def get_weather(city: str, request: Request):
    _require_city(city)
    service = _get_service(request)
    if service is None:
        return _service_unavailable(request)

    try:
        outcome = await service.get_weather(city)
    except Exception:
        logger.exception("Unexpected failure serving weather for city=%r", city)
        return error_response(request, 500, "INTERNAL_ERROR", "Failed to fetch weather data.")

    if isinstance(outcome, WeatherFailure):
        status_code, code = _FAILURE_RESPONSES[outcome.kind]
        return error_response(request, status_code, code, outcome.message)

    return outcome.to_response()
