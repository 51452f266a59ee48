"""
Weather relay FastAPI service: cached, rate-limited Weatherstack lookups.

Entrypoint: uvicorn services.relay.main:app --host 0.0.0.0 --port 3000
       or:  weather-relay   (reads HOST / PORT from settings)
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as aioredis
import uvicorn
from fastapi import FastAPI, Request, Response
from starlette.responses import JSONResponse

from services.relay.config import settings
from services.relay.errors import error_response
from services.relay.middleware.cors import setup_cors
from services.relay.middleware.rate_limit import (
    WEATHER_TIER,
    MemoryWindowBackend,
    RateLimiter,
    RateLimitMiddleware,
    RedisWindowBackend,
)
from services.relay.middleware.sentry import setup_sentry
from services.relay.routers import health, weather
from services.relay.weather.cache import MemoryCacheStore, RedisCacheStore
from services.relay.weather.client import WeatherstackClient
from services.relay.weather.service import WeatherService

logger = logging.getLogger(__name__)


def build_weather_service(redis_client: Any = None) -> WeatherService:
    """Wire client + cache store from settings. Redis store only when a client is given."""
    if redis_client is not None:
        cache = RedisCacheStore(redis_client)
    else:
        cache = MemoryCacheStore(max_entries=settings.weather_cache_max_entries)

    client = WeatherstackClient(
        api_key=settings.weather_api_key,
        base_url=settings.weather_api_base_url,
        timeout_s=settings.weather_api_timeout_s,
    )
    return WeatherService(client=client, cache=cache, ttl_seconds=settings.weather_cache_ttl_s)


def build_rate_limiter(redis_client: Any = None) -> RateLimiter:
    backend = RedisWindowBackend(redis_client) if redis_client is not None else MemoryWindowBackend()
    return RateLimiter(
        backend,
        limits={WEATHER_TIER: settings.rate_limit_weather_per_min},
        window_s=settings.rate_limit_window_s,
    )


async def _connect_redis():
    if not settings.redis_url:
        return None
    try:
        redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
        )
        await redis_client.ping()
    except Exception as e:
        # Degrade to process-local cache and counters
        logger.warning(f"Redis unavailable, using in-memory stores: {e}")
        return None
    return redis_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    setup_sentry()

    redis_client = await _connect_redis()

    app.state.redis = redis_client
    app.state.settings = settings
    app.state.weather_service = build_weather_service(redis_client)
    app.state.rate_limiter = build_rate_limiter(redis_client)

    if not settings.weather_api_key:
        logger.warning("WEATHER_API_KEY is not set; weather lookups will fail until configured")
    logger.info(
        "Weather relay ready: cache=%s ttl=%ds limit=%d/%ds",
        app.state.weather_service.cache_backend,
        settings.weather_cache_ttl_s,
        settings.rate_limit_weather_per_min,
        int(settings.rate_limit_window_s),
    )

    yield

    if redis_client:
        await redis_client.aclose()


app = FastAPI(
    title="Weather Relay",
    version=settings.app_version,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
    lifespan=lifespan,
)

# -- Middleware (order matters: last added = outermost in Starlette) --

app.include_router(health.router)
app.include_router(weather.router)

# Rate limiting: inside the request envelope so 429s carry X-Request-ID
app.add_middleware(RateLimitMiddleware)


# Request ID injection
@app.middleware("http")
async def request_envelope_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# CORS (needs to be outermost to handle preflight)
setup_cors(app)


# -- Exception Handlers --

@app.exception_handler(404)
async def not_found_handler(request: Request, exc) -> JSONResponse:
    return error_response(request, 404, "NOT_FOUND", "Resource not found.")


@app.exception_handler(422)
async def validation_error_handler(request: Request, exc) -> JSONResponse:
    message = str(exc.detail) if hasattr(exc, "detail") else "Validation error."
    return error_response(request, 422, "VALIDATION_ERROR", message)


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc) -> JSONResponse:
    return error_response(request, 500, "INTERNAL_ERROR", "An unexpected error occurred.")


def run() -> None:
    """Console entrypoint: configure logging and serve with uvicorn."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    uvicorn.run(
        "services.relay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
