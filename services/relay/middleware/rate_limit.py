"""
Sliding window rate limiter.

Tiers:
  - weather: RATE_LIMIT_WEATHER_PER_MIN per client (5 by default) on /weather/{city}

Exempt: /health, /weather/cache-status/{city}, and any path without a tier.
Only an exact /weather/{city} path is counted; "/weather/London/" is
redirected by the router for free and the follow-up request counts once.

Window storage:
  - MemoryWindowBackend: per-process deques (default)
  - RedisWindowBackend: Redis sorted sets, when REDIS_URL is configured

Rejected requests still count toward the window, so a client that keeps
hammering stays blocked until it backs off. The consequence: a client sending
a steady 6 requests per minute against a limit of 5 never gets another
request through, because every rejected hit keeps the window full. It has to
pause for a whole window before it is served again.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from services.relay.errors import error_response

WEATHER_PREFIX = "/weather/"
EXEMPT_PREFIXES = ("/weather/cache-status/",)
EXEMPT_PATHS = ("/health",)

WEATHER_TIER = "weather"

# Sweep idle in-memory windows once this many clients are tracked
_SWEEP_THRESHOLD = 10_000


def _get_tier(path: str) -> str | None:
    """Return the tier name for a path, or None if the path is not limited."""
    if path in EXEMPT_PATHS:
        return None
    for prefix in EXEMPT_PREFIXES:
        if path.startswith(prefix):
            return None
    if path.startswith(WEATHER_PREFIX):
        # Exactly one city segment; slash variants only get a redirect
        city = path[len(WEATHER_PREFIX):]
        if city and "/" not in city:
            return WEATHER_TIER
    return None


def get_client_key(request: Request) -> str:
    """Extract a client identifier (first X-Forwarded-For hop, else peer IP)."""
    client_ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    return f"ip:{client_ip}"


# ---------------------------------------------------------------------------
# Window backends
# ---------------------------------------------------------------------------

class WindowBackend(Protocol):
    async def add(self, key: str, now: float, window_s: float) -> tuple[int, float | None]:
        """Record a hit. Return (hits already in window, oldest hit timestamp)."""
        ...

    async def count(self, key: str, now: float, window_s: float) -> int: ...


class MemoryWindowBackend:
    """Per-process sliding windows: one deque of timestamps per key."""

    def __init__(self) -> None:
        self._windows: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def _prune(self, key: str, window_start: float) -> deque[float]:
        hits = self._windows.setdefault(key, deque())
        while hits and hits[0] <= window_start:
            hits.popleft()
        return hits

    def _sweep(self, window_start: float) -> None:
        idle = [k for k, hits in self._windows.items() if not hits or hits[-1] <= window_start]
        for k in idle:
            del self._windows[k]

    async def add(self, key: str, now: float, window_s: float) -> tuple[int, float | None]:
        window_start = now - window_s
        with self._lock:
            if len(self._windows) >= _SWEEP_THRESHOLD:
                self._sweep(window_start)
            hits = self._prune(key, window_start)
            current = len(hits)
            oldest = hits[0] if hits else None
            hits.append(now)
        return current, oldest

    async def count(self, key: str, now: float, window_s: float) -> int:
        with self._lock:
            if key not in self._windows:
                return 0
            return len(self._prune(key, now - window_s))


class RedisWindowBackend:
    """Sliding windows backed by Redis sorted sets (score = request time)."""

    def __init__(self, redis: Any) -> None:
        self.redis = redis

    async def add(self, key: str, now: float, window_s: float) -> tuple[int, float | None]:
        window_start = now - window_s

        pipe = self.redis.pipeline()
        # Remove expired entries
        pipe.zremrangebyscore(key, 0, window_start)
        # Count current entries
        pipe.zcard(key)
        # Oldest surviving entry, for Retry-After
        pipe.zrange(key, 0, 0, withscores=True)
        # Add current request
        pipe.zadd(key, {f"{now}:{time.monotonic_ns()}": now})
        # Set TTL on the key
        pipe.expire(key, int(window_s * 2))
        results = await pipe.execute()

        oldest_entries = results[2] or []
        oldest = float(oldest_entries[0][1]) if oldest_entries else None
        return int(results[1] or 0), oldest

    async def count(self, key: str, now: float, window_s: float) -> int:
        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(key, 0, now - window_s)
        pipe.zcard(key)
        results = await pipe.execute()
        return int(results[1] or 0)


# ---------------------------------------------------------------------------
# Limiter
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: int


class RateLimiter:
    """
    Usage:
        limiter = RateLimiter(MemoryWindowBackend(), limits={"weather": 5})
        decision = await limiter.hit("weather", "ip:1.2.3.4")
        remaining = await limiter.remaining("weather", "ip:1.2.3.4")
    """

    def __init__(
        self,
        backend: WindowBackend,
        limits: dict[str, int],
        window_s: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.limits = dict(limits)
        self.window_s = window_s
        self._clock = clock

    @staticmethod
    def _window_key(tier: str, client_key: str) -> str:
        return f"ratelimit:{tier}:{client_key}"

    async def hit(self, tier: str, client_key: str) -> RateDecision:
        limit = self.limits[tier]
        now = self._clock()
        current, oldest = await self.backend.add(
            self._window_key(tier, client_key), now, self.window_s
        )

        # The window frees a slot when its oldest hit ages out
        frees_at = (oldest if oldest is not None else now) + self.window_s
        return RateDecision(
            allowed=current < limit,
            limit=limit,
            remaining=max(0, limit - current - 1),
            reset_at=int(frees_at),
            retry_after=max(1, int(frees_at - now + 0.999)),
        )

    async def remaining(self, tier: str, client_key: str) -> int:
        """Requests left in the current window, without consuming one."""
        limit = self.limits[tier]
        used = await self.backend.count(
            self._window_key(tier, client_key), self._clock(), self.window_s
        )
        return max(0, limit - used)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies RateLimiter to tiered paths. Reads the limiter from
    app.state.rate_limiter on each request, so it can be built during lifespan;
    with no limiter set, requests pass through.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        tier = _get_tier(request.url.path)
        if tier is None:
            return await call_next(request)

        limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
        if limiter is None or tier not in limiter.limits:
            return await call_next(request)

        decision = await limiter.hit(tier, get_client_key(request))

        # Build rate limit headers
        headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Reset": str(decision.reset_at),
        }

        if not decision.allowed:
            headers["Retry-After"] = str(decision.retry_after)
            return error_response(
                request,
                status_code=429,
                code="RATE_LIMITED",
                message=(
                    f"Rate limit exceeded. Max {decision.limit} requests per "
                    f"{int(limiter.window_s)} seconds for {tier} tier."
                ),
                headers=headers,
            )

        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value
        return response
