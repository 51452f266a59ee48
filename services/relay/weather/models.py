"""
Weather data shapes.

Two sides:
  - ProviderResponse: the Weatherstack /current envelope as received.
  - WeatherRecord / CacheStatus: the stable shapes served to callers
    (camelCase on the wire, snake_case in Python).

Failures from the orchestrator are returned as WeatherFailure values, never
raised, so the HTTP layer has to map every WeatherErrorKind explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Provider (Weatherstack) schema
# ---------------------------------------------------------------------------

class ProviderLocation(BaseModel):
    name: str
    country: str
    region: str
    # Weatherstack sends coordinates as strings; keep them that way
    lat: str
    lon: str
    localtime: str

    model_config = {"coerce_numbers_to_str": True}


class ProviderCurrent(BaseModel):
    temperature: int | float
    feelslike: int | float
    humidity: int | float
    wind_speed: int | float
    wind_dir: str
    pressure: int | float
    uv_index: int | float
    visibility: int | float
    cloudcover: int | float
    # Missing and null both mean "none"
    weather_descriptions: list[str] | None = Field(default_factory=list)
    weather_icons: list[str] | None = Field(default_factory=list)


class ProviderError(BaseModel):
    code: int | None = None
    type: str | None = None
    info: str | None = None


class ProviderResponse(BaseModel):
    """Weatherstack /current envelope. Any block may be absent."""

    location: ProviderLocation | None = None
    current: ProviderCurrent | None = None
    error: ProviderError | None = None

    model_config = {"extra": "ignore"}


# ---------------------------------------------------------------------------
# Output schema
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class Coordinates(_CamelModel):
    lat: str
    lon: str


class WeatherRecord(_CamelModel):
    city: str
    country: str
    region: str
    temperature: str
    feels_like: str
    description: str
    humidity: str
    wind_speed: str
    wind_direction: str
    pressure: str
    uv_index: int | float
    visibility: str
    cloud_cover: str
    icon_url: str
    local_time: str
    coordinates: Coordinates
    # Transient: set per response, never written to the cache
    from_cache: bool | None = None

    def to_cache(self) -> dict:
        """Serialise for storage, without the transient fromCache flag."""
        return self.model_dump(mode="json", by_alias=True, exclude={"from_cache"})

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CacheStatus(_CamelModel):
    is_cached: bool
    # Filled by the HTTP layer from the live rate-limit window
    requests_remaining: int | None = None

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class WeatherErrorKind(str, Enum):
    MISCONFIGURED = "misconfigured"
    UPSTREAM_REJECTED = "upstream_rejected"
    UPSTREAM_INVALID = "upstream_invalid"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class WeatherFailure:
    kind: WeatherErrorKind
    message: str


WeatherOutcome = Union[WeatherRecord, WeatherFailure]
