"""
Weatherstack -> WeatherRecord mapping.

Pure: no I/O, no cache, no clock. Numeric readings become display strings with
fixed unit suffixes; uv_index stays numeric. Everything else passes through.
"""

from __future__ import annotations

from services.relay.weather.models import Coordinates, ProviderResponse, WeatherRecord

NO_DESCRIPTION = "No description available"


def _first(values: list[str] | None, default: str) -> str:
    return values[0] if values and values[0] else default


def _num(value: int | float) -> int | float:
    """Whole floats render without a trailing .0 (15.0 -> 15)."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def normalize_weather(payload: ProviderResponse) -> WeatherRecord:
    """
    Map a Weatherstack response onto the stable output schema.

    Raises:
        ValueError: if the location or current block is missing. Callers are
                    expected to reject such payloads before normalising.
    """
    location = payload.location
    current = payload.current
    if location is None or current is None:
        raise ValueError("payload has no location or current conditions block")

    return WeatherRecord(
        city=location.name,
        country=location.country,
        region=location.region,
        temperature=f"{_num(current.temperature)}°C",
        feels_like=f"{_num(current.feelslike)}°C",
        description=_first(current.weather_descriptions, NO_DESCRIPTION),
        humidity=f"{_num(current.humidity)}%",
        wind_speed=f"{_num(current.wind_speed)} km/h",
        wind_direction=current.wind_dir,
        pressure=f"{_num(current.pressure)} hPa",
        uv_index=_num(current.uv_index),
        visibility=f"{_num(current.visibility)} km",
        cloud_cover=f"{_num(current.cloudcover)}%",
        icon_url=_first(current.weather_icons, ""),
        local_time=location.localtime,
        coordinates=Coordinates(lat=location.lat, lon=location.lon),
    )
