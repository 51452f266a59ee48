"""
Application configuration via pydantic-settings.
All config read from environment variables with sensible defaults for local dev.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # App
    app_name: str = "weather-relay"
    app_version: str = "0.1.0"
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = "INFO"

    # Redis: empty means process-local cache and rate-limit counters
    redis_url: str = ""

    # CORS
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    # Sentry
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    # Weather (Weatherstack)
    weather_api_key: str = ""
    weather_api_base_url: str = "http://api.weatherstack.com"
    weather_api_timeout_s: float = Field(default=8.0, gt=0.0)

    # Weather cache
    weather_cache_ttl_s: int = Field(default=1800, gt=0)  # 30 minutes
    weather_cache_max_entries: int = Field(default=100, gt=0)

    # Rate Limiting
    rate_limit_weather_per_min: int = Field(default=5, gt=0)
    rate_limit_window_s: float = Field(default=60.0, gt=0.0)

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}


settings = Settings()
