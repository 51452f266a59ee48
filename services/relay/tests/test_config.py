"""Settings defaults and environment overrides."""

import pytest
from pydantic import ValidationError

from services.relay.config import Settings


class TestSettingsDefaults:
    def test_reference_defaults(self, monkeypatch):
        for var in (
            "PORT",
            "WEATHER_API_KEY",
            "WEATHER_CACHE_TTL_S",
            "WEATHER_CACHE_MAX_ENTRIES",
            "RATE_LIMIT_WEATHER_PER_MIN",
            "REDIS_URL",
        ):
            monkeypatch.delenv(var, raising=False)
        s = Settings(_env_file=None)

        assert s.port == 3000
        assert s.weather_api_key == ""
        assert s.weather_api_base_url == "http://api.weatherstack.com"
        assert s.weather_cache_ttl_s == 1800
        assert s.weather_cache_max_entries == 100
        assert s.rate_limit_weather_per_min == 5
        assert s.rate_limit_window_s == 60.0
        assert s.weather_api_timeout_s == 8.0
        assert s.redis_url == ""


class TestSettingsFromEnv:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("WEATHER_API_KEY", "abc123")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("RATE_LIMIT_WEATHER_PER_MIN", "10")
        s = Settings(_env_file=None)

        assert s.weather_api_key == "abc123"
        assert s.port == 8080
        assert s.rate_limit_weather_per_min == 10

    def test_invalid_environment_rejected(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "qa")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_non_positive_ttl_rejected(self, monkeypatch):
        monkeypatch.setenv("WEATHER_CACHE_TTL_S", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
