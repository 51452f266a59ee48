"""
Weatherstack HTTP client.

Endpoint:  GET {base_url}/current?access_key=<KEY>&query=<city>
Docs:      https://weatherstack.com/documentation

Weatherstack reports most failures (unknown city, bad key, quota) as HTTP 200
with an "error" block, e.g.:
  {"success": false, "error": {"code": 615, "type": "request_failed", "info": "..."}}

Those come back as a parsed ProviderResponse; deciding what they mean is the
caller's job. Only two things raise:
  - ProviderTransportError: the call failed or the body was not a JSON object
  - ProviderSchemaError: the body was JSON but not the expected shape

Single attempt per call, no retries.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from services.relay.weather.models import ProviderResponse

logger = logging.getLogger(__name__)

_CURRENT_PATH = "/current"
_DEFAULT_TIMEOUT_S = 8.0


class ProviderTransportError(Exception):
    """The provider could not be reached or answered with garbage."""


class ProviderSchemaError(Exception):
    """The provider answered with JSON that does not match ProviderResponse."""


class WeatherstackClient:
    """
    Usage:
        client = WeatherstackClient(api_key="...", base_url="http://api.weatherstack.com")
        payload = await client.fetch_current("London")
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "http://api.weatherstack.com",
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        self._api_key = api_key
        self._endpoint = base_url.rstrip("/") + _CURRENT_PATH
        self._timeout_s = timeout_s

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def fetch_current(self, city: str) -> ProviderResponse:
        """Fetch current conditions for a city and decode the envelope."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                resp = await client.get(
                    self._endpoint,
                    params={"access_key": self._api_key, "query": city},
                )
        except httpx.HTTPError as exc:
            raise ProviderTransportError(f"Weatherstack request failed: {exc!r}") from exc

        body = self._decode_body(resp)

        try:
            return ProviderResponse.model_validate(body)
        except ValidationError as exc:
            logger.warning(
                "Weatherstack response did not match schema for city=%r: %d errors",
                city,
                exc.error_count(),
            )
            raise ProviderSchemaError("Weatherstack response did not match schema") from exc

    @staticmethod
    def _decode_body(resp: httpx.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if resp.is_success:
                raise ProviderSchemaError("Weatherstack returned a non-object body")
            raise ProviderTransportError(
                f"Weatherstack returned {resp.status_code}: {resp.text[:200]}"
            )

        if not resp.is_success:
            # Non-2xx with a JSON envelope still carries a usable error block
            logger.warning(
                "Weatherstack returned %d with JSON body", resp.status_code
            )
        return body
