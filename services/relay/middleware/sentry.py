"""
Sentry instrumentation for the relay.
Server-side only. Scrubs the Weatherstack access_key from outbound-call
breadcrumbs and sensitive headers from request data.
"""

import re
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from services.relay.config import settings

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}

_ACCESS_KEY_RE = re.compile(r"(access_key=)[^&\s]+")


def _scrub_url(value: Any) -> Any:
    if isinstance(value, str):
        return _ACCESS_KEY_RE.sub(r"\1[FILTERED]", value)
    return value


def _strip_sensitive_data(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """before_send hook: strip API keys from httpx breadcrumbs and auth headers."""
    if "breadcrumbs" in event:
        for breadcrumb in event["breadcrumbs"].get("values", []):
            data = breadcrumb.get("data", {})
            if isinstance(data, dict):
                for key in ("url", "http.query"):
                    if key in data:
                        data[key] = _scrub_url(data[key])
    request = event.get("request", {})
    if isinstance(request, dict):
        headers = request.get("headers", {})
        if isinstance(headers, dict):
            for key in list(headers.keys()):
                if key.lower() in SENSITIVE_HEADERS:
                    headers[key] = "[FILTERED]"
    return event


def setup_sentry() -> None:
    if not settings.sentry_dsn:
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        before_send=_strip_sensitive_data,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        send_default_pii=False,
    )
