"""
CORS middleware configuration.
Restricts origins to CORS_ORIGINS. No wildcards. The relay is read-only, so only GET/OPTIONS.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.relay.config import settings


def setup_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )
