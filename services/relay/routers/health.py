"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    service = getattr(request.app.state, "weather_service", None)
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "version": request.app.state.settings.app_version,
            "cacheBackend": service.cache_backend if service is not None else None,
        },
        "requestId": request.state.request_id,
    }
