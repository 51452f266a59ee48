"""
Error envelope shared by handlers, middleware and routers.

Shape: {"success": false, "error": {"code": ..., "message": ...}, "requestId": ...}
"""

import uuid

from fastapi import Request
from starlette.responses import JSONResponse


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"code": code, "message": message},
            "requestId": request_id_of(request),
        },
        headers=headers,
    )
