"""Unified API response envelope.

Every endpoint returns:
{
    "code": 0,              // 0=success, non-0=AppError code
    "message": "success",
    "data": { ... },        // null on error
    "timestamp": "...",
    "request_id": "..."     // same id as the access log line / X-Request-ID header
}
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from starlette.requests import Request


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=new_request_id)


def request_id_of(request: Request) -> str:
    """Id assigned by RequestLogMiddleware, or a fresh one outside the middleware."""
    return getattr(request.state, "request_id", None) or new_request_id()


def success_response(data: Any = None, request: Request | None = None) -> ApiResponse:
    resp = ApiResponse(code=0, message="success", data=data)
    if request is not None:
        resp.request_id = request_id_of(request)
    return resp


def error_response(code: int, message: str, request: Request | None = None) -> ApiResponse:
    resp = ApiResponse(code=code, message=message, data=None)
    if request is not None:
        resp.request_id = request_id_of(request)
    return resp
