"""Request logging middleware.

Every request gets a request id: the caller's X-Request-ID when the cron
scheduler or dashboard backend sends one, otherwise a generated one. The
id is put on request.state (echoed in the ApiResponse envelope), returned
as the X-Request-ID response header and written on the access log line.

Log format:
    INFO [POST] /api/v1/internal/accrual/run → 200 (23ms) req=a1b2c3d4
Server errors (5xx) are logged at WARNING.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.yp_common.response import new_request_id

logger = logging.getLogger("yp.request")

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_REQUEST_ID_LEN = 64


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = incoming[:_MAX_REQUEST_ID_LEN] if incoming else new_request_id()
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) req=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        return response
