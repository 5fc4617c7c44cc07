"""FastAPI dependency: require_internal_token.

Internal endpoints are called by the cron scheduler, the dashboard backend
and admin tooling, never directly by end users. They share one secret,
sent as the `X-Internal-Token` header.

Usage in any internal router:
    router = APIRouter(dependencies=[Depends(require_internal_token)])
"""

import hmac

from fastapi import Header

from config.settings import settings
from src.yp_common.errors import InvalidInternalTokenError


async def require_internal_token(
    x_internal_token: str | None = Header(default=None),
) -> None:
    """Raises HTTP 401 (InvalidInternalTokenError) unless the header matches."""
    if not x_internal_token or not hmac.compare_digest(
        x_internal_token, settings.INTERNAL_API_TOKEN
    ):
        raise InvalidInternalTokenError()
