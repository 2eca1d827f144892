"""
Per-client rate limiting for /api/* endpoints.

Limits are read from settings on every request (RATE_LIMIT_WINDOW_MS and
RATE_LIMIT_MAX_REQUESTS), so the window and budget follow the environment.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.config import get_settings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."

limiter = Limiter(key_func=get_remote_address)


def api_rate_limit() -> str:
    """Current limit for /api/* routes."""
    return get_settings().api_rate_limit


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 in the API's error shape."""
    client_host = request.client.host if request.client else "unknown"
    logger.warning(f"Rate limit exceeded for {client_host} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"success": False, "error": RATE_LIMIT_MESSAGE},
    )


# One budget per client across every /api/* route
api_limit = limiter.shared_limit(api_rate_limit, scope="api")
