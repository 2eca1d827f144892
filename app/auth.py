"""
API Key Authentication.

Provides a FastAPI dependency for validating the shared API key on /api/*
endpoints. The key may be sent in the x-api-key header or the apiKey query
parameter.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException, Query, Request, status

from app.config import get_settings

logger = logging.getLogger(__name__)


async def verify_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="x-api-key"),
    api_key_param: Optional[str] = Query(None, alias="apiKey"),
) -> None:
    """
    FastAPI dependency to verify the API key.

    If API_KEY is configured, requests must include a matching key. If not
    configured, authentication is skipped (development mode).

    Raises:
        HTTPException: 401 if API key is missing or invalid
    """
    settings = get_settings()
    expected_key = settings.api_key

    if not expected_key:
        logger.debug("API_KEY not configured, skipping authentication")
        return

    provided_key = x_api_key or api_key_param
    client_host = request.client.host if request.client else "unknown"

    if not provided_key:
        logger.warning(f"API request without API key from {client_host} to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "API key required",
                "message": "Please provide an API key in the x-api-key header or apiKey query parameter",
            },
        )

    if provided_key != expected_key:
        logger.warning(f"API request with invalid API key from {client_host} to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid API key"},
        )
