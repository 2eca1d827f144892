"""
FastAPI application entry point for the Video Recognition API.

Downloads videos from remote URLs and analyzes them with Gemini:
1. Synchronous analysis for short videos (POST /api/process-video)
2. Asynchronous jobs with status polling (POST /api/jobs, GET /api/jobs/{jobId})
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.rate_limit import limiter, rate_limit_exceeded_handler
from app.routers import health, video
from app.services.gemini_service import GeminiService
from app.services.job_orchestrator import VideoJobOrchestrator
from app.services.job_store import JobStore
from app.services.video_downloader import VideoDownloaderService

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

# Baseline security headers added to every response
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Resource-Policy": "same-origin",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Wires the analysis services on startup and drains running jobs on shutdown.
    """
    settings = get_settings()
    logger.info("Starting Video Recognition API...")

    if not settings.google_api_key:
        logger.error("Missing required environment variable: GOOGLE_API_KEY")
        raise RuntimeError("GOOGLE_API_KEY is not configured")

    if not settings.api_key:
        logger.warning("API_KEY not configured - /api/* endpoints are unauthenticated")

    os.makedirs(settings.temp_dir, exist_ok=True)
    logger.info(f"Temp directory: {settings.temp_dir}")
    logger.info(f"Max concurrent jobs: {settings.max_concurrent_jobs}")

    job_store = JobStore(retention_seconds=settings.job_retention_seconds)
    video_downloader = VideoDownloaderService(temp_dir=settings.temp_dir)
    gemini_service = GeminiService(api_key=settings.google_api_key)
    orchestrator = VideoJobOrchestrator(
        job_store=job_store,
        video_downloader=video_downloader,
        gemini_service=gemini_service,
    )

    # Store in app state for dependency injection
    app.state.job_store = job_store
    app.state.video_downloader = video_downloader
    app.state.gemini_service = gemini_service
    app.state.orchestrator = orchestrator

    logger.info("Video Recognition API ready to accept requests.")

    yield

    logger.info("Shutting down Video Recognition API...")
    await orchestrator.shutdown(settings.shutdown_grace_seconds)
    job_store.close()
    await gemini_service.close()
    video_downloader.cleanup_temp_dir()
    logger.info("Shutdown complete")


def _error_body(detail) -> dict:
    if isinstance(detail, dict):
        return {"success": False, **detail}
    return {"success": False, "error": str(detail)}


# Create FastAPI application
app = FastAPI(
    title="Video Recognition API",
    description="""
Video analysis service backed by Gemini.

## Usage

Short videos:
- `POST /api/process-video` with `{"videoUrl": "...", "prompt": "..."}`

Long videos:
1. Submit a job: `POST /api/jobs`
2. Poll status: `GET /api/jobs/{jobId}` (every ~10 seconds)
3. Read `result` once `status` is `completed`

All `/api/*` endpoints require the `x-api-key` header.
    """,
    version=APP_VERSION,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().get_allowed_origins(),
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "x-api-key"],
)

# Rate limiting for /api/* (per-route decorators in app/routers/video.py)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Attach baseline security headers to every response."""
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(video.router, tags=["Video Analysis"])


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation failures in the API's error shape."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    logger.warning(f"Validation error on {request.url.path}: {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Validation error", "message": message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Return HTTP errors in the API's error shape."""
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        content = {"success": False, "error": "Endpoint not found"}
    else:
        content = _error_body(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last-resort handler for unexpected errors."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    content = {"success": False, "error": "Internal server error"}
    if get_settings().debug:
        content["message"] = str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
    )


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "name": "Video Recognition API",
        "version": APP_VERSION,
        "endpoints": {
            "health": "GET /health",
            "processVideo": "POST /api/process-video",
            "createJob": "POST /api/jobs",
            "getJob": "GET /api/jobs/{jobId}",
        },
        "authentication": "API key required for /api/* endpoints",
    }
