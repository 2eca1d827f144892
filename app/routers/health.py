"""
Health check endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from app.schemas.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the service is running. No authentication required.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/health/jobs")
async def job_status(request: Request):
    """
    Job pipeline status.

    Returns how many analysis pipelines are in flight and how many job
    records are currently retained.
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    job_store = getattr(request.app.state, "job_store", None)

    return {
        "success": True,
        "ready": orchestrator is not None,
        "active_jobs": orchestrator.active_task_count if orchestrator else 0,
        "retained_jobs": len(job_store) if job_store is not None else 0,
    }
