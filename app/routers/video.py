"""
Video Analysis API Router - Synchronous and job-based analysis endpoints.

Use POST /api/jobs for anything longer than a short clip: the synchronous
endpoint holds the request open for the full download and analysis, which
upstream proxies may time out.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.auth import verify_api_key
from app.rate_limit import api_limit
from app.schemas.requests import VideoProcessRequest
from app.schemas.responses import (
    ErrorResponse,
    JobCreatedResponse,
    JobStatusResponse,
    ProcessingTimeResponse,
    VideoProcessResponse,
)
from app.services.job_orchestrator import VideoJobOrchestrator
from app.services.job_store import Job, ProcessingTime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", dependencies=[Depends(verify_api_key)])


# ============================================================================
# Dependencies
# ============================================================================


async def get_orchestrator(request: Request) -> VideoJobOrchestrator:
    """Get the job orchestrator from app state (initialized at startup)."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Video analysis service not initialized",
        )
    return orchestrator


def _processing_time_response(processing_time: ProcessingTime) -> ProcessingTimeResponse:
    return ProcessingTimeResponse(
        download=processing_time.download,
        upload=processing_time.upload,
        processing=processing_time.processing,
        total=processing_time.total,
    )


def _job_status_response(job: Job) -> JobStatusResponse:
    return JobStatusResponse(
        job_id=job.id,
        status=job.status.value,
        video_url=job.video_url,
        result=job.result,
        error=job.error,
        processing_time=(
            _processing_time_response(job.processing_time) if job.processing_time else None
        ),
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/process-video",
    response_model=VideoProcessResponse,
    responses={500: {"model": ErrorResponse}},
)
@api_limit
async def process_video(
    request: Request,
    payload: VideoProcessRequest,
    orchestrator: VideoJobOrchestrator = Depends(get_orchestrator),
):
    """
    Download and analyze a video in a single request.

    Only suitable for short videos; see POST /api/jobs for the async flow.
    """
    try:
        outcome = await orchestrator.run_sync(payload.video_url, payload.prompt)
    except Exception as e:
        logger.error(f"Video processing failed for {payload.video_url[:100]}: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="Failed to process video",
                message=str(e) or type(e).__name__,
            ).model_dump(),
        )

    return VideoProcessResponse(
        result=outcome.result,
        processing_time=_processing_time_response(outcome.processing_time),
    )


@router.post(
    "/jobs",
    response_model=JobCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
@api_limit
async def create_job(
    request: Request,
    payload: VideoProcessRequest,
    orchestrator: VideoJobOrchestrator = Depends(get_orchestrator),
) -> JobCreatedResponse:
    """
    Submit a video analysis job.

    The job is processed asynchronously. Poll GET /api/jobs/{jobId} until the
    status is completed or failed. Job records are kept for one hour.
    """
    job = orchestrator.submit(payload.video_url, payload.prompt)

    return JobCreatedResponse(job_id=job.id, status=job.status.value)


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
)
@api_limit
async def get_job_status(
    request: Request,
    job_id: str,
    orchestrator: VideoJobOrchestrator = Depends(get_orchestrator),
) -> JobStatusResponse:
    """
    Get the status of an analysis job.

    Returns the result and stage timings once completed, or the failure
    reason once failed.
    """
    job = orchestrator.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    return _job_status_response(job)
