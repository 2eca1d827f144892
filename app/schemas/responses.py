"""
Response schemas for the video analysis API.

Field names are serialized in camelCase to match existing API clients.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProcessingTimeResponse(BaseModel):
    """Elapsed milliseconds per pipeline stage."""

    download: int = Field(..., description="Video download time")
    upload: int = Field(..., description="Upload to Gemini time")
    processing: int = Field(..., description="Remote processing and generation time")
    total: int = Field(..., description="Total pipeline time")


class VideoProcessResponse(BaseModel):
    """Response for a synchronous analysis."""

    success: bool = True
    result: str = Field(..., description="Analysis text")
    processing_time: ProcessingTimeResponse = Field(..., alias="processingTime")

    class Config:
        populate_by_name = True


class JobCreatedResponse(BaseModel):
    """Response after submitting an analysis job."""

    success: bool = True
    job_id: str = Field(..., alias="jobId")
    status: str = Field(..., description="Always 'pending' on creation")
    message: str = "Job created. Poll GET /api/jobs/{jobId} for status."

    class Config:
        populate_by_name = True


class JobStatusResponse(BaseModel):
    """Response for a job status query."""

    success: bool = True
    job_id: str = Field(..., alias="jobId")
    status: str = Field(..., description="pending, processing, completed or failed")
    video_url: str = Field(..., alias="videoUrl")
    result: Optional[str] = Field(default=None, description="Analysis text when completed")
    error: Optional[str] = Field(default=None, description="Failure reason when failed")
    processing_time: Optional[ProcessingTimeResponse] = Field(
        default=None, alias="processingTime"
    )
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    class Config:
        populate_by_name = True


class ErrorResponse(BaseModel):
    """Error body shared by all endpoints."""

    success: bool = False
    error: str
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    success: bool = True
    status: str = Field(..., description="Service status")
    timestamp: str = Field(..., description="ISO 8601 server time")
