"""
Pydantic schemas for request/response models.
"""

from app.schemas.requests import VideoProcessRequest
from app.schemas.responses import (
    ErrorResponse,
    HealthResponse,
    JobCreatedResponse,
    JobStatusResponse,
    ProcessingTimeResponse,
    VideoProcessResponse,
)

__all__ = [
    "VideoProcessRequest",
    "VideoProcessResponse",
    "ProcessingTimeResponse",
    "JobCreatedResponse",
    "JobStatusResponse",
    "ErrorResponse",
    "HealthResponse",
]
