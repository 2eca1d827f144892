"""
Request schemas for the video analysis API.
"""

from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator


class VideoProcessRequest(BaseModel):
    """Request body for /api/process-video and /api/jobs."""

    video_url: str = Field(
        ...,
        alias="videoUrl",
        description="HTTP or HTTPS URL of the video to analyze",
    )
    prompt: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=5000,
        description="Custom analysis instruction (defaults to VIDEO_PROMPT)",
    )

    @field_validator("video_url")
    @classmethod
    def validate_video_url(cls, value: str) -> str:
        """Only absolute http(s) URLs are accepted."""
        parsed = urlparse(value.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("videoUrl must be a valid HTTP or HTTPS URL")
        return value.strip()

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "videoUrl": "https://example.com/videos/clip.mp4",
                "prompt": "Describe this video in detail",
            }
        }
