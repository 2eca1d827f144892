"""
FastAPI routers for the video analysis API.
"""

from app.routers import health, video

__all__ = ["health", "video"]
