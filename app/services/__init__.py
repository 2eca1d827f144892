"""
Services for the video analysis API.

Includes:
- Video download with content type correction
- Gemini upload, readiness polling and analysis
- In-memory job store and job orchestration
"""

from app.services.gemini_service import (
    AnalysisResult,
    AnalysisTimeoutError,
    GeminiError,
    GeminiService,
    SubmissionError,
)
from app.services.job_orchestrator import SyncResult, VideoJobOrchestrator
from app.services.job_store import Job, JobStatus, JobStore, ProcessingTime
from app.services.video_downloader import (
    DownloadResult,
    RetrievalError,
    VideoDownloaderService,
)

__all__ = [
    # Retrieval
    "VideoDownloaderService",
    "DownloadResult",
    "RetrievalError",
    # Analysis
    "GeminiService",
    "AnalysisResult",
    "GeminiError",
    "SubmissionError",
    "AnalysisTimeoutError",
    # Jobs
    "JobStore",
    "Job",
    "JobStatus",
    "ProcessingTime",
    "VideoJobOrchestrator",
    "SyncResult",
]
