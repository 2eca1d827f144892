"""
Video Job Orchestrator - Drives video analysis jobs through the pipeline.

Pipeline per job:
1. Download the video (VideoDownloaderService)
2. Upload, wait for readiness and analyze (GeminiService)
3. Record the outcome in the JobStore

Background jobs run as independent asyncio tasks; the synchronous variant runs
the same steps inline and returns the outcome to the caller.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from app.config import get_settings
from app.services.gemini_service import GeminiService, SubmissionError
from app.services.job_store import Job, JobStatus, JobStore, ProcessingTime
from app.services.video_downloader import VideoDownloaderService

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of a synchronous analysis run."""

    result: str
    processing_time: ProcessingTime


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class VideoJobOrchestrator:
    """
    Orchestrates video analysis jobs.

    Each submitted job gets its own task; at most max_concurrent_jobs
    pipelines (background and synchronous together) run at a time. Jobs waiting
    for a slot stay pending.
    """

    def __init__(
        self,
        job_store: JobStore,
        video_downloader: VideoDownloaderService,
        gemini_service: GeminiService,
        max_concurrent_jobs: Optional[int] = None,
        default_prompt: Optional[str] = None,
    ):
        self.settings = get_settings()
        self.job_store = job_store
        self.video_downloader = video_downloader
        self.gemini_service = gemini_service
        self.default_prompt = default_prompt or self.settings.video_prompt
        self._semaphore = asyncio.Semaphore(
            max_concurrent_jobs or self.settings.max_concurrent_jobs
        )
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_task_count(self) -> int:
        return len(self._tasks)

    def submit(self, video_url: str, prompt: Optional[str] = None) -> Job:
        """
        Create a job and start its pipeline in the background.

        Must be called from a running event loop. Returns the pending job
        without waiting for the pipeline.
        """
        job = self.job_store.create(video_url, prompt)

        task = asyncio.create_task(self._run_job(job.id, video_url, prompt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(f"Job {job.id} submitted for video: {video_url[:100]}")
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.job_store.get(job_id)

    async def _run_job(self, job_id: str, video_url: str, prompt: Optional[str]) -> None:
        """Background pipeline for one job. Only cancellation propagates."""
        try:
            async with self._semaphore:
                self.job_store.mark_processing(job_id)
                logger.info(f"Starting video analysis job: {job_id}")

                try:
                    outcome = await self._analyze(video_url, prompt)
                except Exception as e:
                    logger.exception(f"Job {job_id} failed: {e}")
                    self.job_store.mark_failed(job_id, str(e) or type(e).__name__)
                    return

                self.job_store.mark_completed(job_id, outcome.result, outcome.processing_time)
                logger.info(
                    f"Job {job_id} completed in {outcome.processing_time.total / 1000:.1f}s"
                )
        except asyncio.CancelledError:
            self._fail_cancelled(job_id)
            raise

    def _fail_cancelled(self, job_id: str) -> None:
        """Record cancellation, including for jobs still waiting for a slot."""
        job = self.job_store.get(job_id)
        if job is None:
            return
        if job.status == JobStatus.PENDING:
            # Failure is only reachable from processing
            self.job_store.mark_processing(job_id)
        self.job_store.mark_failed(job_id, "Job cancelled during shutdown")
        logger.warning(f"Job {job_id} cancelled")

    async def run_sync(self, video_url: str, prompt: Optional[str] = None) -> SyncResult:
        """
        Run the download and analysis inline.

        Raises:
            RetrievalError, SubmissionError, AnalysisTimeoutError: Propagated to the caller
        """
        async with self._semaphore:
            logger.info(f"Starting synchronous video analysis: {video_url[:100]}")
            outcome = await self._analyze(video_url, prompt)
            logger.info(
                f"Synchronous analysis completed in {outcome.processing_time.total / 1000:.1f}s"
            )
            return outcome

    async def _analyze(self, video_url: str, prompt: Optional[str]) -> SyncResult:
        """Download and analyze one video, always removing the local file."""
        start_time = time.monotonic()
        file_path: Optional[str] = None

        try:
            download_start = time.monotonic()
            download = await self.video_downloader.download_video(video_url)
            file_path = download.file_path
            download_ms = _elapsed_ms(download_start)

            analysis = await self.gemini_service.process_video(
                file_path,
                download.mime_type,
                prompt or self.default_prompt,
            )
            if not analysis.text:
                raise SubmissionError("Failed to process video with Gemini")

            return SyncResult(
                result=analysis.text,
                processing_time=ProcessingTime(
                    download=download_ms,
                    upload=analysis.upload_ms,
                    processing=analysis.processing_ms,
                    total=_elapsed_ms(start_time),
                ),
            )
        finally:
            if file_path:
                self.video_downloader.cleanup_file(file_path)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Wait for running jobs up to timeout, then cancel the rest."""
        if not self._tasks:
            return

        timeout = timeout if timeout is not None else self.settings.shutdown_grace_seconds
        pending = set(self._tasks)
        logger.info(f"Waiting up to {timeout:.0f}s for {len(pending)} running job(s)")

        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            logger.warning(f"Cancelling {len(still_running)} job(s) still running at shutdown")
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)
