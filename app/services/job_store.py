"""
In-memory job store for asynchronous video analysis.

Records are purged a fixed time after creation, whether or not they reached a
terminal state. Retention is not extended by later updates.
"""

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


DEFAULT_RETENTION_SECONDS = 3600.0


class JobStatus(str, Enum):
    """Status of a video analysis job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)

ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: (JobStatus.PROCESSING,),
    JobStatus.PROCESSING: (JobStatus.COMPLETED, JobStatus.FAILED),
    JobStatus.COMPLETED: (),
    JobStatus.FAILED: (),
}


@dataclass
class ProcessingTime:
    """Elapsed milliseconds per pipeline stage."""

    download: int
    upload: int
    processing: int
    total: int


@dataclass
class Job:
    """One asynchronous video analysis request and its outcome."""

    id: str
    status: JobStatus
    video_url: str
    created_at: datetime
    updated_at: datetime
    prompt: Optional[str] = None
    result: Optional[str] = None
    error: Optional[str] = None
    processing_time: Optional[ProcessingTime] = None


@dataclass
class _Entry:
    job: Job
    created_monotonic: float
    purge_handle: Optional[asyncio.TimerHandle] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """
    Thread-safe mapping from job id to Job.

    Expiry is scheduled with loop.call_later when an event loop is running;
    lookups also treat records past the retention window as absent, so expiry
    holds even where no timer could be scheduled.
    """

    def __init__(
        self,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def create(self, video_url: str, prompt: Optional[str] = None) -> Job:
        """Create a pending job and schedule its purge."""
        now = _utcnow()
        job = Job(
            id=str(uuid.uuid4()),
            status=JobStatus.PENDING,
            video_url=video_url,
            prompt=prompt,
            created_at=now,
            updated_at=now,
        )
        entry = _Entry(job=job, created_monotonic=self._clock())

        with self._lock:
            if job.id in self._entries:
                raise RuntimeError(f"Duplicate job id allocated: {job.id}")
            self._entries[job.id] = entry

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, job {job.id} expires on access")
        else:
            entry.purge_handle = loop.call_later(self.retention_seconds, self._purge, job.id)

        logger.info(f"Job created: {job.id} for {video_url[:200]}")
        return replace(job)

    def get(self, job_id: str) -> Optional[Job]:
        """Look up a job. Returns None for unknown or expired ids."""
        with self._lock:
            entry = self._live_entry(job_id)
            return replace(entry.job) if entry else None

    def update(self, job_id: str, **fields: Any) -> Optional[Job]:
        """
        Merge fields into a stored job and refresh updated_at.

        Returns None (and logs) when the job is unknown or already purged, or
        when the requested status change is not a valid transition.
        """
        with self._lock:
            entry = self._live_entry(job_id)
            if entry is None:
                logger.warning(f"Job not found for update: {job_id}")
                return None

            current = entry.job
            new_status = fields.get("status")
            if new_status is not None and new_status != current.status:
                if new_status not in ALLOWED_TRANSITIONS[current.status]:
                    logger.warning(
                        f"Ignoring invalid transition for job {job_id}: "
                        f"{current.status.value} -> {JobStatus(new_status).value}"
                    )
                    return None
            elif current.status in TERMINAL_STATUSES:
                logger.warning(f"Ignoring update of terminal job {job_id}")
                return None

            updated_at = max(_utcnow(), current.updated_at)
            entry.job = replace(current, **fields, updated_at=updated_at)
            job = replace(entry.job)

        logger.info(
            f"Job updated: {job_id} status={job.status.value} "
            f"has_result={job.result is not None} has_error={job.error is not None}"
        )
        return job

    def mark_processing(self, job_id: str) -> Optional[Job]:
        return self.update(job_id, status=JobStatus.PROCESSING)

    def mark_completed(
        self,
        job_id: str,
        result: str,
        processing_time: Optional[ProcessingTime] = None,
    ) -> Optional[Job]:
        return self.update(
            job_id,
            status=JobStatus.COMPLETED,
            result=result,
            processing_time=processing_time,
        )

    def mark_failed(self, job_id: str, error: str) -> Optional[Job]:
        return self.update(job_id, status=JobStatus.FAILED, error=error)

    def purge_expired(self) -> int:
        """Remove every record older than the retention window."""
        now = self._clock()
        with self._lock:
            expired = [
                job_id
                for job_id, entry in self._entries.items()
                if now - entry.created_monotonic >= self.retention_seconds
            ]
            for job_id in expired:
                self._remove(job_id)

        if expired:
            logger.debug(f"Purged {len(expired)} expired job(s)")
        return len(expired)

    def close(self) -> None:
        """Cancel pending purge timers."""
        with self._lock:
            for entry in self._entries.values():
                if entry.purge_handle is not None:
                    entry.purge_handle.cancel()
                    entry.purge_handle = None

    def _purge(self, job_id: str) -> None:
        with self._lock:
            removed = self._remove(job_id)
        if removed:
            logger.debug(f"Job cleaned up: {job_id}")

    def _live_entry(self, job_id: str) -> Optional[_Entry]:
        # Caller holds the lock
        entry = self._entries.get(job_id)
        if entry is None:
            return None
        if self._clock() - entry.created_monotonic >= self.retention_seconds:
            self._remove(job_id)
            return None
        return entry

    def _remove(self, job_id: str) -> bool:
        # Caller holds the lock
        entry = self._entries.pop(job_id, None)
        if entry is None:
            return False
        if entry.purge_handle is not None:
            entry.purge_handle.cancel()
        return True
