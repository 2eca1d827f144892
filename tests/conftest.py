"""
Pytest configuration and fixtures.
"""

import os
import sys

import httpx
import pytest

# Add app directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.config import get_settings
from app.services.job_store import JobStore
from app.services.video_downloader import VideoDownloaderService


VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 4096


class RecordingJobStore(JobStore):
    """JobStore that remembers every status a job passed through."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.history: dict[str, list] = {}

    def create(self, video_url, prompt=None):
        job = super().create(video_url, prompt)
        self.history[job.id] = [job.status]
        return job

    def update(self, job_id, **fields):
        job = super().update(job_id, **fields)
        if job is not None:
            self.history[job_id].append(job.status)
        return job


def video_handler(request: httpx.Request) -> httpx.Response:
    """Serve a small binary body for any URL, 404 for paths containing 'missing'."""
    if "missing" in request.url.path:
        return httpx.Response(404, text="not found")
    return httpx.Response(
        200,
        content=b"" if request.method == "HEAD" else VIDEO_BYTES,
        headers={"content-type": "application/octet-stream"},
    )


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Start every test from default settings."""
    for name in ("API_KEY", "GOOGLE_API_KEY", "VIDEO_PROMPT", "TEMP_DIR"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def temp_dir(tmp_path):
    """Per-test directory for downloaded videos."""
    path = tmp_path / "videos"
    path.mkdir()
    return str(path)


@pytest.fixture
def video_downloader(temp_dir):
    """Downloader backed by a mock transport instead of the network."""
    return VideoDownloaderService(
        temp_dir=temp_dir,
        transport=httpx.MockTransport(video_handler),
    )


@pytest.fixture
def job_store():
    """Job store that records status history."""
    return RecordingJobStore()
