"""
Tests for the in-memory job store.
"""

import asyncio

import pytest

from app.services.job_store import JobStatus, JobStore, ProcessingTime


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return JobStore(retention_seconds=3600, clock=clock)


class TestJobLifecycle:
    """Tests for job creation and status transitions."""

    def test_create_pending(self, store):
        """Test new jobs start pending with no outcome."""
        job = store.create("https://example.com/a.mp4", "Describe it")

        assert job.status == JobStatus.PENDING
        assert job.video_url == "https://example.com/a.mp4"
        assert job.prompt == "Describe it"
        assert job.result is None
        assert job.error is None
        assert job.processing_time is None
        assert job.created_at == job.updated_at

    def test_unique_ids(self, store):
        """Test every job gets a distinct id."""
        ids = {store.create("https://example.com/a.mp4").id for _ in range(100)}
        assert len(ids) == 100

    def test_get_returns_copy(self, store):
        """Test mutating a returned job does not change the stored record."""
        job = store.create("https://example.com/a.mp4")
        job.status = JobStatus.FAILED

        assert store.get(job.id).status == JobStatus.PENDING

    def test_completed_path(self, store):
        """Test pending -> processing -> completed."""
        job = store.create("https://example.com/a.mp4")
        store.mark_processing(job.id)
        timing = ProcessingTime(download=10, upload=20, processing=30, total=60)
        completed = store.mark_completed(job.id, "A cat", timing)

        assert completed.status == JobStatus.COMPLETED
        assert completed.result == "A cat"
        assert completed.error is None
        assert completed.processing_time == timing
        assert completed.updated_at >= completed.created_at

    def test_failed_path(self, store):
        """Test pending -> processing -> failed."""
        job = store.create("https://example.com/a.mp4")
        store.mark_processing(job.id)
        failed = store.mark_failed(job.id, "Failed to download video: HTTP 404")

        assert failed.status == JobStatus.FAILED
        assert failed.error == "Failed to download video: HTTP 404"
        assert failed.result is None

    def test_cannot_skip_processing(self, store):
        """Test pending jobs cannot jump straight to completed."""
        job = store.create("https://example.com/a.mp4")

        assert store.mark_completed(job.id, "too early") is None
        assert store.get(job.id).status == JobStatus.PENDING

    def test_terminal_is_final(self, store):
        """Test a completed job never changes again."""
        job = store.create("https://example.com/a.mp4")
        store.mark_processing(job.id)
        store.mark_completed(job.id, "A cat")

        assert store.mark_failed(job.id, "late failure") is None
        assert store.mark_processing(job.id) is None
        assert store.update(job.id, result="rewritten") is None

        stored = store.get(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.result == "A cat"
        assert stored.error is None

    def test_update_unknown_job(self, store):
        """Test updating an unknown id is a no-op."""
        assert store.update("no-such-job", status=JobStatus.PROCESSING) is None
        assert store.get("no-such-job") is None

    def test_updated_at_monotonic(self, store):
        """Test updated_at never moves backwards."""
        job = store.create("https://example.com/a.mp4")
        processing = store.mark_processing(job.id)
        failed = store.mark_failed(job.id, "boom")

        assert job.updated_at <= processing.updated_at <= failed.updated_at
        assert failed.created_at == job.created_at


class TestJobExpiry:
    """Tests for retention and purging."""

    def test_visible_within_retention(self, store, clock):
        """Test jobs stay visible until the retention window ends."""
        job = store.create("https://example.com/a.mp4")
        clock.advance(3599)

        assert store.get(job.id) is not None

    def test_expired_job_absent(self, store, clock):
        """Test jobs disappear once the retention window ends."""
        job = store.create("https://example.com/a.mp4")
        clock.advance(3600)

        assert store.get(job.id) is None
        assert len(store) == 0

    def test_update_does_not_extend_retention(self, store, clock):
        """Test retention counts from creation, not the last update."""
        job = store.create("https://example.com/a.mp4")
        clock.advance(3000)
        store.mark_processing(job.id)
        clock.advance(600)

        assert store.mark_failed(job.id, "boom") is None
        assert store.get(job.id) is None

    def test_purge_expired(self, store, clock):
        """Test purge_expired removes only records past retention."""
        old = store.create("https://example.com/old.mp4")
        clock.advance(1800)
        recent = store.create("https://example.com/new.mp4")
        clock.advance(1800)

        assert store.purge_expired() == 1
        assert store.get(old.id) is None
        assert store.get(recent.id) is not None

    def test_scheduled_purge(self):
        """Test records are purged by a timer when an event loop is running."""

        async def scenario():
            store = JobStore(retention_seconds=0.05)
            store.create("https://example.com/a.mp4")
            assert len(store) == 1
            await asyncio.sleep(0.2)
            return len(store)

        assert asyncio.run(scenario()) == 0

    def test_close_cancels_timers(self):
        """Test close stops scheduled purges."""

        async def scenario():
            store = JobStore(retention_seconds=0.05)
            store.create("https://example.com/a.mp4")
            store.close()
            await asyncio.sleep(0.2)
            return len(store)

        assert asyncio.run(scenario()) == 1
