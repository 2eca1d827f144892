"""
Tests for the video downloader and content type correction.
"""

import asyncio
import os

import httpx
import pytest

from app.services.video_downloader import (
    RetrievalError,
    VideoDownloaderService,
    correct_video_mime_type,
    get_extension_for_mime_type,
)

from conftest import VIDEO_BYTES


class TestCorrectVideoMimeType:
    """Tests for the content type heuristic."""

    def test_video_type_kept(self):
        """Test a concrete video type is returned unchanged."""
        assert correct_video_mime_type("https://example.com/a.webm", "video/quicktime") == "video/quicktime"

    def test_parameters_stripped(self):
        """Test parameters and case are normalized."""
        assert correct_video_mime_type("https://example.com/a", "Video/MP4; charset=binary") == "video/mp4"

    def test_known_host_domain(self):
        """Test generic type from a video host becomes mp4."""
        url = "https://v16.tiktokcdn.com/abc/def?token=1"
        assert correct_video_mime_type(url, "application/octet-stream") == "video/mp4"

    def test_url_extension(self):
        """Test generic type corrected from the URL extension."""
        url = "https://cdn.example.com/media/clip.webm"
        assert correct_video_mime_type(url, "application/octet-stream") == "video/webm"

    def test_url_extension_case_insensitive(self):
        """Test extension matching ignores case."""
        url = "https://cdn.example.com/media/CLIP.MOV"
        assert correct_video_mime_type(url, "binary/octet-stream") == "video/quicktime"

    def test_extension_order(self):
        """Test the first extension in table order wins."""
        url = "https://cdn.example.com/clip.avi?fallback=clip.mp4"
        assert correct_video_mime_type(url, "application/octet-stream") == "video/mp4"

    def test_video_path_token(self):
        """Test a video-like path falls back to mp4."""
        url = "https://cdn.example.com/videos/12345"
        assert correct_video_mime_type(url, "application/octet-stream") == "video/mp4"

    def test_generic_without_hints(self):
        """Test generic type is kept when the URL gives no hint."""
        url = "https://files.example.com/download/abc123"
        assert correct_video_mime_type(url, "application/octet-stream") == "application/octet-stream"

    def test_query_string_format_hint(self):
        """Test a bare format token in the query string is recognized."""
        url = "https://cdn.example.com/stream?format=mp4"
        assert correct_video_mime_type(url, "application/octet-stream") == "video/mp4"

    def test_bare_token_order(self):
        """Test bare tokens follow the mp4, webm, mov, avi order."""
        url = "https://cdn.example.com/stream?container=webm&alt=mov"
        assert correct_video_mime_type(url, "binary/octet-stream") == "video/webm"

    def test_non_generic_type_untouched(self):
        """Test non-video, non-generic types are not rewritten."""
        assert correct_video_mime_type("https://example.com/clip.mp4", "text/html") == "text/html"

    def test_missing_type_defaults_to_mp4(self):
        """Test a missing content type defaults to mp4."""
        assert correct_video_mime_type("https://example.com/x", None) == "video/mp4"


class TestGetExtension:
    """Tests for MIME type to extension mapping."""

    @pytest.mark.parametrize(
        "mime_type,extension",
        [
            ("video/mp4", ".mp4"),
            ("video/webm", ".webm"),
            ("video/quicktime", ".mov"),
            ("video/x-msvideo", ".avi"),
            ("video/x-matroska", ".mkv"),
            ("video/3gpp", ".3gp"),
            ("application/octet-stream", ".mp4"),
        ],
    )
    def test_known_types(self, mime_type, extension):
        """Test table lookups."""
        assert get_extension_for_mime_type(mime_type) == extension

    def test_unknown_type(self):
        """Test unknown types default to .mp4."""
        assert get_extension_for_mime_type("text/plain") == ".mp4"


class TestVideoDownloaderService:
    """Tests for VideoDownloaderService."""

    def test_download_corrects_type_and_extension(self, video_downloader, temp_dir):
        """Test a generic response is stored under the corrected extension."""
        result = asyncio.run(
            video_downloader.download_video("https://cdn.example.com/media/clip.webm")
        )

        assert result.mime_type == "video/webm"
        assert result.file_path.endswith(".webm")
        assert result.file_size_bytes == len(VIDEO_BYTES)
        with open(result.file_path, "rb") as f:
            assert f.read() == VIDEO_BYTES
        assert os.listdir(temp_dir) == [os.path.basename(result.file_path)]

    def test_unique_paths(self, video_downloader):
        """Test two downloads of the same URL never share a file."""
        url = "https://cdn.example.com/media/clip.mp4"

        async def download_twice():
            return await asyncio.gather(
                video_downloader.download_video(url),
                video_downloader.download_video(url),
            )

        first, second = asyncio.run(download_twice())
        assert first.file_path != second.file_path
        assert os.path.exists(first.file_path)
        assert os.path.exists(second.file_path)

    def test_head_failure_not_fatal(self, temp_dir):
        """Test a rejected HEAD request falls back to the GET content type."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "HEAD":
                return httpx.Response(405)
            return httpx.Response(
                200,
                content=VIDEO_BYTES,
                headers={"content-type": "video/quicktime"},
            )

        downloader = VideoDownloaderService(
            temp_dir=temp_dir,
            transport=httpx.MockTransport(handler),
        )
        result = asyncio.run(downloader.download_video("https://example.com/watch/1"))

        assert result.mime_type == "video/quicktime"
        assert result.file_path.endswith(".mov")

    def test_http_error_raises(self, video_downloader, temp_dir):
        """Test a non-success status raises RetrievalError and leaves no file."""
        with pytest.raises(RetrievalError, match="HTTP 404"):
            asyncio.run(video_downloader.download_video("https://cdn.example.com/missing.mp4"))

        assert os.listdir(temp_dir) == []

    def test_connection_error_raises(self, temp_dir):
        """Test a network failure raises RetrievalError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        downloader = VideoDownloaderService(
            temp_dir=temp_dir,
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(RetrievalError):
            asyncio.run(downloader.download_video("https://unreachable.example.com/a.mp4"))

        assert os.listdir(temp_dir) == []

    def test_cleanup_file(self, video_downloader, temp_dir):
        """Test cleanup removes the file and tolerates missing paths."""
        path = os.path.join(temp_dir, "leftover.mp4")
        with open(path, "wb") as f:
            f.write(b"data")

        video_downloader.cleanup_file(path)
        assert not os.path.exists(path)

        video_downloader.cleanup_file(path)
        video_downloader.cleanup_file(None)

    def test_cleanup_temp_dir(self, video_downloader, temp_dir):
        """Test shutdown cleanup empties the temp directory."""
        for name in ("a.mp4", "b.tmp"):
            with open(os.path.join(temp_dir, name), "wb") as f:
                f.write(b"data")

        video_downloader.cleanup_temp_dir()
        assert os.listdir(temp_dir) == []

    def test_malformed_content_length(self, temp_dir):
        """Test a bad Content-Length is treated as unknown size."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=VIDEO_BYTES,
                headers={"content-type": "video/mp4", "content-length": "abc"},
            )

        downloader = VideoDownloaderService(
            temp_dir=temp_dir,
            transport=httpx.MockTransport(handler),
        )
        result = asyncio.run(downloader.download_video("https://cdn.example.com/a.mp4"))

        assert result.mime_type == "video/mp4"
        assert result.file_size_bytes == len(VIDEO_BYTES)

    def test_invalid_url_raises(self, temp_dir):
        """Test an unusable URL surfaces as RetrievalError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")

        downloader = VideoDownloaderService(
            temp_dir=temp_dir,
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(RetrievalError):
            asyncio.run(downloader.download_video("https://cdn.example.com/a.mp4"))

        assert os.listdir(temp_dir) == []

    def test_cancelled_download_removes_partial_file(self, temp_dir):
        """Test cancelling mid-transfer leaves no partial file behind."""
        started = asyncio.Event()

        async def slow_body():
            yield VIDEO_BYTES
            started.set()
            await asyncio.sleep(60)
            yield VIDEO_BYTES

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "HEAD":
                return httpx.Response(200, headers={"content-type": "video/mp4"})
            return httpx.Response(200, content=slow_body(), headers={"content-type": "video/mp4"})

        downloader = VideoDownloaderService(
            temp_dir=temp_dir,
            transport=httpx.MockTransport(handler),
        )

        async def scenario():
            task = asyncio.create_task(
                downloader.download_video("https://cdn.example.com/a.mp4")
            )
            await asyncio.wait_for(started.wait(), timeout=5)
            assert len(os.listdir(temp_dir)) == 1
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert os.listdir(temp_dir) == []
