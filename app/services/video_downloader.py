"""
Video Downloader Service - Retrieves remote videos into transient local storage.

Many CDNs and social platforms serve video with a generic or missing
Content-Type header, so the declared type is corrected from URL patterns
before the file is handed to the analysis service.
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


DEFAULT_VIDEO_MIME_TYPE = "video/mp4"
DEFAULT_VIDEO_EXTENSION = ".mp4"
GENERIC_MIME_TYPE = "application/octet-stream"
GENERIC_MIME_TYPES = ("application/octet-stream", "binary/octet-stream")

USER_AGENT = "Mozilla/5.0 (compatible; VideoBot/1.0)"

VIDEO_EXTENSIONS = {
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/ogg": ".ogv",
    "video/quicktime": ".mov",
    "video/x-msvideo": ".avi",
    "video/x-matroska": ".mkv",
    "video/3gpp": ".3gp",
    "video/x-flv": ".flv",
    "application/octet-stream": ".mp4",  # Default for unknown binary
}

# Hosting platforms that serve MP4 under a generic content type
VIDEO_HOST_DOMAINS = (
    "fbcdn.net",
    "facebook.com",
    "instagram.com",
    "cdninstagram.com",
    "youtube.com",
    "ytimg.com",
    "tiktok.com",
    "tiktokcdn.com",
)

# Checked in order, first match wins. Bare tokens also catch format hints
# such as ?format=mp4.
URL_EXTENSION_TYPES = (
    ("mp4", "video/mp4"),
    ("webm", "video/webm"),
    ("mov", "video/quicktime"),
    ("avi", "video/x-msvideo"),
)

VIDEO_PATH_TOKENS = ("video", "v/", "/v?")


def clean_mime_type(mime_type: Optional[str]) -> str:
    """Strip parameters (charset etc.) and normalize case."""
    if not mime_type:
        return ""
    return mime_type.split(";")[0].strip().lower()


def get_extension_for_mime_type(mime_type: str) -> str:
    """Map a MIME type to a file extension, defaulting to .mp4."""
    return VIDEO_EXTENSIONS.get(clean_mime_type(mime_type), DEFAULT_VIDEO_EXTENSION)


def correct_video_mime_type(url: str, declared_mime_type: Optional[str]) -> str:
    """
    Infer a concrete video type when the declared one is generic.

    Args:
        url: Source URL of the video
        declared_mime_type: Content type reported by the server (may be None)

    Returns:
        Cleaned MIME type, corrected from URL patterns where possible
    """
    mime_type = clean_mime_type(declared_mime_type)

    if mime_type.startswith("video/"):
        return mime_type

    if mime_type in GENERIC_MIME_TYPES:
        url_lower = url.lower()

        if any(domain in url_lower for domain in VIDEO_HOST_DOMAINS):
            return DEFAULT_VIDEO_MIME_TYPE

        for token, video_type in URL_EXTENSION_TYPES:
            if token in url_lower:
                return video_type

        if any(token in url_lower for token in VIDEO_PATH_TOKENS):
            return DEFAULT_VIDEO_MIME_TYPE

    return mime_type or DEFAULT_VIDEO_MIME_TYPE


def _parse_content_length(value: Optional[str]) -> int:
    """Content-Length as an int, 0 when missing or malformed (size unknown)."""
    try:
        size = int(value or 0)
    except ValueError:
        logger.debug(f"Ignoring malformed Content-Length: {value!r}")
        return 0
    return max(size, 0)


@dataclass
class DownloadResult:
    """Result of video download operation."""

    file_path: str
    mime_type: str
    file_size_bytes: int = 0


class VideoDownloaderService:
    """
    Service for downloading videos from direct URLs.

    Features:
    - HEAD probe for the declared content type (non-fatal)
    - Streamed download with a bounded total timeout
    - Content type correction from URL patterns
    - Unique per-download file names, so concurrent jobs never collide
    """

    def __init__(
        self,
        temp_dir: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = get_settings()
        self.temp_dir = temp_dir or self.settings.temp_dir
        self._transport = transport
        os.makedirs(self.temp_dir, exist_ok=True)

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.download_timeout_seconds),
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        )

    async def download_video(self, video_url: str) -> DownloadResult:
        """
        Download a video from a URL to a temporary file.

        Args:
            video_url: URL of the video to download

        Returns:
            DownloadResult with the local path and corrected MIME type

        Raises:
            RetrievalError: If the video cannot be fetched or written
        """
        temp_path = os.path.join(self.temp_dir, f"{uuid.uuid4()}.tmp")
        logger.info(f"Starting video download: {video_url[:200]}")

        final_path: Optional[str] = None

        try:
            try:
                async with self._create_client() as client:
                    probed_type = await self._probe_content_type(client, video_url)
                    response_type, size = await asyncio.wait_for(
                        self._stream_to_file(client, video_url, temp_path),
                        timeout=self.settings.download_timeout_seconds,
                    )
            except asyncio.TimeoutError as e:
                logger.error(f"Video download timed out: {video_url[:200]}")
                raise RetrievalError(
                    f"Download timed out after {self.settings.download_timeout_seconds:.0f}s"
                ) from e
            except httpx.HTTPStatusError as e:
                logger.error(f"Video download failed with HTTP {e.response.status_code}: {video_url[:200]}")
                raise RetrievalError(
                    f"Failed to download video: HTTP {e.response.status_code}"
                ) from e
            except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
                logger.error(f"Failed to download video: {e}")
                raise RetrievalError(f"Failed to download video: {e}") from e

            declared_type = response_type or probed_type or GENERIC_MIME_TYPE
            mime_type = correct_video_mime_type(video_url, declared_type)
            if mime_type != clean_mime_type(declared_type):
                logger.info(f"Corrected content type from URL pattern: {declared_type} -> {mime_type}")

            extension = get_extension_for_mime_type(mime_type)
            candidate_path = os.path.join(self.temp_dir, f"{uuid.uuid4()}{extension}")

            try:
                os.replace(temp_path, candidate_path)
            except OSError as e:
                raise RetrievalError(f"Failed to store downloaded video: {e}") from e
            final_path = candidate_path
        finally:
            # Partial downloads never outlive a failed or cancelled call
            if final_path is None:
                self.cleanup_file(temp_path)

        logger.info(
            f"Video downloaded: {final_path} ({size / 1024 / 1024:.1f} MB, {mime_type})"
        )

        return DownloadResult(
            file_path=final_path,
            mime_type=mime_type,
            file_size_bytes=size,
        )

    async def _probe_content_type(
        self,
        client: httpx.AsyncClient,
        video_url: str,
    ) -> Optional[str]:
        """HEAD request for the declared content type. Failures are not fatal."""
        try:
            response = await client.head(video_url, timeout=self.settings.head_timeout_seconds)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"HEAD request failed, will detect type from GET response: {e}")
            return None

        content_type = response.headers.get("content-type")
        logger.debug(f"Content type from HEAD request: {content_type}")
        return content_type

    async def _stream_to_file(
        self,
        client: httpx.AsyncClient,
        video_url: str,
        output_path: str,
    ) -> tuple[Optional[str], int]:
        """Stream the response body to disk. Returns (content type, bytes written)."""
        async with client.stream("GET", video_url) as response:
            response.raise_for_status()

            content_type = response.headers.get("content-type")
            total_bytes = _parse_content_length(response.headers.get("content-length"))
            downloaded = 0
            last_logged_step = 0

            with open(output_path, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)
                    downloaded += len(chunk)

                    if total_bytes > 0:
                        step = int(downloaded * 10 / total_bytes)
                        if step > last_logged_step:
                            last_logged_step = step
                            logger.debug(
                                f"Download progress: {min(step * 10, 100)}% "
                                f"({downloaded}/{total_bytes} bytes)"
                            )

        return content_type, downloaded

    def cleanup_file(self, file_path: Optional[str]) -> None:
        """Delete a file if it exists. Errors are logged, never raised."""
        if not file_path:
            return
        try:
            if os.path.exists(file_path):
                os.remove(file_path)
                logger.debug(f"Cleaned up file: {file_path}")
        except OSError as e:
            logger.error(f"Failed to cleanup file {file_path}: {e}")

    def cleanup_temp_dir(self) -> None:
        """Delete every file left in the temp directory."""
        if not os.path.isdir(self.temp_dir):
            return
        for name in os.listdir(self.temp_dir):
            path = os.path.join(self.temp_dir, name)
            if os.path.isfile(path):
                self.cleanup_file(path)
        logger.info(f"Cleaned up temp directory: {self.temp_dir}")


class RetrievalError(Exception):
    """Exception raised when a remote video cannot be retrieved."""
    pass
