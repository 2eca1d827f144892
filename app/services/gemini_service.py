"""
Gemini Service - Submits videos to the Gemini Files API and requests an analysis.

Uploaded files are processed remotely before they can be referenced in a
prompt, so the service polls the file state on a fixed interval and gives up
once the attempt budget is exhausted.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


FILE_STATE_ACTIVE = "ACTIVE"
FILE_STATE_FAILED = "FAILED"

UPLOAD_CHUNK_SIZE = 1024 * 1024


@dataclass
class GeminiFile:
    """A file uploaded to the Gemini Files API."""

    name: str
    uri: str
    mime_type: str
    state: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "GeminiFile":
        return cls(
            name=data.get("name", ""),
            uri=data.get("uri", ""),
            mime_type=data.get("mimeType", ""),
            state=data.get("state"),
        )


@dataclass
class AnalysisResult:
    """Outcome of a single video analysis."""

    text: Optional[str]
    upload_ms: int = 0
    processing_ms: int = 0


async def _iter_file(file_path: str) -> AsyncIterator[bytes]:
    with open(file_path, "rb") as f:
        while chunk := f.read(UPLOAD_CHUNK_SIZE):
            yield chunk


class GeminiService:
    """
    Client for video analysis with Gemini.

    Features:
    - Resumable upload of local video files
    - Bounded readiness polling (interval x attempts)
    - Single-turn generation over the uploaded file and an instruction
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval_seconds: Optional[float] = None,
        max_poll_attempts: Optional[int] = None,
    ):
        self.settings = get_settings()
        self.api_key = api_key or self.settings.google_api_key
        self.poll_interval_seconds = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else self.settings.poll_interval_seconds
        )
        self.max_poll_attempts = max_poll_attempts or self.settings.max_poll_attempts
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

        if not self.api_key:
            logger.warning("GOOGLE_API_KEY not set, video analysis will fail")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.settings.gemini_base_url,
                timeout=httpx.Timeout(300.0, connect=30.0),
                headers={"x-goog-api-key": self.api_key or ""},
                transport=self._transport,
            )
        return self._http_client

    async def _send(self, action: str, method: str, url: str, **kwargs) -> dict:
        """Send a request and return the JSON body, raising SubmissionError on failure."""
        client = await self._get_client()
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise SubmissionError(f"Gemini {action} request failed: {e}") from e

        if response.status_code != 200:
            raise SubmissionError(
                f"Gemini {action} error ({response.status_code}): {response.text[:500]}"
            )
        return response.json() if response.content else {}

    async def upload_file(self, file_path: str, mime_type: str) -> GeminiFile:
        """
        Upload a local file with the resumable upload protocol.

        Args:
            file_path: Path to the video file
            mime_type: MIME type of the video

        Returns:
            The uploaded GeminiFile (usually still PROCESSING)
        """
        if not os.path.isfile(file_path):
            raise SubmissionError(f"Video file not found: {file_path}")

        file_size = os.path.getsize(file_path)
        client = await self._get_client()

        try:
            start = await client.post(
                "/upload/v1beta/files",
                headers={
                    "X-Goog-Upload-Protocol": "resumable",
                    "X-Goog-Upload-Command": "start",
                    "X-Goog-Upload-Header-Content-Length": str(file_size),
                    "X-Goog-Upload-Header-Content-Type": mime_type,
                },
                json={"file": {"display_name": os.path.basename(file_path)}},
            )
        except httpx.HTTPError as e:
            raise SubmissionError(f"Gemini upload request failed: {e}") from e

        upload_url = start.headers.get("x-goog-upload-url")
        if start.status_code != 200 or not upload_url:
            raise SubmissionError(
                f"Gemini upload error ({start.status_code}): {start.text[:500]}"
            )

        data = await self._send(
            "upload",
            "POST",
            upload_url,
            headers={
                "Content-Length": str(file_size),
                "X-Goog-Upload-Offset": "0",
                "X-Goog-Upload-Command": "upload, finalize",
            },
            content=_iter_file(file_path),
        )

        uploaded = GeminiFile.from_api(data.get("file", {}))
        if not uploaded.name:
            raise SubmissionError("Gemini upload returned no file name")

        logger.debug(f"Uploaded {file_path} as {uploaded.name} ({file_size} bytes)")
        return uploaded

    async def get_file(self, name: str) -> GeminiFile:
        """Fetch the current state of an uploaded file."""
        data = await self._send("file status", "GET", f"/v1beta/{name}")
        return GeminiFile.from_api(data)

    async def wait_until_active(self, uploaded: GeminiFile) -> GeminiFile:
        """
        Poll until the uploaded file is ACTIVE.

        Raises:
            SubmissionError: If the file enters the FAILED state or a poll fails
            AnalysisTimeoutError: If the file is not ACTIVE within the attempt budget
        """
        for attempt in range(1, self.max_poll_attempts + 1):
            current = await self.get_file(uploaded.name)

            if current.state == FILE_STATE_ACTIVE:
                logger.debug(f"Video file {uploaded.name} is active after {attempt} poll(s)")
                return current

            if current.state == FILE_STATE_FAILED:
                raise SubmissionError(f"Gemini failed to process video file {uploaded.name}")

            logger.debug(
                f"Video file {uploaded.name} not ready (state={current.state}, "
                f"attempt {attempt}/{self.max_poll_attempts})"
            )
            if attempt < self.max_poll_attempts:
                await asyncio.sleep(self.poll_interval_seconds)

        logger.error(f"Video file {uploaded.name} did not become active within the timeout period")
        raise AnalysisTimeoutError(
            f"Timeout waiting for video file to become active "
            f"({self.max_poll_attempts} polls at {self.poll_interval_seconds:g}s)"
        )

    async def generate_content(self, uploaded: GeminiFile, prompt: str) -> Optional[str]:
        """Ask the model to analyze the uploaded file. Returns None when no text comes back."""
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {
                            "file_data": {
                                "mime_type": uploaded.mime_type,
                                "file_uri": uploaded.uri,
                            }
                        },
                        {"text": prompt},
                    ],
                }
            ]
        }

        data = await self._send(
            "generation",
            "POST",
            f"/v1beta/models/{self.settings.gemini_model}:generateContent",
            json=payload,
        )

        candidates = data.get("candidates") or []
        if not candidates:
            return None

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        return text or None

    async def process_video(
        self,
        file_path: str,
        mime_type: str,
        prompt: str,
    ) -> AnalysisResult:
        """
        Upload a video, wait for it to become active and analyze it.

        Args:
            file_path: Path to the video file
            mime_type: MIME type of the video
            prompt: Analysis instruction

        Returns:
            AnalysisResult with the text (or None) and measured stage times
        """
        start_time = time.monotonic()

        try:
            logger.debug(f"Uploading video to Gemini: {file_path}")
            uploaded = await self.upload_file(file_path, mime_type)
            upload_done = time.monotonic()

            active = await self.wait_until_active(uploaded)

            logger.debug(f"Sending video to {self.settings.gemini_model} for analysis")
            text = await self.generate_content(active, prompt)
        except GeminiError:
            logger.error(
                f"Video processing failed for {file_path} after "
                f"{time.monotonic() - start_time:.1f}s"
            )
            raise

        end_time = time.monotonic()
        logger.debug(f"Video processed in {end_time - start_time:.1f}s")

        return AnalysisResult(
            text=text,
            upload_ms=int((upload_done - start_time) * 1000),
            processing_ms=int((end_time - upload_done) * 1000),
        )

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()


class GeminiError(Exception):
    """Base exception for Gemini analysis failures."""
    pass


class SubmissionError(GeminiError):
    """Exception raised when upload or generation is rejected."""
    pass


class AnalysisTimeoutError(GeminiError, TimeoutError):
    """Exception raised when an uploaded file never becomes ready."""
    pass
