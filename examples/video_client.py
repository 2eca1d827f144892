#!/usr/bin/env python3
"""
Video Recognition API - Command-line client.

Submits a video for analysis and waits for the result. By default the async
job API is used (POST /api/jobs, then poll GET /api/jobs/{jobId}) so long
videos never hit a request timeout.

Usage Examples:
    # Analyze a video with the default prompt
    python video_client.py --video-url https://example.com/video.mp4

    # Custom prompt
    python video_client.py --video-url https://example.com/video.mp4 --prompt "List every speaker"

    # Short video, single request
    python video_client.py --video-url https://example.com/clip.mp4 --sync

    # Check a job submitted earlier
    python video_client.py --job-id JOB_ID

    # Just check API health
    python video_client.py --health-only
"""

import argparse
import os
import sys
import time
from datetime import datetime
from typing import Optional

import requests
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# ============================================================================
# Configuration
# ============================================================================

class ClientConfig:
    """Client configuration loaded from environment and defaults."""

    BASE_URL = os.getenv("VIDEO_API_URL", "http://localhost:8000")
    API_KEY = os.getenv("VIDEO_API_KEY", "")

    # Polling configuration (matches the server's 10 minute analysis ceiling)
    POLL_INTERVAL = 10  # seconds
    MAX_POLL_ATTEMPTS = 60

    # Synchronous requests can take as long as the full pipeline
    SYNC_TIMEOUT = 900  # seconds


# ============================================================================
# API Client
# ============================================================================

class VideoAPIClient:
    """Client for interacting with the Video Recognition API."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        self.base_url = (base_url or ClientConfig.BASE_URL).rstrip("/")
        self.api_key = api_key or ClientConfig.API_KEY
        self.session = requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
        })

    def health_check(self) -> dict:
        """Check API health status."""
        response = self.session.get(f"{self.base_url}/health", timeout=10)
        response.raise_for_status()
        return response.json()

    def process_video(self, video_url: str, prompt: Optional[str] = None) -> dict:
        """Analyze a video in a single request."""
        response = self.session.post(
            f"{self.base_url}/api/process-video",
            json=self._payload(video_url, prompt),
            timeout=ClientConfig.SYNC_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()

    def create_job(self, video_url: str, prompt: Optional[str] = None) -> dict:
        """Submit an analysis job."""
        response = self.session.post(
            f"{self.base_url}/api/jobs",
            json=self._payload(video_url, prompt),
            timeout=30,
        )
        response.raise_for_status()
        return response.json()

    def get_job_status(self, job_id: str) -> dict:
        """Get job status and result."""
        response = self.session.get(f"{self.base_url}/api/jobs/{job_id}", timeout=30)
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _payload(video_url: str, prompt: Optional[str]) -> dict:
        payload = {"videoUrl": video_url}
        if prompt:
            payload["prompt"] = prompt
        return payload


# ============================================================================
# Output helpers
# ============================================================================

def print_status(message: str, status: str = "INFO"):
    """Print status message with timestamp."""
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] [{status:<7}] {message}")


def print_result(data: dict):
    """Print analysis text and stage timings."""
    print("\n" + "=" * 80)
    print(" RESULT")
    print("=" * 80)
    print(data.get("result", ""))

    timing = data.get("processingTime")
    if timing:
        print("\nProcessing times:")
        print(f"  - Download:   {timing['download']}ms")
        print(f"  - Upload:     {timing['upload']}ms")
        print(f"  - Processing: {timing['processing']}ms")
        print(f"  - Total:      {timing['total']}ms ({round(timing['total'] / 1000)}s)")


def poll_job(client: VideoAPIClient, job_id: str) -> Optional[dict]:
    """Poll a job until it completes, fails, or the attempt budget runs out."""
    start_time = time.time()
    last_status = ""

    for attempt in range(1, ClientConfig.MAX_POLL_ATTEMPTS + 1):
        status = client.get_job_status(job_id)
        job_status = status.get("status", "")

        if job_status != last_status:
            elapsed = time.time() - start_time
            print_status(f"[{elapsed:6.1f}s] {job_status} (attempt {attempt})", "POLL")
            last_status = job_status

        if job_status == "completed":
            return status
        if job_status == "failed":
            print_status(f"Job failed: {status.get('error')}", "ERROR")
            return None

        time.sleep(ClientConfig.POLL_INTERVAL)

    print_status("Job did not finish within 10 minutes", "ERROR")
    return None


# ============================================================================
# CLI Entry Point
# ============================================================================

def run_health_check(client: VideoAPIClient) -> bool:
    """Run health check and print results."""
    try:
        health = client.health_check()
        print_status(f"API status: {health.get('status', 'unknown')}")
        return health.get("status") == "healthy"
    except requests.RequestException as e:
        print_status(f"Health check failed: {e}", "ERROR")
        return False


def main():
    parser = argparse.ArgumentParser(
        description="Video Recognition API client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration (via environment or .env):
  VIDEO_API_URL    API base URL (default: http://localhost:8000)
  VIDEO_API_KEY    API key for authentication
        """,
    )
    parser.add_argument("--video-url", type=str, help="URL of the video to analyze")
    parser.add_argument("--prompt", type=str, default=None, help="Custom analysis prompt")
    parser.add_argument("--api-url", type=str, default=None, help="Override VIDEO_API_URL")
    parser.add_argument("--api-key", type=str, default=None, help="Override VIDEO_API_KEY")
    parser.add_argument("--sync", action="store_true",
                        help="Use the synchronous endpoint (short videos only)")
    parser.add_argument("--job-id", type=str, default=None,
                        help="Poll an existing job instead of submitting a new one")
    parser.add_argument("--health-only", action="store_true", help="Only run health check")

    args = parser.parse_args()
    client = VideoAPIClient(base_url=args.api_url, api_key=args.api_key)

    if args.health_only:
        sys.exit(0 if run_health_check(client) else 1)

    if args.job_id:
        output = poll_job(client, args.job_id)
        if not output:
            sys.exit(1)
        print_result(output)
        return

    if not args.video_url:
        parser.error("--video-url is required")

    try:
        if args.sync:
            print_status(f"Processing video synchronously: {args.video_url}")
            output = client.process_video(args.video_url, args.prompt)
        else:
            job = client.create_job(args.video_url, args.prompt)
            print_status(f"Job created: {job['jobId']}", "SUCCESS")
            output = poll_job(client, job["jobId"])
    except requests.HTTPError as e:
        body = e.response.text if e.response is not None else "N/A"
        print_status(f"Request failed: {e} - {body}", "ERROR")
        sys.exit(1)

    if not output:
        sys.exit(1)

    print_result(output)


if __name__ == "__main__":
    main()
