"""
Configuration module using Pydantic Settings for environment variable management.

Only essential environment variables are exposed. Timeouts, poll budgets and
retention windows are hardcoded because clients depend on them.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


DEFAULT_VIDEO_PROMPT = (
    "Outline this video content in full detail. Give a general concise summary "
    "and then a full chronological breakdown of different scenes/parts/events."
)


class Settings(BaseSettings):
    """
    Application settings.

    Only essential configuration is loaded from environment variables.
    All pipeline timing settings are hardcoded for consistency.
    """

    # ============================================================
    # ENVIRONMENT VARIABLES (minimal set)
    # ============================================================

    # Application
    app_name: str = "video-recognition-api"
    debug: bool = False
    log_level: str = "INFO"

    # API Keys
    google_api_key: Optional[str] = None  # Required, validated at startup
    api_key: Optional[str] = None  # Shared key for incoming requests

    # CORS
    allowed_origins: str = "*"  # Comma-separated list

    # Analysis
    video_prompt: str = DEFAULT_VIDEO_PROMPT
    temp_dir: str = "./temp"

    # Performance tuning
    max_workers: int = 4  # Max concurrent analysis pipelines

    # Rate limiting for /api/* (per client IP)
    rate_limit_window_ms: int = 900000  # 15 minutes
    rate_limit_max_requests: int = 100

    # ============================================================
    # HARDCODED SETTINGS (not configurable via env vars)
    # ============================================================

    @property
    def max_concurrent_jobs(self) -> int:
        return self.max_workers

    @property
    def api_rate_limit(self) -> str:
        """Limit string in the `limits` notation, e.g. '100/900 seconds'."""
        window_seconds = max(self.rate_limit_window_ms // 1000, 1)
        return f"{self.rate_limit_max_requests}/{window_seconds} seconds"

    # Gemini configuration
    @property
    def gemini_base_url(self) -> str:
        return "https://generativelanguage.googleapis.com"

    @property
    def gemini_model(self) -> str:
        return "gemini-2.5-pro"

    # Download configuration
    @property
    def download_timeout_seconds(self) -> float:
        return 300.0  # 5 minutes

    @property
    def head_timeout_seconds(self) -> float:
        return 10.0

    # Readiness polling (60 * 10s = 10 minute ceiling)
    @property
    def poll_interval_seconds(self) -> float:
        return 10.0

    @property
    def max_poll_attempts(self) -> int:
        return 60

    # Job store
    @property
    def job_retention_seconds(self) -> float:
        return 3600.0  # 1 hour

    @property
    def shutdown_grace_seconds(self) -> float:
        return 10.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def get_allowed_origins(self) -> list[str]:
        """Parse the comma-separated CORS origins."""
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return origins or ["*"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
