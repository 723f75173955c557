"""Application configuration."""

import os
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

TRANSCODE_PROFILES = {"mp4", "webm_alpha", "photo_overlay"}
ACCESS_CODE_BACKENDS = {"file", "supabase"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    github_token: str
    github_owner: str
    github_repo: str
    github_branch: str | None = None
    github_api_url: str = "https://api.github.com"
    publish_namespace: str = "clients"
    admin_token: str
    public_base_url: str | None = None
    clients_dir: Path = Path("clients")
    codes_path: Path = Path("codes.json")
    access_code_backend: str = "file"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    marker_required: bool = True
    fallback_marker_url: str | None = None
    video_size_budget_bytes: int = 5 * 1024 * 1024
    transcode_enabled: bool = True
    transcode_profile: str = "mp4"
    transcode_initial_bitrate_kbps: int = 1000
    transcode_floor_bitrate_kbps: int = 300
    transcode_step_kbps: int = 200
    transcode_max_concurrency: int = 2
    transcode_timeout_seconds: float = 900
    ffmpeg_binary: str = "ffmpeg"
    encode_timeout_seconds: float = 300
    publish_max_attempts: int = 3
    publish_backoff_seconds: float = 0.5
    publish_max_concurrency: int = 1
    publish_timeout_seconds: float = 300
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_consistency(self) -> "Settings":
        if self.transcode_step_kbps <= 0:
            raise ValueError("transcode_step_kbps must be positive")
        if not 0 < self.transcode_floor_bitrate_kbps <= (
            self.transcode_initial_bitrate_kbps
        ):
            raise ValueError(
                "transcode_floor_bitrate_kbps must be positive and not exceed "
                "transcode_initial_bitrate_kbps"
            )
        if self.transcode_profile not in TRANSCODE_PROFILES:
            raise ValueError(f"Unknown transcode profile: {self.transcode_profile}")
        if self.access_code_backend not in ACCESS_CODE_BACKENDS:
            raise ValueError(
                f"Unknown access code backend: {self.access_code_backend}"
            )
        if self.access_code_backend == "supabase" and not (
            self.supabase_url and self.supabase_service_key
        ):
            raise ValueError("Supabase backend requires url and service key")
        if not self.marker_required and not self.fallback_marker_url:
            raise ValueError("fallback_marker_url is required when marker is optional")
        return self


def publish_base_url(settings: Settings) -> str | None:
    """Return the public root of the published namespace, if configured."""
    if settings.public_base_url is None:
        return None
    cleaned = settings.public_base_url.strip().rstrip("/")
    if not cleaned:
        return None
    return f"{cleaned}/{settings.publish_namespace.strip('/')}"
