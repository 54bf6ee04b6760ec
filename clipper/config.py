"""
Configuration module using Pydantic Settings for environment variable management.

Only deployment-specific values are exposed as environment variables. Encoder
and process-management settings are hardcoded for consistent output.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


# Aspect ratios the editor offers. "original" means no crop.
SUPPORTED_ASPECT_RATIOS = ("9:16", "16:9", "1:1", "4:3", "original")


class Settings(BaseSettings):
    """
    Application settings.

    Only essential configuration is loaded from environment variables.
    All encoding settings are hardcoded for consistency.
    """

    # ============================================================
    # ENVIRONMENT VARIABLES
    # ============================================================

    # Application
    app_name: str = "clipper-export"
    debug: bool = False
    log_level: str = "INFO"

    # Filesystem layout (directories are shared with the download service)
    input_directory: str = "./temp-videos"
    output_directory: str = "./exports"

    # Base URL used to build artifact access URLs
    public_base_url: str = "http://localhost:3001"

    # Frontend origins allowed by CORS
    cors_origins: list[str] = ["http://localhost:5173"]

    # Security - API authentication (disabled when unset)
    clipper_api_key: Optional[str] = None

    # External engine
    ffmpeg_path: str = "ffmpeg"
    drawtext_font_file: Optional[str] = None  # Font for text overlays, system default if unset

    # Performance tuning
    max_render_workers: int = 3  # Max concurrent FFmpeg render processes
    render_timeout_seconds: float = 120.0

    # Stale file cleanup
    file_max_age_seconds: int = 7200  # 2 hours
    cleanup_interval_seconds: int = 1800  # 30 minutes

    # ============================================================
    # HARDCODED SETTINGS (not configurable via env vars)
    # ============================================================

    # Rendering Configuration
    @property
    def ffmpeg_preset(self) -> str:
        return "fast"

    @property
    def ffmpeg_crf(self) -> int:
        return 22

    @property
    def audio_codec(self) -> str:
        return "aac"

    @property
    def audio_bitrate(self) -> str:
        return "128k"

    # Single atempo stage range
    @property
    def min_audio_tempo(self) -> float:
        return 0.5

    @property
    def max_audio_tempo(self) -> float:
        return 2.0

    # Process management
    @property
    def kill_grace_seconds(self) -> float:
        return 3.0  # SIGTERM -> SIGKILL delay

    @property
    def stderr_tail_chars(self) -> int:
        return 1000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
