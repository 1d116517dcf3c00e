"""
Settings Configuration
Pydantic-validated settings for the creative session service.
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class BackendSettings(BaseSettings):
    """Studio backend (AI generation, render, scoring APIs)"""
    base_url: str = Field(default="", description="Backend base URL")
    api_key: Optional[str] = Field(default=None, description="Bearer token sent to the backend")
    timeout_s: float = Field(default=30.0, description="Request timeout (seconds)")
    max_retries: int = Field(default=2, description="Transport retries for idempotent reads")

    class Config:
        env_prefix = "STUDIO_BACKEND_"


class PollingSettings(BaseSettings):
    """Render job polling schedule"""
    initial_interval: float = Field(default=5.0, description="Seconds between ticks before backoff")
    backoff_interval: float = Field(default=10.0, description="Seconds between ticks after backoff")
    backoff_after_ticks: int = Field(default=12, description="Ticks run before switching to backoff_interval")
    refetch_delay: float = Field(default=0.5, description="Delay before the full refetch on a terminal status")
    max_ticks: int = Field(default=120, description="Give up after this many ticks")

    class Config:
        env_prefix = "STUDIO_POLL_"


class VideoSettings(BaseSettings):
    """Video offer defaults"""
    test_render_seconds: int = Field(default=10, description="Fixed test render duration")
    default_budget_band: str = Field(default="$5-$25", description="Initial budget band")
    default_quality_tier: str = Field(default="balanced", description="Initial quality tier")
    default_duration_seconds: int = Field(default=10, description="Initial full render duration")
    default_aspect_ratio: str = Field(default="16:9", description="Initial aspect ratio")
    video_content_types: List[str] = Field(
        default_factory=lambda: ["video", "reel", "short"],
        description="Content types that get the video offer after polishing",
    )

    class Config:
        env_prefix = "STUDIO_VIDEO_"


class SessionSettings(BaseSettings):
    """Creative session behaviour"""
    thinking_log_limit: int = Field(default=200, description="Thinking entries kept per session")
    fallback_greeting: str = Field(
        default="Hey! I'm Mia, your creative partner. Let's make something great together.",
        description="Greeting used when the context call fails",
    )

    class Config:
        env_prefix = "STUDIO_SESSION_"


class LoggingSettings(BaseSettings):
    """Logging"""
    level: str = Field(default="INFO", description="Log level")
    log_file: Optional[str] = Field(default=None, description="Optional log file under logs/")
    use_rich: bool = Field(default=True, description="Rich console output")

    class Config:
        env_prefix = "STUDIO_LOG_"


class Settings(BaseSettings):
    """Aggregate settings"""

    backend: BackendSettings = Field(default_factory=BackendSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    video: VideoSettings = Field(default_factory=VideoSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings after applying a .env file (config/.env by default)."""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            backend=BackendSettings(),
            polling=PollingSettings(),
            video=VideoSettings(),
            session=SessionSettings(),
            logging=LoggingSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings singleton"""
    return Settings.load_from_env_file()


def get_backend_settings() -> BackendSettings:
    return get_settings().backend

