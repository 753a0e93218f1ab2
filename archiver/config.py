"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # YouTube API
    youtube_api_key: str = ""
    channel_id: str = ""
    api_delay_seconds: float = 0.1  # Pause between video detail batches

    # Database
    database_url: str = "sqlite:///./data/archive.db"
    db_busy_timeout_seconds: float = 2.0  # Longest wait for a locked SQLite file

    # Media storage
    video_storage_path: str = "data/videos"
    video_format: str = "bestvideo[ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best"
    download_delay_seconds: float = 1.0  # Pause between consecutive downloads

    # Sync policy
    comment_refresh_months: int = 6
    sync_cron: str = "0 2 * * *"  # Daily at 2 AM
    scheduler_enabled: bool = True

    # Logging
    log_level: str = "INFO"

    # API Server
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    @property
    def data_dir(self) -> Path:
        """Directory holding the SQLite database file."""
        prefix = "sqlite:///"
        if self.database_url.startswith(prefix):
            return Path(self.database_url[len(prefix):]).parent
        return Path("data")

    @property
    def video_dir(self) -> Path:
        """Get the media storage directory path."""
        return Path(self.video_storage_path)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
