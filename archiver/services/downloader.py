"""Video downloader storing one media file per YouTube video."""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yt_dlp

from archiver.config import get_settings
from archiver.services.async_utils import run_in_thread

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 100
# Leaves room for the id prefix and yt-dlp temp suffixes under the 255-byte limit
MAX_FILENAME_BYTES = 150

_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
_WHITESPACE = re.compile(r"\s+")


def sanitize_filename(title: str) -> str:
    """
    Make a video title safe for use in a filename.

    Removes characters that are illegal in paths, replaces whitespace runs
    with underscores and caps the length in characters and in UTF-8 bytes.
    The same title always maps to the same name.
    """
    sanitized = _ILLEGAL_CHARS.sub("", title or "")
    sanitized = _WHITESPACE.sub("_", sanitized.strip())
    sanitized = sanitized[:MAX_FILENAME_LENGTH]
    # Cutting the encoded form may split a character; drop the partial bytes
    sanitized = sanitized.encode("utf-8")[:MAX_FILENAME_BYTES].decode("utf-8", errors="ignore")
    return sanitized or "untitled"


@dataclass
class DownloadResult:
    """Outcome of a single video download."""

    video_id: str
    success: bool
    file_path: Optional[str] = None
    error: Optional[str] = None


class VideoDownloader:
    """Downloads videos with yt-dlp into a flat directory keyed by video ID."""

    def __init__(
        self,
        output_dir: Optional[Path] = None,
        delay_seconds: Optional[float] = None,
        video_format: Optional[str] = None,
    ):
        """
        Initialize the downloader.

        Args:
            output_dir: Directory for media files (defaults to configured path)
            delay_seconds: Minimum pause between consecutive downloads
            video_format: yt-dlp format selector
        """
        settings = get_settings()
        self.output_dir = Path(output_dir) if output_dir else settings.video_dir
        self.delay_seconds = (
            settings.download_delay_seconds if delay_seconds is None else delay_seconds
        )
        self.video_format = video_format or settings.video_format
        self._last_download_at: Optional[float] = None

    def ensure_output_dir(self) -> None:
        """Create the output directory if it does not exist."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _build_options(self, video_id: str, title: str) -> dict:
        stem = f"{video_id}-{sanitize_filename(title)}"
        return {
            "format": self.video_format,
            "outtmpl": str(self.output_dir / f"{stem}.%(ext)s"),
            "merge_output_format": "mp4",
            "writethumbnail": True,
            "writeinfojson": False,
            "noplaylist": True,
            "quiet": True,
            "no_warnings": True,
            "postprocessors": [{"key": "FFmpegMetadata"}],
        }

    def download_video(self, video_id: str, title: str) -> DownloadResult:
        """
        Download a single video.

        Failures (network, unavailable format, disk) are returned as an
        unsuccessful DownloadResult rather than raised.
        """
        url = f"https://www.youtube.com/watch?v={video_id}"
        expected_path = self.output_dir / f"{video_id}-{sanitize_filename(title)}.mp4"

        logger.info(f"Starting download for: {title} ({video_id})")

        try:
            self.ensure_output_dir()
            with yt_dlp.YoutubeDL(self._build_options(video_id, title)) as ydl:
                ydl.download([url])
        except Exception as e:
            logger.error(f"Error downloading video {video_id}: {e}")
            return DownloadResult(video_id=video_id, success=False, error=str(e))

        file_path = expected_path if expected_path.exists() else self.locate(video_id)
        if file_path is None:
            error = "Download finished but no media file was written"
            logger.error(f"Error downloading video {video_id}: {error}")
            return DownloadResult(video_id=video_id, success=False, error=error)

        logger.info(f"Download completed: {title}")
        return DownloadResult(video_id=video_id, success=True, file_path=str(file_path))

    async def acquire(self, video_id: str, title: str) -> DownloadResult:
        """Download a video in a worker thread, pacing consecutive downloads."""
        if self._last_download_at is not None and self.delay_seconds > 0:
            remaining = self.delay_seconds - (time.monotonic() - self._last_download_at)
            if remaining > 0:
                await asyncio.sleep(remaining)

        try:
            return await run_in_thread(self.download_video, video_id, title)
        finally:
            self._last_download_at = time.monotonic()

    def _files_for(self, video_id: str) -> list[Path]:
        if not self.output_dir.is_dir():
            return []
        prefix = f"{video_id}-"
        return sorted(p for p in self.output_dir.iterdir() if p.name.startswith(prefix))

    def exists(self, video_id: str) -> bool:
        """Check if any file for a video exists."""
        return bool(self._files_for(video_id))

    def locate(self, video_id: str) -> Optional[Path]:
        """Get the media file path for a downloaded video."""
        for path in self._files_for(video_id):
            if path.suffix == ".mp4":
                return path
        return None

    def get_storage_stats(self) -> dict:
        """Get disk usage statistics for stored videos."""
        total_size = 0
        video_count = 0

        if self.output_dir.is_dir():
            for path in self.output_dir.glob("*.mp4"):
                total_size += path.stat().st_size
                video_count += 1

        return {
            "video_count": video_count,
            "total_size_bytes": total_size,
            "total_size_gb": round(total_size / (1024**3), 2),
        }
