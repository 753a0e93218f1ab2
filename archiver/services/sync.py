"""Sync service for orchestrating channel, video and comment synchronization."""

import asyncio
import calendar
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from archiver.config import get_settings
from archiver.db.database import SessionLocal
from archiver.db.models import Channel, SyncRun, Video
from archiver.services.async_utils import run_in_thread
from archiver.services.downloader import VideoDownloader
from archiver.services.ledger import RunLedger
from archiver.services.processor import ProcessResult, VideoProcessor
from archiver.services.youtube import ChannelInfo, YouTubeService

logger = logging.getLogger(__name__)

PROGRESS_LOG_INTERVAL = 10


class SyncAlreadyRunningError(RuntimeError):
    """Raised when a sync is requested while another one is active."""


class RunLease:
    """Single-slot guard allowing at most one active sync run."""

    def __init__(self):
        self._holder: Optional[str] = None

    @property
    def holder(self) -> Optional[str]:
        return self._holder

    @property
    def held(self) -> bool:
        return self._holder is not None

    def acquire(self, owner: str) -> bool:
        """Take the lease if it is free. Does not block."""
        if self._holder is not None:
            return False
        self._holder = owner
        return True

    def release(self) -> None:
        self._holder = None

    @contextmanager
    def hold(self, owner: str) -> Iterator[None]:
        """Hold the lease for the duration of the block."""
        if not self.acquire(owner):
            raise SyncAlreadyRunningError(f"A {self._holder} sync is already running")
        try:
            yield
        finally:
            self.release()


@dataclass
class SyncSummary:
    """Counters reported by a finished sync run."""

    run_id: int
    sync_type: str
    videos_processed: int = 0
    videos_failed: int = 0
    comments_processed: int = 0


@dataclass
class _Counters:
    videos_processed: int = 0
    videos_failed: int = 0
    comments_processed: int = 0

    def add(self, result: ProcessResult) -> None:
        self.videos_processed += 1
        self.comments_processed += result.comments
        if not result.success:
            self.videos_failed += 1


def months_before(moment: datetime, months: int) -> datetime:
    """Same wall-clock time `months` calendar months earlier, clamping the day."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class SyncCoordinator:
    """
    Coordinates full, incremental and comment-refresh runs for one channel.

    Usage:
        coordinator = SyncCoordinator()

        # Awaited run (raises if the catalog cannot be read)
        summary = await coordinator.full_sync()

        # Fire-and-forget run (errors only reach the ledger and logs)
        coordinator.trigger("incremental")

    Every run holds the coordinator's lease; a second run requested while one
    is active raises SyncAlreadyRunningError.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] | sessionmaker = SessionLocal,
        youtube: Optional[YouTubeService] = None,
        downloader: Optional[VideoDownloader] = None,
        channel_id: Optional[str] = None,
        comment_refresh_months: Optional[int] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            session_factory: Creates the database session used by each run
            youtube: YouTube API client (created on first use if not provided)
            downloader: Media downloader (created from settings if not provided)
            channel_id: Channel to archive (defaults to configured channel)
            comment_refresh_months: Age window for comment refreshes
        """
        settings = get_settings()
        self.session_factory = session_factory
        self.channel_id = channel_id or settings.channel_id
        self.comment_refresh_months = (
            settings.comment_refresh_months
            if comment_refresh_months is None
            else comment_refresh_months
        )
        self.downloader = downloader or VideoDownloader()
        self.lease = RunLease()

        self._youtube = youtube
        self._task: Optional[asyncio.Task] = None

    @property
    def youtube(self) -> YouTubeService:
        """Lazy-load the YouTube client so a missing API key fails the run, not startup."""
        if self._youtube is None:
            self._youtube = YouTubeService()
        return self._youtube

    @property
    def is_running(self) -> bool:
        return self.lease.held

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def full_sync(self) -> SyncSummary:
        """Sync channel details and every video of the channel."""
        with self.lease.hold("full"):
            return await self._with_session(self._full_sync)

    async def incremental_sync(self) -> SyncSummary:
        """Sync videos not yet archived, then refresh recent comments."""
        with self.lease.hold("incremental"):
            return await self._with_session(self._incremental_sync)

    async def refresh_recent_comments(self) -> SyncSummary:
        """Re-fetch comments for videos inside the refresh window."""
        with self.lease.hold("comment_refresh"):
            return await self._with_session(self._refresh_recent_comments)

    def trigger(self, sync_type: str = "incremental") -> asyncio.Task:
        """
        Start a run in the background and return immediately.

        The lease is taken before this returns, so a second trigger is
        rejected even if the first run has not begun yet.

        Raises:
            ValueError: for an unknown sync type
            SyncAlreadyRunningError: if a run is active
        """
        runners = {
            "full": self._full_sync,
            "incremental": self._incremental_sync,
            "comment_refresh": self._refresh_recent_comments,
        }
        runner = runners.get(sync_type)
        if runner is None:
            raise ValueError(f"Unknown sync type: {sync_type}")

        if not self.lease.acquire(sync_type):
            raise SyncAlreadyRunningError(f"A {self.lease.holder} sync is already running")

        logger.info(f"Triggering manual {sync_type} sync...")
        try:
            task = asyncio.create_task(self._run_leased(runner))
        except Exception:
            self.lease.release()
            raise

        task.add_done_callback(self._log_task_result)
        self._task = task
        return task

    async def _run_leased(self, runner: Callable[[Session], Awaitable[SyncSummary]]) -> SyncSummary:
        try:
            return await self._with_session(runner)
        finally:
            self.lease.release()

    @staticmethod
    def _log_task_result(task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Background sync was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background sync failed: {error}")
        else:
            logger.info(f"Background sync completed: {task.result()}")

    async def _with_session(
        self, runner: Callable[[Session], Awaitable[SyncSummary]]
    ) -> SyncSummary:
        db = self.session_factory()
        try:
            return await runner(db)
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def _full_sync(self, db: Session) -> SyncSummary:
        ledger = RunLedger(db)
        run = ledger.start("full")
        counters = _Counters()

        logger.info("Starting full channel sync...")
        try:
            channel = await self._sync_channel(db)
            videos = await run_in_thread(
                self.youtube.get_channel_videos, channel.uploads_playlist_id
            )
            logger.info(f"Found {len(videos)} videos to process")

            processor = self._processor(db)
            for video in videos:
                counters.add(await processor.process(video))
                if counters.videos_processed % PROGRESS_LOG_INTERVAL == 0:
                    logger.info(f"Processed {counters.videos_processed}/{len(videos)} videos")

        except Exception as e:
            logger.error(f"Full sync failed: {e}")
            self._close_failed(ledger, run, e, counters)
            raise

        ledger.complete(run, **vars(counters))
        logger.info(
            f"Full sync completed: {counters.videos_processed} processed, "
            f"{counters.videos_failed} failed"
        )
        return self._summary(run, counters)

    async def _incremental_sync(self, db: Session) -> SyncSummary:
        ledger = RunLedger(db)
        run = ledger.start("incremental")
        counters = _Counters()

        logger.info("Starting incremental sync...")
        try:
            channel = await self._sync_channel(db)
            remote_ids = await run_in_thread(
                self.youtube.list_video_ids, channel.uploads_playlist_id
            )

            new_ids = [
                video_id
                for video_id in dict.fromkeys(remote_ids)
                if db.get(Video, video_id) is None
            ]
            logger.info(f"Found {len(new_ids)} new videos")

            videos = await run_in_thread(self.youtube.get_videos, new_ids)
            processor = self._processor(db)
            for video in videos:
                logger.info(f"New video found: {video.title}")
                counters.add(await processor.process(video))

            # Also refresh comments for recent videos
            await self._refresh_recent_comments(db)

        except Exception as e:
            logger.error(f"Incremental sync failed: {e}")
            self._close_failed(ledger, run, e, counters)
            raise

        ledger.complete(run, **vars(counters))
        logger.info(f"Incremental sync completed. Processed {counters.videos_processed} new videos")
        return self._summary(run, counters)

    async def _refresh_recent_comments(self, db: Session) -> SyncSummary:
        ledger = RunLedger(db)
        run = ledger.start("comment_refresh")
        counters = _Counters()
        cutoff = months_before(run.started_at, self.comment_refresh_months)

        logger.info(
            f"Refreshing comments for videos from last {self.comment_refresh_months} months..."
        )
        try:
            video_ids = [
                row.id
                for row in db.query(Video.id)
                .filter(Video.published_at >= cutoff)
                .order_by(Video.published_at.desc())
                .all()
            ]
            logger.info(f"Found {len(video_ids)} videos to refresh comments for")

            processor = self._processor(db)
            for video_id in video_ids:
                try:
                    count = await processor.refresh_comments(video_id)
                except Exception as e:
                    logger.error(f"Error refreshing comments for video {video_id}: {e}")
                    counters.videos_failed += 1
                    continue
                counters.videos_processed += 1
                counters.comments_processed += count

        except Exception as e:
            logger.error(f"Comments refresh failed: {e}")
            self._close_failed(ledger, run, e, counters)
            raise

        ledger.complete(run, **vars(counters))
        logger.info(
            f"Comments refresh completed. Processed {counters.comments_processed} comments"
        )
        return self._summary(run, counters)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _processor(self, db: Session) -> VideoProcessor:
        return VideoProcessor(
            db,
            youtube=self.youtube,
            downloader=self.downloader,
            default_channel_id=self.channel_id,
        )

    async def _sync_channel(self, db: Session) -> ChannelInfo:
        """Fetch channel details and upsert the channel row."""
        if not self.channel_id:
            raise ValueError("Channel ID is required. Set CHANNEL_ID in .env")

        info = await run_in_thread(self.youtube.get_channel, self.channel_id)

        channel = db.get(Channel, info.id)
        if channel is None:
            channel = Channel(id=info.id)
            db.add(channel)

        channel.title = info.title
        channel.description = info.description
        channel.custom_url = info.custom_url
        channel.thumbnail_url = info.thumbnail_url
        channel.subscriber_count = info.subscriber_count
        channel.video_count = info.video_count
        channel.view_count = info.view_count
        channel.uploads_playlist_id = info.uploads_playlist_id
        db.commit()

        return info

    @staticmethod
    def _close_failed(ledger: RunLedger, run: SyncRun, error: Exception, counters: _Counters) -> None:
        try:
            ledger.fail(run, str(error) or type(error).__name__, **vars(counters))
        except Exception as ledger_error:
            logger.error(f"Could not record failure of sync run {run.id}: {ledger_error}")

    @staticmethod
    def _summary(run: SyncRun, counters: _Counters) -> SyncSummary:
        return SyncSummary(run_id=run.id, sync_type=run.sync_type, **vars(counters))
