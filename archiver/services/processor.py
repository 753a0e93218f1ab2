"""Per-video pipeline: metadata upsert, media download, comment refresh."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from archiver.db.models import Comment, Video
from archiver.services.async_utils import run_in_thread
from archiver.services.downloader import VideoDownloader
from archiver.services.youtube import CommentInfo, VideoInfo, YouTubeService

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Result of processing one video."""

    video_id: str
    success: bool
    downloaded: bool = False
    skipped_download: bool = False
    comments: int = 0
    error: Optional[str] = None


class VideoProcessor:
    """Runs a single video through upsert, download and comment refresh."""

    def __init__(
        self,
        db: Session,
        youtube: YouTubeService,
        downloader: VideoDownloader,
        default_channel_id: str = "",
    ):
        self.db = db
        self.youtube = youtube
        self.downloader = downloader
        self.default_channel_id = default_channel_id

    async def process(self, info: VideoInfo) -> ProcessResult:
        """
        Process a video end to end.

        Never raises: any error is recorded on the video and returned in the
        result so the caller can move on to the next video.
        """
        video_id = info.id

        try:
            video = self.upsert_video(info)

            downloaded = False
            skipped = video.download_status == "completed"
            download_error = None

            if skipped:
                logger.info(f"Video {video_id} already downloaded, skipping...")
            else:
                download_error = await self._download(video)
                downloaded = download_error is None

            # Comments are refreshed whether or not the media could be fetched
            comment_count = await self.refresh_comments(video_id)

            return ProcessResult(
                video_id=video_id,
                success=download_error is None,
                downloaded=downloaded,
                skipped_download=skipped,
                comments=comment_count,
                error=download_error,
            )

        except Exception as e:
            logger.error(f"Error processing video {video_id}: {e}")
            self._mark_failed(video_id, str(e))
            return ProcessResult(video_id=video_id, success=False, error=str(e))

    def upsert_video(self, info: VideoInfo) -> Video:
        """
        Create or update a video row from API metadata.

        New videos start as "pending"; existing rows only get their metadata
        and counters refreshed, never their download state.
        """
        video = self.db.get(Video, info.id)

        if video is None:
            video = Video(
                id=info.id,
                channel_id=info.channel_id or self.default_channel_id,
                published_at=info.published_at,
                download_status="pending",
            )
            self.db.add(video)

        video.title = info.title
        video.description = info.description
        video.tags = info.tags
        video.category_id = info.category_id
        video.privacy_status = info.privacy_status
        video.duration_seconds = info.duration_seconds
        video.thumbnail_url = info.thumbnail_url
        video.view_count = info.view_count
        video.like_count = info.like_count
        video.comment_count = info.comment_count

        self.db.commit()
        return video

    async def _download(self, video: Video) -> Optional[str]:
        """Download the video's media; returns the error message on failure."""
        video.download_status = "downloading"
        video.download_error = None
        self.db.commit()

        result = await self.downloader.acquire(video.id, video.title)

        if result.success:
            video.download_status = "completed"
            video.file_path = result.file_path
            video.downloaded_at = datetime.utcnow()
            self.db.commit()
            logger.info(f"Successfully downloaded: {video.title}")
            return None

        video.download_status = "failed"
        video.download_error = result.error
        self.db.commit()
        logger.error(f"Failed to download: {video.title}")
        return result.error or "Download failed"

    async def refresh_comments(self, video_id: str) -> int:
        """Fetch a video's comments and replace the stored set with them."""
        comments = await run_in_thread(self.youtube.get_comments, video_id)
        return self.replace_comments(video_id, comments)

    def replace_comments(self, video_id: str, comments: list[CommentInfo]) -> int:
        """
        Replace all stored comments of a video with the given set.

        The delete, the inserts and the comment_count update are committed
        together, so readers see either the old set or the new one.

        Returns:
            Number of comments stored
        """
        # Last occurrence wins if the API repeats a comment across pages
        unique = {comment.id: comment for comment in comments}
        known_ids = set(unique)

        try:
            self.db.query(Comment).filter(Comment.video_id == video_id).delete(
                synchronize_session="fetch"
            )

            for comment in unique.values():
                parent_id = comment.parent_comment_id
                if parent_id is not None and parent_id not in known_ids:
                    logger.warning(
                        f"Comment {comment.id} replies to unknown comment {parent_id}; "
                        "storing as top-level"
                    )
                    parent_id = None

                self.db.add(
                    Comment(
                        id=comment.id,
                        video_id=video_id,
                        parent_comment_id=parent_id,
                        author_name=comment.author_name,
                        author_channel_id=comment.author_channel_id,
                        author_profile_image_url=comment.author_profile_image_url,
                        text_display=comment.text_display,
                        text_original=comment.text_original,
                        like_count=comment.like_count,
                        published_at=comment.published_at,
                        updated_at=comment.updated_at,
                    )
                )

            self.db.query(Video).filter(Video.id == video_id).update(
                {Video.comment_count: len(unique)}
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return len(unique)

    def _mark_failed(self, video_id: str, error: str) -> None:
        """Record a processing error on the video.

        Videos whose media is already downloaded keep their "completed"
        status so a comment or metadata error never triggers a re-download.
        """
        self.db.rollback()
        video = self.db.get(Video, video_id)
        if video is None:
            return

        if video.download_status != "completed":
            video.download_status = "failed"
        video.download_error = error
        self.db.commit()
