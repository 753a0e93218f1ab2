"""YouTube Data API v3 client for reading a channel's catalog."""

import json
import logging
import re
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from archiver.config import get_settings

logger = logging.getLogger(__name__)

# API page/batch limits
PLAYLIST_PAGE_SIZE = 50
VIDEO_BATCH_SIZE = 50
COMMENT_PAGE_SIZE = 100

_DURATION_PATTERN = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


class CatalogError(Exception):
    """Fetching from the YouTube API failed or returned an unusable response."""


class ChannelNotFoundError(CatalogError):
    """The requested channel does not exist."""


@dataclass
class ChannelInfo:
    """Channel details from YouTube API."""

    id: str
    title: str
    description: str
    custom_url: Optional[str]
    thumbnail_url: str
    subscriber_count: Optional[int]
    video_count: Optional[int]
    view_count: Optional[int]
    uploads_playlist_id: str


@dataclass
class VideoInfo:
    """Video metadata from YouTube API."""

    id: str
    channel_id: str
    title: str
    description: str
    published_at: Optional[datetime]
    duration_seconds: int
    thumbnail_url: str
    tags: list[str] = field(default_factory=list)
    category_id: Optional[str] = None
    privacy_status: str = "public"
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0


@dataclass
class CommentInfo:
    """A comment or reply from YouTube API."""

    id: str
    video_id: str
    parent_comment_id: Optional[str]
    author_name: str
    author_channel_id: Optional[str]
    author_profile_image_url: Optional[str]
    text_display: str
    text_original: str
    like_count: int
    published_at: Optional[datetime]
    updated_at: Optional[datetime]


def parse_duration(duration_str: str) -> int:
    """
    Parse ISO 8601 duration to seconds.

    Examples: PT1H2M3S -> 3723, PT5M -> 300, PT30S -> 30, PT -> 0
    """
    match = _DURATION_PATTERN.match(duration_str or "")
    if not match:
        return 0

    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)

    return hours * 3600 + minutes * 60 + seconds


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an API timestamp into a naive UTC datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def _best_thumbnail(thumbnails: dict) -> str:
    return (
        thumbnails.get("maxres", {}).get("url")
        or thumbnails.get("high", {}).get("url")
        or thumbnails.get("medium", {}).get("url")
        or thumbnails.get("default", {}).get("url", "")
    )


def _error_reason(error: HttpError) -> Optional[str]:
    """Extract the first error reason (e.g. "commentsDisabled") from an API error."""
    content = error.content
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    try:
        return json.loads(content)["error"]["errors"][0]["reason"]
    except (ValueError, KeyError, IndexError, TypeError):
        return None


def is_comments_disabled(error: HttpError) -> bool:
    """Whether the API refused a comment listing because comments are turned off."""
    return error.resp.status == 403 and _error_reason(error) == "commentsDisabled"


class YouTubeService:
    """Paginated read access to channel, video and comment data."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        youtube: Any = None,
        batch_delay: Optional[float] = None,
    ):
        """
        Initialize YouTube service.

        Args:
            api_key: YouTube Data API key (defaults to configured key)
            youtube: Pre-built API resource, used instead of building one
            batch_delay: Seconds to pause between video detail batches
        """
        settings = get_settings()
        self.batch_delay = settings.api_delay_seconds if batch_delay is None else batch_delay

        if youtube is not None:
            self._youtube = youtube
            return

        self.api_key = api_key or settings.youtube_api_key
        if not self.api_key:
            raise ValueError("YouTube API key is required. Set YOUTUBE_API_KEY in .env")
        self._youtube = build("youtube", "v3", developerKey=self.api_key)

    def _execute(self, request: Any, what: str) -> dict:
        try:
            return request.execute()
        except HttpError as e:
            raise CatalogError(f"Error fetching {what}: {e}") from e

    def get_channel(self, channel_id: str) -> ChannelInfo:
        """
        Fetch channel details.

        Raises:
            ChannelNotFoundError: if the API returns no channel for the ID
        """
        response = self._execute(
            self._youtube.channels().list(
                part="snippet,contentDetails,statistics",
                id=channel_id,
            ),
            f"channel {channel_id}",
        )

        items = response.get("items") or []
        if not items:
            raise ChannelNotFoundError(f"Channel not found: {channel_id}")

        item = items[0]
        try:
            snippet = item["snippet"]
            statistics = item.get("statistics", {})
            return ChannelInfo(
                id=item["id"],
                title=snippet.get("title", ""),
                description=snippet.get("description", ""),
                custom_url=snippet.get("customUrl"),
                thumbnail_url=_best_thumbnail(snippet.get("thumbnails", {})),
                subscriber_count=_to_int(statistics.get("subscriberCount")),
                video_count=_to_int(statistics.get("videoCount")),
                view_count=_to_int(statistics.get("viewCount")),
                uploads_playlist_id=item["contentDetails"]["relatedPlaylists"]["uploads"],
            )
        except KeyError as e:
            raise CatalogError(f"Malformed channel response for {channel_id}: missing {e}") from e

    def iter_video_ids(self, uploads_playlist_id: str) -> Iterator[str]:
        """
        Yield every video ID in an uploads playlist, following page tokens.

        Nothing is cached: each call walks the playlist from the first page.
        """
        next_page_token = None
        while True:
            response = self._execute(
                self._youtube.playlistItems().list(
                    part="contentDetails",
                    playlistId=uploads_playlist_id,
                    maxResults=PLAYLIST_PAGE_SIZE,
                    pageToken=next_page_token,
                ),
                f"playlist {uploads_playlist_id}",
            )

            for item in response.get("items", []):
                try:
                    yield item["contentDetails"]["videoId"]
                except KeyError as e:
                    raise CatalogError(
                        f"Malformed playlist item in {uploads_playlist_id}: missing {e}"
                    ) from e

            next_page_token = response.get("nextPageToken")
            if not next_page_token:
                break

    def list_video_ids(self, uploads_playlist_id: str) -> list[str]:
        """Get all video IDs from an uploads playlist."""
        video_ids = list(self.iter_video_ids(uploads_playlist_id))
        logger.info(f"Found {len(video_ids)} videos in uploads playlist")
        return video_ids

    def get_video_details(self, video_ids: list[str]) -> list[VideoInfo]:
        """Fetch detailed metadata for a batch of at most 50 videos."""
        if not video_ids:
            return []
        if len(video_ids) > VIDEO_BATCH_SIZE:
            raise ValueError(
                f"At most {VIDEO_BATCH_SIZE} video IDs per request, got {len(video_ids)}"
            )

        response = self._execute(
            self._youtube.videos().list(
                part="snippet,contentDetails,statistics,status",
                id=",".join(video_ids),
            ),
            "video details",
        )

        videos = []
        for item in response.get("items", []):
            try:
                videos.append(self._parse_video_response(item))
            except CatalogError as e:
                # Left out of this run; incremental sync picks it up again later
                logger.warning(f"Skipping video: {e}")
        return videos

    def get_channel_videos(self, uploads_playlist_id: str) -> list[VideoInfo]:
        """
        Fetch all videos from an uploads playlist with full details.

        Args:
            uploads_playlist_id: The channel's uploads playlist ID

        Returns:
            List of VideoInfo in playlist order
        """
        video_ids = self.list_video_ids(uploads_playlist_id)
        return self.get_videos(video_ids)

    def get_videos(self, video_ids: list[str]) -> list[VideoInfo]:
        """Fetch details for any number of videos in batches of 50."""
        videos: list[VideoInfo] = []
        for i in range(0, len(video_ids), VIDEO_BATCH_SIZE):
            if i and self.batch_delay:
                time.sleep(self.batch_delay)
            videos.extend(self.get_video_details(video_ids[i : i + VIDEO_BATCH_SIZE]))
        return videos

    def _parse_video_response(self, item: dict) -> VideoInfo:
        """Parse YouTube API response into VideoInfo."""
        try:
            snippet = item["snippet"]
            content_details = item.get("contentDetails", {})
            statistics = item.get("statistics", {})
            status = item.get("status", {})

            return VideoInfo(
                id=item["id"],
                channel_id=snippet.get("channelId", ""),
                title=snippet.get("title", ""),
                description=snippet.get("description", ""),
                published_at=_parse_timestamp(snippet.get("publishedAt")),
                duration_seconds=parse_duration(content_details.get("duration", "PT0S")),
                thumbnail_url=_best_thumbnail(snippet.get("thumbnails", {})),
                tags=snippet.get("tags", []),
                category_id=snippet.get("categoryId"),
                privacy_status=status.get("privacyStatus", "public"),
                view_count=int(statistics.get("viewCount", 0)),
                like_count=int(statistics.get("likeCount", 0)),
                comment_count=int(statistics.get("commentCount", 0)),
            )
        except (KeyError, ValueError) as e:
            raise CatalogError(f"Malformed video response for {item.get('id')}: {e}") from e

    def get_comments(self, video_id: str) -> list[CommentInfo]:
        """
        Fetch all comments for a video, replies included.

        Each thread contributes its top-level comment followed by its replies;
        replies carry the top-level comment's ID as parent. Videos with
        comments disabled yield an empty list.

        Raises:
            CatalogError: on any other API failure
        """
        comments: list[CommentInfo] = []
        next_page_token = None

        while True:
            request = self._youtube.commentThreads().list(
                part="snippet,replies",
                videoId=video_id,
                maxResults=COMMENT_PAGE_SIZE,
                pageToken=next_page_token,
                textFormat="html",
            )
            try:
                response = request.execute()
            except HttpError as e:
                if is_comments_disabled(e):
                    logger.info(f"Comments disabled for video {video_id}")
                    return []
                raise CatalogError(f"Error fetching comments for video {video_id}: {e}") from e

            for thread in response.get("items", []):
                try:
                    top_level = thread["snippet"]["topLevelComment"]
                    comments.append(self._parse_comment(top_level, video_id, parent_id=None))

                    for reply in thread.get("replies", {}).get("comments", []):
                        comments.append(
                            self._parse_comment(reply, video_id, parent_id=top_level["id"])
                        )
                except (KeyError, ValueError) as e:
                    raise CatalogError(
                        f"Malformed comment thread for video {video_id}: {e}"
                    ) from e

            next_page_token = response.get("nextPageToken")
            if not next_page_token:
                break

        logger.info(f"Fetched {len(comments)} comments for video {video_id}")
        return comments

    @staticmethod
    def _parse_comment(
        comment: dict, video_id: str, parent_id: Optional[str]
    ) -> CommentInfo:
        snippet = comment["snippet"]
        return CommentInfo(
            id=comment["id"],
            video_id=video_id,
            parent_comment_id=parent_id,
            author_name=snippet.get("authorDisplayName", ""),
            author_channel_id=snippet.get("authorChannelId", {}).get("value"),
            author_profile_image_url=snippet.get("authorProfileImageUrl"),
            text_display=snippet.get("textDisplay", ""),
            text_original=snippet.get("textOriginal", ""),
            like_count=int(snippet.get("likeCount", 0)),
            published_at=_parse_timestamp(snippet.get("publishedAt")),
            updated_at=_parse_timestamp(snippet.get("updatedAt")),
        )
