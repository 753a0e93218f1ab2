"""Fakes and builders shared by the test modules."""

import json
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace
from typing import Optional

from googleapiclient.errors import HttpError

from archiver.services.downloader import DownloadResult, VideoDownloader, sanitize_filename
from archiver.services.youtube import ChannelInfo, CommentInfo, VideoInfo

CHANNEL_ID = "UC_test_channel"
UPLOADS_ID = "UU_test_channel"


def http_error(status: int, reason: str) -> HttpError:
    """Build an HttpError shaped like a YouTube Data API error."""
    content = json.dumps(
        {"error": {"code": status, "message": reason, "errors": [{"reason": reason}]}}
    ).encode("utf-8")
    return HttpError(SimpleNamespace(status=status, reason=reason), content)


def make_channel(**overrides) -> ChannelInfo:
    fields = dict(
        id=CHANNEL_ID,
        title="Test Channel",
        description="A channel",
        custom_url="@test",
        thumbnail_url="https://img/channel.jpg",
        subscriber_count=1000,
        video_count=3,
        view_count=50000,
        uploads_playlist_id=UPLOADS_ID,
    )
    fields.update(overrides)
    return ChannelInfo(**fields)


def make_video(video_id: str, days_old: int = 7, **overrides) -> VideoInfo:
    fields = dict(
        id=video_id,
        channel_id=CHANNEL_ID,
        title=f"Video {video_id}",
        description=f"Description of {video_id}",
        published_at=datetime.utcnow().replace(microsecond=0) - timedelta(days=days_old),
        duration_seconds=300,
        thumbnail_url=f"https://img/{video_id}.jpg",
        tags=["tag"],
        category_id="22",
        privacy_status="public",
        view_count=100,
        like_count=10,
        comment_count=2,
    )
    fields.update(overrides)
    return VideoInfo(**fields)


def make_comment(comment_id: str, video_id: str, parent: Optional[str] = None, **overrides) -> CommentInfo:
    fields = dict(
        id=comment_id,
        video_id=video_id,
        parent_comment_id=parent,
        author_name=f"Author {comment_id}",
        author_channel_id="UC_author",
        author_profile_image_url=None,
        text_display=f"Comment {comment_id}",
        text_original=f"Comment {comment_id}",
        like_count=1,
        published_at=datetime(2024, 1, 1, 12, 0, 0),
        updated_at=datetime(2024, 1, 1, 12, 0, 0),
    )
    fields.update(overrides)
    return CommentInfo(**fields)


class FakeCatalog:
    """Stands in for YouTubeService with in-memory data."""

    def __init__(self, videos=(), comments=None, channel=None):
        self.videos = list(videos)
        self.comments = dict(comments or {})
        self.channel = channel or make_channel()
        self.channel_error: Optional[Exception] = None
        self.listing_error: Optional[Exception] = None
        self.comment_errors: dict[str, Exception] = {}
        self.comment_calls: list[str] = []
        self.detail_calls: list[list[str]] = []

    def get_channel(self, channel_id):
        if self.channel_error is not None:
            raise self.channel_error
        return self.channel

    def list_video_ids(self, uploads_playlist_id):
        if self.listing_error is not None:
            raise self.listing_error
        return [video.id for video in self.videos]

    def get_videos(self, video_ids):
        self.detail_calls.append(list(video_ids))
        by_id = {video.id: video for video in self.videos}
        return [by_id[video_id] for video_id in video_ids if video_id in by_id]

    def get_channel_videos(self, uploads_playlist_id):
        return self.get_videos(self.list_video_ids(uploads_playlist_id))

    def get_comments(self, video_id):
        self.comment_calls.append(video_id)
        if video_id in self.comment_errors:
            raise self.comment_errors[video_id]
        return list(self.comments.get(video_id, []))


class FakeDownloader(VideoDownloader):
    """VideoDownloader that writes placeholder files instead of calling yt-dlp."""

    def __init__(self, output_dir: Path, failures=(), raises=()):
        super().__init__(output_dir=output_dir, delay_seconds=0)
        self.failures = set(failures)
        self.raises = set(raises)
        self.calls: list[str] = []

    def download_video(self, video_id, title):
        self.calls.append(video_id)
        if video_id in self.raises:
            raise RuntimeError(f"Connection reset while fetching {video_id}")
        if video_id in self.failures:
            return DownloadResult(video_id=video_id, success=False, error="Video unavailable")

        self.ensure_output_dir()
        path = self.output_dir / f"{video_id}-{sanitize_filename(title)}.mp4"
        path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
        return DownloadResult(video_id=video_id, success=True, file_path=str(path))


class FakeRequest:
    def __init__(self, result):
        self.result = result

    def execute(self):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class PagedEndpoint:
    """Serves responses keyed by page token (None for the first page)."""

    def __init__(self, pages):
        self.pages = pages
        self.calls: list[dict] = []

    def list(self, **params):
        self.calls.append(params)
        return FakeRequest(self.pages[params.get("pageToken")])


class VideosEndpoint:
    """Serves videos.list responses from a dict of raw video items."""

    def __init__(self, items):
        self.items = items
        self.calls: list[list[str]] = []

    def list(self, **params):
        ids = params["id"].split(",")
        self.calls.append(ids)
        return FakeRequest({"items": [self.items[i] for i in ids if i in self.items]})


class FakeResource:
    """Minimal stand-in for the googleapiclient YouTube resource."""

    def __init__(self, channels=None, playlist_items=None, videos=None, comment_threads=None):
        self._channels = channels
        self._playlist_items = playlist_items
        self._videos = videos
        self._comment_threads = comment_threads

    def channels(self):
        return self._channels

    def playlistItems(self):
        return self._playlist_items

    def videos(self):
        return self._videos

    def commentThreads(self):
        return self._comment_threads


def raw_video(video_id: str, duration: str = "PT4M13S", published: str = "2024-05-01T10:00:00Z") -> dict:
    return {
        "id": video_id,
        "snippet": {
            "channelId": CHANNEL_ID,
            "title": f"Video {video_id}",
            "description": "desc",
            "publishedAt": published,
            "thumbnails": {"high": {"url": f"https://img/{video_id}.jpg"}},
            "categoryId": "27",
        },
        "contentDetails": {"duration": duration},
        "statistics": {"viewCount": "1500", "likeCount": "30", "commentCount": "4"},
        "status": {"privacyStatus": "unlisted"},
    }


def raw_comment(comment_id: str, text: str = "hi") -> dict:
    return {
        "id": comment_id,
        "snippet": {
            "authorDisplayName": f"user-{comment_id}",
            "authorChannelId": {"value": f"UC_{comment_id}"},
            "authorProfileImageUrl": "https://img/avatar.jpg",
            "textDisplay": text,
            "textOriginal": text,
            "likeCount": 2,
            "publishedAt": "2024-05-02T08:00:00Z",
            "updatedAt": "2024-05-02T09:30:00Z",
        },
    }


def raw_thread(top_id: str, reply_ids=()) -> dict:
    thread = {"snippet": {"topLevelComment": raw_comment(top_id)}}
    if reply_ids:
        thread["replies"] = {"comments": [raw_comment(reply_id) for reply_id in reply_ids]}
    return thread


