"""Archived video browsing endpoints."""

from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session

from archiver.api.deps import get_db, get_downloader
from archiver.db.models import Channel, Comment, Video
from archiver.db.queries import SEARCH_SCOPES, SORTABLE_COLUMNS, build_video_query
from archiver.services.downloader import VideoDownloader

router = APIRouter()


class VideoResponse(BaseModel):
    """Video response model."""

    id: str
    channel_id: str
    title: str
    description: Optional[str]
    published_at: Optional[datetime]
    duration_seconds: Optional[int]
    tags: Optional[list[str]]
    category_id: Optional[str]
    privacy_status: Optional[str]
    thumbnail_url: Optional[str]
    view_count: Optional[int]
    like_count: Optional[int]
    comment_count: Optional[int]
    download_status: str
    download_error: Optional[str]
    file_path: Optional[str]
    downloaded_at: Optional[datetime]

    class Config:
        from_attributes = True


class VideoListResponse(BaseModel):
    """Paginated video list response."""

    items: list[VideoResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class CommentResponse(BaseModel):
    """Comment with its replies."""

    id: str
    parent_comment_id: Optional[str]
    author_name: Optional[str]
    author_channel_id: Optional[str]
    author_profile_image_url: Optional[str]
    text_display: Optional[str]
    text_original: Optional[str]
    like_count: Optional[int]
    published_at: Optional[datetime]
    updated_at: Optional[datetime]
    replies: list["CommentResponse"] = []

    class Config:
        from_attributes = True


CommentResponse.model_rebuild()


class StatsResponse(BaseModel):
    """Archive statistics."""

    channel: Optional[dict]
    total_videos: int
    download_status: dict[str, int]
    total_comments: int
    storage: dict


@router.get("", response_model=VideoListResponse)
def list_videos(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search term"),
    search_in: str = Query("all", description=f"One of: {', '.join(SEARCH_SCOPES)}"),
    sort_by: str = Query("upload_date", description=f"One of: {', '.join(SORTABLE_COLUMNS)}"),
    order: str = Query("desc", description="asc or desc"),
    status: Optional[str] = Query(None, description="Filter by download status"),
):
    """List archived videos with pagination, search and sorting."""
    try:
        query = build_video_query(
            db,
            search=search,
            search_in=search_in,
            sort_by=sort_by,
            order=order,
            status=status,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    total = query.count()
    offset = (page - 1) * limit
    videos = query.offset(offset).limit(limit).all()

    return VideoListResponse(
        items=[VideoResponse.model_validate(v) for v in videos],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


@router.get("/stats", response_model=StatsResponse)
def get_stats(
    db: Session = Depends(get_db),
    downloader: VideoDownloader = Depends(get_downloader),
):
    """Get channel details, download status counts and storage usage."""
    channel = db.query(Channel).first()
    status_counts = dict(
        db.query(Video.download_status, func.count(Video.id))
        .group_by(Video.download_status)
        .all()
    )

    return StatsResponse(
        channel=(
            {
                "id": channel.id,
                "title": channel.title,
                "subscriber_count": channel.subscriber_count,
                "video_count": channel.video_count,
                "view_count": channel.view_count,
                "thumbnail_url": channel.thumbnail_url,
            }
            if channel
            else None
        ),
        total_videos=sum(status_counts.values()),
        download_status=status_counts,
        total_comments=db.query(Comment).count(),
        storage=downloader.get_storage_stats(),
    )


@router.get("/{video_id}", response_model=VideoResponse)
def get_video(video_id: str, db: Session = Depends(get_db)):
    """Get a single video."""
    video = db.get(Video, video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return VideoResponse.model_validate(video)


@router.get("/{video_id}/comments", response_model=list[CommentResponse])
def get_video_comments(video_id: str, db: Session = Depends(get_db)):
    """Get a video's comments as threads, most liked first."""
    if not db.get(Video, video_id):
        raise HTTPException(status_code=404, detail="Video not found")

    comments = (
        db.query(Comment)
        .filter(Comment.video_id == video_id)
        .order_by(Comment.like_count.desc(), Comment.published_at.asc())
        .all()
    )

    threads: dict[str, CommentResponse] = {}
    replies: list[Comment] = []
    for comment in comments:
        if comment.parent_comment_id is None:
            threads[comment.id] = CommentResponse.model_validate(comment)
        else:
            replies.append(comment)

    # Replies read oldest first under their parent
    for reply in sorted(replies, key=lambda c: c.published_at or datetime.min):
        parent = threads.get(reply.parent_comment_id)
        if parent is not None:
            parent.replies.append(CommentResponse.model_validate(reply))

    return list(threads.values())


@router.get("/{video_id}/stream")
def stream_video(video_id: str, db: Session = Depends(get_db)):
    """Serve a downloaded video file (supports HTTP range requests)."""
    video = db.get(Video, video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    if video.download_status != "completed" or not video.file_path:
        raise HTTPException(status_code=404, detail="Video not downloaded yet")

    path = Path(video.file_path)
    if not path.exists():
        raise HTTPException(status_code=404, detail="Video file missing from storage")

    return FileResponse(path, media_type="video/mp4", filename=path.name)
