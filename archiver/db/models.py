"""SQLAlchemy ORM models."""

from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Integer,
    BigInteger,
    Text,
    DateTime,
    ForeignKey,
    JSON,
)
from sqlalchemy.orm import relationship

from archiver.db.database import Base


class Channel(Base):
    """Archived YouTube channel."""

    __tablename__ = "channels"

    id = Column(String(50), primary_key=True)  # YouTube channel ID
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    custom_url = Column(String(255), nullable=True)
    thumbnail_url = Column(String(500), nullable=True)
    subscriber_count = Column(BigInteger, nullable=True)
    video_count = Column(Integer, nullable=True)
    view_count = Column(BigInteger, nullable=True)
    uploads_playlist_id = Column(String(50), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Channel {self.id}: {self.title}>"


class Video(Base):
    """YouTube video metadata and local media state."""

    __tablename__ = "videos"

    id = Column(String(20), primary_key=True)  # YouTube video ID
    channel_id = Column(String(50), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    tags = Column(JSON, default=list)  # Stored as JSON array
    category_id = Column(String(10), nullable=True)
    privacy_status = Column(String(20), nullable=True)
    published_at = Column(DateTime, nullable=True, index=True)
    duration_seconds = Column(Integer, nullable=True)
    thumbnail_url = Column(String(500), nullable=True)

    # Engagement counters
    view_count = Column(BigInteger, nullable=True)
    like_count = Column(BigInteger, nullable=True)
    comment_count = Column(Integer, nullable=True)

    # Download tracking
    download_status = Column(String(20), default="pending")  # pending, downloading, completed, failed
    download_error = Column(Text, nullable=True)
    file_path = Column(String(1000), nullable=True)
    downloaded_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    comments = relationship(
        "Comment",
        back_populates="video",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Video {self.id}: {self.title[:50]}>"


class Comment(Base):
    """Comment or reply on a video."""

    __tablename__ = "comments"

    id = Column(String(100), primary_key=True)  # YouTube comment ID
    video_id = Column(String(20), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_comment_id = Column(String(100), nullable=True, index=True)  # None for top-level
    author_name = Column(String(255), nullable=True)
    author_channel_id = Column(String(50), nullable=True)
    author_profile_image_url = Column(String(500), nullable=True)
    text_display = Column(Text, nullable=True)
    text_original = Column(Text, nullable=True)
    like_count = Column(Integer, default=0)
    published_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)  # As reported by YouTube

    # Relationships
    video = relationship("Video", back_populates="comments")

    def __repr__(self) -> str:
        return f"<Comment {self.id} on video {self.video_id}>"


class SyncRun(Base):
    """Ledger entry for one sync attempt."""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_type = Column(String(20), nullable=False)  # full, incremental, comment_refresh
    status = Column(String(20), nullable=False, default="running")  # running, completed, failed
    videos_processed = Column(Integer, default=0)
    videos_failed = Column(Integer, default=0)
    comments_processed = Column(Integer, default=0)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<SyncRun {self.id} {self.sync_type} ({self.status})>"
