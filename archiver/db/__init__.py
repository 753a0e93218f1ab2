"""Database module."""

from archiver.db.database import get_db, init_db
from archiver.db.models import Channel, Video, Comment, SyncRun

__all__ = ["get_db", "init_db", "Channel", "Video", "Comment", "SyncRun"]
