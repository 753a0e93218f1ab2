"""Shared API dependencies."""

from fastapi import Request

from archiver.db.database import get_db
from archiver.services.downloader import VideoDownloader
from archiver.services.sync import SyncCoordinator

__all__ = ["get_db", "get_coordinator", "get_downloader"]


def get_coordinator(request: Request) -> SyncCoordinator:
    """The application's single sync coordinator."""
    return request.app.state.coordinator


def get_downloader(request: Request) -> VideoDownloader:
    """The coordinator's media downloader, used for storage lookups."""
    return request.app.state.coordinator.downloader
