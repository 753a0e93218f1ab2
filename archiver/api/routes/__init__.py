"""API routes module."""

from fastapi import APIRouter

from archiver.api.routes import sync, videos

api_router = APIRouter()

api_router.include_router(videos.router, prefix="/videos", tags=["videos"])
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
