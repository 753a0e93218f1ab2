"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from archiver.api.routes import api_router
from archiver.config import get_settings
from archiver.db.database import SessionLocal, init_db
from archiver.services.async_utils import shutdown_executor
from archiver.services.ledger import RunLedger
from archiver.services.scheduler import SyncScheduler
from archiver.services.sync import SyncCoordinator

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting up Channel Archiver API...")
    init_db()

    db = SessionLocal()
    try:
        RunLedger(db).recover_interrupted()
    finally:
        db.close()
    logger.info("Database initialized")

    coordinator = SyncCoordinator()
    app.state.coordinator = coordinator

    scheduler = SyncScheduler(coordinator)
    if settings.scheduler_enabled:
        scheduler.start()
    app.state.scheduler = scheduler

    logger.info(f"YouTube Channel ID: {settings.channel_id or '(not configured)'}")
    yield

    # Shutdown
    logger.info("Shutting down Channel Archiver API...")
    scheduler.stop()
    shutdown_executor()


# Create FastAPI app
app = FastAPI(
    title="Channel Archiver API",
    description="Mirrors a YouTube channel's videos and comments locally",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
def root():
    """Root endpoint with API info."""
    return {
        "name": "Channel Archiver API",
        "version": "0.1.0",
        "docs": "/docs",
        "status": "running",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "archiver.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
