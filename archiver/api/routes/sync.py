"""Sync operation endpoints."""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from archiver.api.deps import get_coordinator, get_db
from archiver.services.ledger import RunLedger
from archiver.services.sync import SyncAlreadyRunningError, SyncCoordinator

router = APIRouter()


class SyncRunResponse(BaseModel):
    """Sync run ledger entry."""

    id: int
    sync_type: str
    status: str
    videos_processed: int
    videos_failed: int
    comments_processed: int
    error: Optional[str]
    started_at: datetime
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class SyncProgressResponse(BaseModel):
    """Whether a sync is currently running."""

    running: bool
    run: Optional[SyncRunResponse] = None


class TriggerRequest(BaseModel):
    """Request body for triggering a sync."""

    sync_type: Literal["incremental", "full"] = "incremental"


class TriggerResponse(BaseModel):
    """Response for an accepted sync trigger."""

    message: str
    sync_type: str


@router.post("/trigger", response_model=TriggerResponse, status_code=202)
async def trigger_sync(
    request: TriggerRequest = TriggerRequest(),
    coordinator: SyncCoordinator = Depends(get_coordinator),
):
    """
    Start a sync in the background.

    Returns immediately; the outcome is visible through /status and /progress.
    """
    try:
        coordinator.trigger(request.sync_type)
    except SyncAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return TriggerResponse(
        message=f"{request.sync_type} sync started",
        sync_type=request.sync_type,
    )


@router.get("/status", response_model=list[SyncRunResponse])
def get_sync_history(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Get the most recent sync runs, newest first."""
    return RunLedger(db).recent(limit)


@router.get("/progress", response_model=SyncProgressResponse)
def get_sync_progress(db: Session = Depends(get_db)):
    """Get the currently running sync, if any."""
    run = RunLedger(db).current()
    if run is None:
        return SyncProgressResponse(running=False)

    return SyncProgressResponse(
        running=True,
        run=SyncRunResponse.model_validate(run),
    )
