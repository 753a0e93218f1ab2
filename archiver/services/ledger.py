"""Durable record of sync runs."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from archiver.db.models import SyncRun, Video

logger = logging.getLogger(__name__)

INTERRUPTED_ERROR = "Interrupted before completion"


class RunLedger:
    """Creates and closes SyncRun entries.

    A run is written once when it starts and once when it ends; closing a run
    that is no longer running raises ValueError.
    """

    def __init__(self, db: Session):
        self.db = db

    def start(self, sync_type: str) -> SyncRun:
        """Open a ledger entry with status "running"."""
        run = SyncRun(sync_type=sync_type, status="running", started_at=datetime.utcnow())
        self.db.add(run)
        self.db.commit()
        self.db.refresh(run)
        logger.info(f"Opened sync run {run.id} ({sync_type})")
        return run

    def complete(
        self,
        run: SyncRun,
        videos_processed: int,
        comments_processed: int,
        videos_failed: int = 0,
    ) -> SyncRun:
        """Close a run as completed with its counters."""
        return self._close(
            run,
            status="completed",
            videos_processed=videos_processed,
            comments_processed=comments_processed,
            videos_failed=videos_failed,
            error=None,
        )

    def fail(
        self,
        run: SyncRun,
        error: str,
        videos_processed: int = 0,
        comments_processed: int = 0,
        videos_failed: int = 0,
    ) -> SyncRun:
        """Close a run as failed, recording the error message."""
        return self._close(
            run,
            status="failed",
            videos_processed=videos_processed,
            comments_processed=comments_processed,
            videos_failed=videos_failed,
            error=error,
        )

    def _close(self, run: SyncRun, status: str, **fields) -> SyncRun:
        # Discard anything half-written by the failed step before closing
        self.db.rollback()
        self.db.refresh(run)
        if run.status != "running":
            raise ValueError(f"Sync run {run.id} is already {run.status}")

        run.status = status
        for name, value in fields.items():
            setattr(run, name, value)
        run.completed_at = datetime.utcnow()
        self.db.commit()

        logger.info(
            f"Closed sync run {run.id} ({run.sync_type}) as {status}: "
            f"{run.videos_processed} videos, {run.comments_processed} comments"
        )
        return run

    def recent(self, limit: int = 10) -> list[SyncRun]:
        """Get the most recent runs, newest first."""
        return (
            self.db.query(SyncRun)
            .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
            .limit(limit)
            .all()
        )

    def current(self) -> Optional[SyncRun]:
        """Get the most recent run still marked as running."""
        return (
            self.db.query(SyncRun)
            .filter(SyncRun.status == "running")
            .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
            .first()
        )

    def recover_interrupted(self) -> int:
        """
        Close out state left behind by a process that died mid-run.

        Runs still marked "running" are failed, and videos stuck in
        "downloading" become "failed" so the next run retries them.

        Returns:
            Number of runs marked as failed
        """
        now = datetime.utcnow()
        runs = self.db.query(SyncRun).filter(SyncRun.status == "running").all()
        for run in runs:
            run.status = "failed"
            run.error = INTERRUPTED_ERROR
            run.completed_at = now

        stuck = (
            self.db.query(Video)
            .filter(Video.download_status == "downloading")
            .update({Video.download_status: "failed", Video.download_error: INTERRUPTED_ERROR})
        )
        self.db.commit()

        if runs or stuck:
            logger.warning(
                f"Recovered {len(runs)} interrupted runs and {stuck} interrupted downloads"
            )
        return len(runs)
