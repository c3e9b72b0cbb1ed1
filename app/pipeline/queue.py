"""DB-backed job queue: enqueue and claim JobRun rows."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.job_run import JOB_QUEUED, JOB_RUNNING, JobRun

logger = logging.getLogger(__name__)


def enqueue(
    db: Session,
    job_type: str,
    payload: dict[str, Any] | None = None,
    delay_seconds: float = 0,
    attempt: int = 1,
) -> JobRun:
    """Insert a queued job that becomes due after ``delay_seconds``. Commits."""
    job = JobRun(
        job_type=job_type,
        payload=dict(payload or {}),
        status=JOB_QUEUED,
        attempt=attempt,
        run_after=datetime.now(UTC) + timedelta(seconds=delay_seconds),
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(
        "Enqueued job id=%s type=%s attempt=%d delay=%ss",
        job.id,
        job_type,
        attempt,
        delay_seconds,
    )
    return job


def due_job_ids(db: Session, limit: int, now: datetime | None = None) -> list[int]:
    now = now or datetime.now(UTC)
    return list(
        db.scalars(
            select(JobRun.id)
            .where(JobRun.status == JOB_QUEUED, JobRun.run_after <= now)
            .order_by(JobRun.run_after, JobRun.id)
            .limit(limit)
        )
    )


def claim_job(db: Session, job_id: int) -> JobRun | None:
    """Move a queued job to running. Returns None when another worker claimed it first."""
    result = db.execute(
        update(JobRun)
        .where(JobRun.id == job_id, JobRun.status == JOB_QUEUED)
        .values(status=JOB_RUNNING, started_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount == 0:
        return None
    job = db.get(JobRun, job_id)
    db.refresh(job)
    return job
