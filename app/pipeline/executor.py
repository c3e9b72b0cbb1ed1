"""Job executor: claims due JobRun rows and dispatches them through STAGE_REGISTRY."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from app.models.job_run import JOB_COMPLETED, JOB_FAILED, JobRun
from app.pipeline.queue import claim_job, due_job_ids
from app.pipeline.stages import STAGE_REGISTRY, StageResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20


def run_job(db: Session, job: JobRun) -> StageResult:
    """Run a claimed job and record completion or failure on its row.

    Stage exceptions are recorded on the job and not re-raised.
    """
    stage = STAGE_REGISTRY.get(job.job_type)
    try:
        if stage is None:
            raise ValueError(f"Unknown job_type: {job.job_type}")
        result = stage(db, **(job.payload or {}))
    except Exception as exc:
        logger.exception("Job id=%s type=%s failed", job.id, job.job_type)
        db.rollback()
        job.status = JOB_FAILED
        job.error_message = str(exc)
        job.finished_at = datetime.now(UTC)
        db.commit()
        return StageResult({"status": "failed", "job_run_id": job.id, "error": str(exc)})

    job.status = JOB_COMPLETED
    job.finished_at = datetime.now(UTC)
    db.commit()
    logger.info("Job id=%s type=%s completed: %s", job.id, job.job_type, dict(result))
    return StageResult({"status": "completed", "job_run_id": job.id, "result": dict(result)})


def run_due_jobs(db: Session, limit: int = DEFAULT_BATCH_SIZE) -> dict:
    """Run up to ``limit`` queued jobs whose ``run_after`` has passed.

    Jobs enqueued while this runs are picked up on the next call.
    """
    processed = 0
    failed = 0
    results: list[dict] = []
    for job_id in due_job_ids(db, limit):
        job = claim_job(db, job_id)
        if job is None:
            continue
        result = run_job(db, job)
        processed += 1
        if result["status"] == "failed":
            failed += 1
        results.append(
            {
                "job_run_id": job.id,
                "job_type": job.job_type,
                "status": job.status,
                "result": result.get("result"),
            }
        )

    if processed:
        logger.info("run_due_jobs: processed=%d failed=%d", processed, failed)
    return {"processed": processed, "failed": failed, "jobs": results}
