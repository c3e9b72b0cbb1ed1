"""Pipeline package: job queue, stages, executor."""

from app.pipeline.executor import run_due_jobs
from app.pipeline.queue import enqueue
from app.pipeline.stages import STAGE_REGISTRY

__all__ = ["STAGE_REGISTRY", "enqueue", "run_due_jobs"]
