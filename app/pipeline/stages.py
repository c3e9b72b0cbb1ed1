"""Pipeline stage protocol and registry."""

from __future__ import annotations

from typing import Any, Protocol

from sqlalchemy.orm import Session


class StageResult(dict[str, Any]):
    """Result from a pipeline stage, stored in logs and returned by /internal/run_jobs."""


class PipelineStage(Protocol):
    """Protocol for pipeline stages.

    Stages receive db and the job payload as keyword arguments.
    """

    def __call__(self, db: Session, **payload: Any) -> StageResult:
        """Execute the stage. Returns result dict."""
        ...


def _trigger_stage(db: Session, **payload: Any) -> StageResult:
    from app.pipeline.brightdata_jobs import trigger_brightdata_scraping

    return StageResult(
        trigger_brightdata_scraping(db, asin=payload["asin"], country=payload.get("country", "us"))
    )


def _check_progress_stage(db: Session, **payload: Any) -> StageResult:
    from app.pipeline.brightdata_jobs import check_brightdata_progress

    return StageResult(
        check_brightdata_progress(
            db,
            asin=payload["asin"],
            country=payload.get("country", "us"),
            job_id=payload["job_id"],
            attempt=int(payload.get("attempt", 1)),
        )
    )


def _process_results_stage(db: Session, **payload: Any) -> StageResult:
    from app.pipeline.brightdata_jobs import process_brightdata_results

    return StageResult(
        process_brightdata_results(
            db,
            asin=payload["asin"],
            country=payload.get("country", "us"),
            job_id=payload["job_id"],
        )
    )


def _analyze_asin_stage(db: Session, **payload: Any) -> StageResult:
    from app.pipeline.brightdata_jobs import analyze_asin_job

    return StageResult(analyze_asin_job(db, asin=payload["asin"], country=payload.get("country", "us")))


def _reanalyze_asin_stage(db: Session, **payload: Any) -> StageResult:
    from app.pipeline.reanalysis import reanalyze_asin_job

    return StageResult(reanalyze_asin_job(db, asin=payload["asin"], country=payload.get("country", "us")))


def _product_analysis_stage(db: Session, **payload: Any) -> StageResult:
    """Product analysis for a session; failures end up on the session, not the job."""
    from app.services.product_analysis import run_product_analysis

    session = run_product_analysis(db, payload["session_id"])
    if session is None:
        return StageResult({"status": "skipped", "reason": "session_not_found"})
    return StageResult({"status": session.status, "session_id": session.id})


STAGE_REGISTRY: dict[str, PipelineStage] = {
    "trigger_brightdata_scraping": _trigger_stage,
    "check_brightdata_progress": _check_progress_stage,
    "process_brightdata_results": _process_results_stage,
    "analyze_asin": _analyze_asin_stage,
    "reanalyze_asin": _reanalyze_asin_stage,
    "process_product_analysis": _product_analysis_stage,
}
