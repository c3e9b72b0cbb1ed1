"""Internal job endpoints for cron/scripts.

These endpoints are secured with a static token (X-Internal-Token header).
They are meant for automated triggers only.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", include_in_schema=False)


# ── Token dependency ────────────────────────────────────────────────


def _require_internal_token(x_internal_token: str = Header(...)) -> None:
    """Validate the internal job token from the request header.

    Uses constant-time comparison. Raises 403 if the token is empty or does
    not match the configured value.
    """
    expected = get_settings().internal_job_token
    if not expected or not secrets.compare_digest(x_internal_token, expected):
        logger.warning("Internal endpoint auth failed: invalid or missing token")
        raise HTTPException(status_code=403, detail="Invalid internal token")


# ── Endpoints ───────────────────────────────────────────────────────


@router.post("/run_jobs")
def run_jobs(
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
    limit: int = Query(20, ge=1, le=200, description="Maximum jobs to run in this call"),
):
    """Run queued jobs that are due (BrightData chain, product analysis).

    Returns processed and failed counts plus one entry per job.
    """
    from app.pipeline.executor import run_due_jobs

    try:
        summary = run_due_jobs(db, limit=limit)
        return {"status": "completed", **summary}
    except Exception as exc:
        logger.exception("Internal run_jobs failed")
        return {"status": "failed", "error": str(exc)}


@router.post("/scrape")
def scrape(
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
    asin: str = Query(..., description="Amazon ASIN (10 characters)"),
    country: str = Query("us", description="Marketplace country code"),
):
    """Queue a BrightData scraping job for one product.

    The job chain (trigger, progress checks, result processing, LLM analysis)
    runs on subsequent /internal/run_jobs calls.
    """
    from app.pipeline.brightdata_jobs import JOB_TRIGGER
    from app.pipeline.queue import enqueue
    from app.services.amazon_url import ASIN_RE, normalize_country

    asin = asin.strip().upper()
    if not ASIN_RE.match(asin):
        raise HTTPException(status_code=422, detail="Invalid asin: must be 10 letters or digits")
    try:
        job = enqueue(db, JOB_TRIGGER, {"asin": asin, "country": normalize_country(country)})
        return {"status": "queued", "job_run_id": job.id, "asin": asin}
    except Exception as exc:
        logger.exception("Internal scrape enqueue failed")
        return {"status": "failed", "error": str(exc)}


@router.post("/reanalyze")
def reanalyze(
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
    asin: str | None = Query(None, description="Re-analyze only this ASIN"),
    country: str = Query("us", description="Marketplace country code (with asin)"),
    grades: str = Query("D,F", description="Comma-separated grades to re-analyze (batch mode)"),
    limit: int = Query(50, ge=1, le=500, description="Maximum products to queue (batch mode)"),
    min_fake_percentage: float = Query(60.0, ge=0, le=100),
):
    """Queue re-analysis of already graded products.

    With ``asin``, that product is queued. Otherwise up to ``limit`` completed
    products with one of ``grades`` and a fake percentage above
    ``min_fake_percentage`` are queued, worst first. Jobs run on
    /internal/run_jobs.
    """
    from app.pipeline.reanalysis import enqueue_graded_reanalysis, enqueue_reanalysis
    from app.services.amazon_url import ASIN_RE, normalize_country
    from app.services.asin_store import get_asin_data

    if asin is not None:
        asin = asin.strip().upper()
        if not ASIN_RE.match(asin):
            raise HTTPException(status_code=422, detail="Invalid asin: must be 10 letters or digits")
        country = normalize_country(country)
        if get_asin_data(db, asin, country) is None:
            raise HTTPException(status_code=404, detail="Product not found")
        job_id = enqueue_reanalysis(db, asin, country)
        return {"status": "queued", "queued": [{"asin": asin, "country": country, "job_run_id": job_id}]}

    grade_list = [g.strip().upper() for g in grades.split(",") if g.strip()]
    if not grade_list:
        raise HTTPException(status_code=422, detail="grades must name at least one grade")
    try:
        queued = enqueue_graded_reanalysis(
            db, grades=grade_list, limit=limit, min_fake_percentage=min_fake_percentage
        )
        return {"status": "queued", "queued": queued}
    except Exception as exc:
        logger.exception("Internal reanalyze enqueue failed")
        return {"status": "failed", "error": str(exc)}
