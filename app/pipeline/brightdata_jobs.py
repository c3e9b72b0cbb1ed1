"""
BrightData scraping job chain.

trigger_brightdata_scraping -> check_brightdata_progress (re-enqueued every
check delay until ready) -> process_brightdata_results -> analyze_asin.
Each step runs as its own queued JobRun.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import ScrapingJobFailed
from app.models.asin_data import STATUS_PROCESSING
from app.pipeline.queue import enqueue
from app.services.amazon_url import build_product_url
from app.services.asin_store import get_or_create_asin_data, mark_asin_failed, save_scraped_reviews
from app.services.brightdata import PROGRESS_FAILED, PROGRESS_READY, BrightDataClient, transform_results
from app.services.review_analysis import analyze_asin

logger = logging.getLogger(__name__)

JOB_TRIGGER = "trigger_brightdata_scraping"
JOB_CHECK_PROGRESS = "check_brightdata_progress"
JOB_PROCESS_RESULTS = "process_brightdata_results"
JOB_ANALYZE_ASIN = "analyze_asin"


def _client(client: BrightDataClient | None) -> BrightDataClient:
    return client or BrightDataClient.from_settings(get_settings())


def trigger_brightdata_scraping(
    db: Session,
    asin: str,
    country: str = "us",
    client: BrightDataClient | None = None,
) -> dict[str, Any]:
    """Start a BrightData job and schedule the first progress check.

    Raises:
        ScrapingJobFailed: BrightData did not return a snapshot id.
    """
    settings = get_settings()
    client = _client(client)
    get_or_create_asin_data(db, asin, country, status=STATUS_PROCESSING)

    snapshot_id = client.trigger([build_product_url(asin, country)])
    if not snapshot_id:
        mark_asin_failed(db, asin, country, "BrightData trigger returned no snapshot id")
        raise ScrapingJobFailed(f"Failed to trigger BrightData scraping job for {asin}/{country}")

    enqueue(
        db,
        JOB_CHECK_PROGRESS,
        {"asin": asin, "country": country, "job_id": snapshot_id, "attempt": 1},
        delay_seconds=settings.brightdata_check_delay,
    )
    logger.info("BrightData job %s triggered for %s/%s", snapshot_id, asin, country)
    return {"status": "triggered", "job_id": snapshot_id}


def check_brightdata_progress(
    db: Session,
    asin: str,
    country: str,
    job_id: str,
    attempt: int = 1,
    client: BrightDataClient | None = None,
) -> dict[str, Any]:
    """Poll one time; re-enqueue itself while running.

    Raises:
        ScrapingJobFailed: Job failed on BrightData's side or the attempt ceiling was hit.
    """
    settings = get_settings()
    client = _client(client)
    max_attempts = settings.brightdata_max_check_attempts

    progress = client.get_progress(job_id)
    status = progress["status"]
    logger.info(
        "BrightData job %s for %s/%s: status=%s attempt=%d/%d records=%s",
        job_id,
        asin,
        country,
        status,
        attempt,
        max_attempts,
        progress.get("records"),
    )

    if status == PROGRESS_READY:
        enqueue(db, JOB_PROCESS_RESULTS, {"asin": asin, "country": country, "job_id": job_id})
        return {"status": "ready", "job_id": job_id}

    if status in PROGRESS_FAILED or attempt >= max_attempts:
        reason = (
            f"BrightData job {job_id} failed with status {status}"
            if status in PROGRESS_FAILED
            else f"BrightData job {job_id} still {status} after {attempt} checks"
        )
        mark_asin_failed(db, asin, country, reason)
        client.cancel(job_id)
        raise ScrapingJobFailed(reason)

    enqueue(
        db,
        JOB_CHECK_PROGRESS,
        {"asin": asin, "country": country, "job_id": job_id, "attempt": attempt + 1},
        delay_seconds=settings.brightdata_check_delay,
        attempt=attempt + 1,
    )
    return {"status": status, "job_id": job_id, "next_attempt": attempt + 1}


def process_brightdata_results(
    db: Session,
    asin: str,
    country: str,
    job_id: str,
    client: BrightDataClient | None = None,
) -> dict[str, Any]:
    """Download, transform and store the snapshot, then schedule LLM analysis."""
    client = _client(client)
    rows = client.fetch_snapshot(job_id)
    scraped = transform_results(rows, asin)
    record, written = save_scraped_reviews(db, asin, country, scraped)
    if not written:
        logger.info("Skipped BrightData results for analyzed product %s/%s", asin, country)
        return {"status": "skipped", "reason": "already_analyzed", "asin_data_id": record.id}

    enqueue(db, JOB_ANALYZE_ASIN, {"asin": asin, "country": country})
    return {
        "status": "saved",
        "asin_data_id": record.id,
        "reviews": len(scraped["reviews"]),
    }


def analyze_asin_job(db: Session, asin: str, country: str = "us") -> dict[str, Any]:
    metrics = analyze_asin(db, asin, country)
    return {"status": "analyzed", "grade": metrics["grade"], "fake_percentage": metrics["fake_percentage"]}
