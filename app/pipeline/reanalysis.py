"""
Re-analysis of products that already have a grade.

Used when scoring prompts or providers change: poorly graded products are
queued one ``reanalyze_asin`` job each and scored again with protection
bypassed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy.orm import Session

from app.pipeline.queue import enqueue
from app.services.asin_store import find_reanalysis_candidates
from app.services.review_analysis import reanalyze_asin

logger = logging.getLogger(__name__)

JOB_REANALYZE_ASIN = "reanalyze_asin"

DEFAULT_GRADES = ("D", "F")
DEFAULT_LIMIT = 50
# High fake percentages are the likeliest false positives
DEFAULT_MIN_FAKE_PERCENTAGE = 60.0


def enqueue_reanalysis(db: Session, asin: str, country: str = "us") -> int:
    """Queue one product for re-analysis. Returns the job id."""
    job = enqueue(db, JOB_REANALYZE_ASIN, {"asin": asin, "country": country})
    return job.id


def enqueue_graded_reanalysis(
    db: Session,
    grades: Sequence[str] = DEFAULT_GRADES,
    limit: int = DEFAULT_LIMIT,
    min_fake_percentage: float = DEFAULT_MIN_FAKE_PERCENTAGE,
) -> list[dict[str, Any]]:
    """Queue re-analysis for up to ``limit`` completed products with one of ``grades``."""
    candidates = find_reanalysis_candidates(db, grades, limit, min_fake_percentage)
    queued = [
        {
            "asin": record.asin,
            "country": record.country,
            "grade": record.grade,
            "job_run_id": enqueue_reanalysis(db, record.asin, record.country),
        }
        for record in candidates
    ]
    logger.info(
        "Queued re-analysis for %d products (grades=%s, fake > %s%%)",
        len(queued),
        ",".join(grades),
        min_fake_percentage,
    )
    return queued


def reanalyze_asin_job(db: Session, asin: str, country: str = "us") -> dict[str, Any]:
    metrics = reanalyze_asin(db, asin, country)
    return {
        "status": "reanalyzed",
        "previous_grade": metrics["previous_grade"],
        "grade": metrics["grade"],
        "fake_percentage": metrics["fake_percentage"],
    }
