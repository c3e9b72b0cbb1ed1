"""
Product analysis job for one AnalysisSession.

Steps (progress %):
  1 validate request (12), 2 look up the product (25), 3 gather reviews when
  none are stored (52), 4 LLM analysis when not analyzed yet (70), 5 metrics
  (85), 6 final report (95), then completed (100).

Any exception marks the session failed with a user-facing message; the
session is never left in ``processing``.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import (
    AllProvidersFailed,
    NoReviewsAvailable,
    ScrapingJobFailed,
    ValidationError,
)
from app.llm.manager import LLMServiceManager
from app.models.analysis_session import AnalysisSession
from app.schemas.analysis import AsinDataRead
from app.services.amazon_url import extract_asin, extract_country, product_page_path
from app.services.asin_store import get_asin_data, save_scraped_reviews
from app.services.brightdata import BrightDataClient
from app.services.metrics import calculate_final_metrics
from app.services.review_analysis import analyze_asin_data

logger = logging.getLogger(__name__)

STEP_VALIDATE = (1, 12.0, "Validating request...")
STEP_LOOKUP = (2, 25.0, "Checking product database...")
STEP_GATHER = (3, 52.0, "Gathering review information...")
STEP_ANALYZE = (4, 70.0, "Analyzing reviews with AI...")
STEP_METRICS = (5, 85.0, "Computing authenticity metrics...")
STEP_REPORT = (6, 95.0, "Generating final report...")

GENERIC_FAILURE_MESSAGE = "An unexpected error occurred during analysis. Please try again."


def user_message_for(exc: Exception) -> str:
    """Message stored on a failed session."""
    if isinstance(exc, AllProvidersFailed):
        return "Our analysis service is temporarily unavailable. Please try again in a few minutes."
    if isinstance(exc, ScrapingJobFailed):
        return "Unable to gather reviews for this product right now. Please try again later."
    if isinstance(exc, (ValidationError, NoReviewsAvailable)):
        return str(exc)
    return GENERIC_FAILURE_MESSAGE


def _step(db: Session, session: AnalysisSession, step: tuple[int, float, str]) -> None:
    session.update_progress(*step)
    db.commit()


def run_product_analysis(
    db: Session,
    session_id: str,
    manager: LLMServiceManager | None = None,
    scraper: BrightDataClient | None = None,
) -> AnalysisSession | None:
    """Run the analysis steps for ``session_id``. Returns the session, or None if missing."""
    session = db.get(AnalysisSession, session_id)
    if session is None:
        logger.error("Analysis session not found: %s", session_id)
        return None

    settings = get_settings()
    try:
        session.mark_processing()
        db.commit()
        logger.info("Starting product analysis session=%s asin=%s", session.id, session.asin)

        _step(db, session, STEP_VALIDATE)
        asin = extract_asin(session.product_url)
        country = extract_country(session.product_url)

        _step(db, session, STEP_LOOKUP)
        record = get_asin_data(db, asin, country)

        if record is None or (not record.is_analyzed() and not record.get_reviews()):
            _step(db, session, STEP_GATHER)
            scraper = scraper or BrightDataClient.from_settings(settings)
            scraped = scraper.fetch_reviews(asin, country)
            record, _ = save_scraped_reviews(db, asin, country, scraped)
            logger.info("Gathered %d reviews for %s/%s", len(record.get_reviews()), asin, country)

        if not record.is_analyzed():
            _step(db, session, STEP_ANALYZE)
            analyze_asin_data(db, record, manager=manager)
            db.refresh(record)

        _step(db, session, STEP_METRICS)
        analysis_result = calculate_final_metrics(record, settings.fake_score_cutoff)

        _step(db, session, STEP_REPORT)
        result: dict[str, Any] = {
            "success": True,
            "asin_data": AsinDataRead.model_validate(record).model_dump(mode="json"),
            "analysis_result": analysis_result,
            "redirect_url": (
                product_page_path(record.asin, record.country, record.product_title)
                if record.have_product_data
                else None
            ),
        }
        session.mark_completed(result)
        db.commit()
        logger.info(
            "Product analysis completed session=%s asin=%s grade=%s",
            session.id,
            asin,
            record.grade,
        )
    except Exception as exc:
        logger.exception("Product analysis failed session=%s: %s", session_id, exc)
        db.rollback()
        session.mark_failed(user_message_for(exc))
        db.commit()

    return session
