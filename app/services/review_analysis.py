"""LLM analysis of a stored product: score reviews, compute metrics, save with protection."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import NoReviewsAvailable
from app.llm.manager import LLMServiceManager
from app.llm.router import get_llm_manager
from app.models.asin_data import AsinData
from app.services.asin_store import get_asin_data, save_analysis
from app.services.metrics import (
    calculate_final_metrics,
    compute_metrics,
    default_analysis_result,
    default_metrics,
    is_analyzable,
)

logger = logging.getLogger(__name__)


def analyze_reviews_with_llm(
    reviews: list[dict[str, Any]],
    manager: LLMServiceManager | None = None,
) -> dict[str, Any]:
    """Score ``reviews`` through the provider manager.

    Raises:
        NoReviewsAvailable: ``reviews`` is empty.
        AllProvidersFailed: Every provider failed.
    """
    if not reviews:
        raise NoReviewsAvailable("No reviews found for analysis")
    manager = manager or get_llm_manager()
    logger.info("Sending %d reviews for LLM analysis", len(reviews))
    result, _ = manager.analyze_reviews(reviews)
    return result


def complete_without_reviews(db: Session, record: AsinData, force: bool = False) -> dict[str, Any]:
    """Finish a product with no reviews as grade U so it never sits in processing."""
    metrics = default_metrics()
    save_analysis(db, record, default_analysis_result(), metrics, force=force)
    logger.info("Completed %s/%s without reviews (grade U)", record.asin, record.country)
    return metrics


def analyze_asin_data(
    db: Session,
    record: AsinData,
    manager: LLMServiceManager | None = None,
    force: bool = False,
) -> dict[str, Any]:
    """Analyze a stored product and persist the outcome.

    An already analyzed record is left alone (its stored metrics are returned)
    unless ``force`` is set.

    Returns:
        The metrics dict (fake_percentage, grade, explanation, ratings, counts).
    """
    if record.is_analyzed() and not force:
        logger.info("%s/%s already analyzed, skipping LLM call", record.asin, record.country)
        return calculate_final_metrics(record, get_settings().fake_score_cutoff)

    if not is_analyzable(record):
        return complete_without_reviews(db, record, force=force)

    reviews = record.get_reviews()
    llm_result = analyze_reviews_with_llm(reviews, manager)
    metrics = compute_metrics(reviews, llm_result.get("detailed_scores") or {}, get_settings().fake_score_cutoff)
    save_analysis(db, record, llm_result, metrics, force=force)
    return metrics


def analyze_asin(
    db: Session,
    asin: str,
    country: str = "us",
    manager: LLMServiceManager | None = None,
) -> dict[str, Any]:
    """Analyze the stored (asin, country) record.

    Raises:
        NoReviewsAvailable: No record exists for the product.
    """
    record = get_asin_data(db, asin, country)
    if record is None:
        raise NoReviewsAvailable(f"No stored reviews for {asin}/{country}")
    return analyze_asin_data(db, record, manager=manager)


def reanalyze_asin(
    db: Session,
    asin: str,
    country: str = "us",
    manager: LLMServiceManager | None = None,
) -> dict[str, Any]:
    """Score an analyzed product again and overwrite its stored result.

    ``first_analyzed_at`` keeps its original value.

    Raises:
        NoReviewsAvailable: No record exists for the product.
    """
    record = get_asin_data(db, asin, country)
    if record is None:
        raise NoReviewsAvailable(f"No stored reviews for {asin}/{country}")

    previous_grade = record.grade
    previous_fake_percentage = record.fake_percentage
    metrics = analyze_asin_data(db, record, manager=manager, force=True)
    logger.info(
        "Re-analyzed %s/%s: %s (%s%%) -> %s (%s%%)",
        asin,
        country,
        previous_grade,
        previous_fake_percentage,
        metrics["grade"],
        metrics["fake_percentage"],
    )
    return {
        **metrics,
        "previous_grade": previous_grade,
        "previous_fake_percentage": previous_fake_percentage,
    }
