"""Review submissions from the Chrome extension: validate, store, analyze."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.exceptions import ValidationError
from app.llm.manager import LLMServiceManager
from app.models.asin_data import STATUS_FETCHED, AsinData
from app.schemas.extension import ExtensionReview, ExtensionSubmission
from app.services.amazon_url import product_page_path
from app.services.asin_store import get_or_create_asin_data, protected_update
from app.services.review_analysis import analyze_asin_data

logger = logging.getLogger(__name__)

SOURCE_EXTENSION = "chrome_extension"


def validate_submission(payload: Any) -> ExtensionSubmission:
    """Parse the raw JSON body.

    Raises:
        ValidationError: With one ``{"field", "message"}`` entry per problem.
    """
    if not isinstance(payload, dict):
        raise ValidationError(
            "Invalid data format", [{"field": "body", "message": "Expected a JSON object"}]
        )
    try:
        return ExtensionSubmission.model_validate(payload)
    except PydanticValidationError as exc:
        details = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        raise ValidationError("Invalid data format", details) from exc


def transform_reviews(reviews: list[ExtensionReview]) -> list[dict[str, Any]]:
    """Extension review shape -> stored review shape (``id``/``text`` keys)."""
    return [
        {
            "id": review.review_id,
            "author": review.author,
            "title": review.title,
            "text": review.content,
            "rating": review.rating,
            "date": review.date,
            "verified_purchase": review.verified_purchase,
            "vine_customer": review.vine_customer,
            "helpful_votes": review.helpful_votes,
            "extraction_index": review.extraction_index,
        }
        for review in reviews
    ]


def store_submission(db: Session, submission: ExtensionSubmission) -> tuple[AsinData, bool]:
    """Write reviews and product info with status ``fetched``.

    Returns ``(record, written)``; an analyzed record is never overwritten.
    """
    record = get_or_create_asin_data(db, submission.asin, submission.country)
    info = submission.product_info
    values = {
        "reviews": transform_reviews(submission.reviews),
        "product_title": info.title,
        "product_description": info.description or "",
        "product_image_url": info.image_url,
        "have_product_data": bool(info.title and info.image_url),
        "total_reviews_on_amazon": info.total_reviews_on_amazon,
        "status": STATUS_FETCHED,
        "source": SOURCE_EXTENSION,
        "extension_version": submission.extension_version,
        "extraction_timestamp": submission.extraction_timestamp,
    }
    written = protected_update(db, record.id, values)
    db.refresh(record)
    logger.info(
        "Stored extension submission %s/%s: reviews=%d version=%s written=%s",
        submission.asin,
        submission.country,
        len(submission.reviews),
        submission.extension_version,
        written,
    )
    return record, written


def analysis_payload(record: AsinData) -> dict[str, Any]:
    """Status view of a product for the extension."""
    redirect_url = product_page_path(record.asin, record.country, record.product_title)
    analyzed = record.is_analyzed()
    return {
        "asin": record.asin,
        "country": record.country,
        "analysis_id": record.id,
        "status": record.status,
        "analysis_complete": analyzed,
        "redirect_url": redirect_url,
        "view_url": redirect_url,
        "fake_percentage": record.fake_percentage,
        "grade": record.grade,
        "adjusted_rating": record.adjusted_rating,
        "amazon_rating": record.amazon_rating,
        "explanation": record.explanation,
        "product_title": record.product_title,
        "product_image_url": record.product_image_url,
        "total_reviews_on_amazon": record.total_reviews_on_amazon,
        "analyzed_at": record.last_analyzed_at.isoformat() if record.last_analyzed_at else None,
    }


def process_submission(
    db: Session,
    payload: Any,
    manager: LLMServiceManager | None = None,
) -> dict[str, Any]:
    """Validate, store and synchronously analyze an extension submission.

    An already analyzed product is returned as is with ``already_analyzed``.

    Raises:
        ValidationError: Payload is malformed.
        AllProvidersFailed: No LLM provider could score the reviews.
    """
    submission = validate_submission(payload)
    existing = (
        db.query(AsinData)
        .filter(AsinData.asin == submission.asin, AsinData.country == submission.country)
        .first()
    )
    if existing is not None and existing.is_analyzed():
        logger.info(
            "Extension submission for analyzed product %s/%s, returning stored result",
            submission.asin,
            submission.country,
        )
        return {"success": True, "already_analyzed": True, **analysis_payload(existing)}

    record, _ = store_submission(db, submission)
    metrics = analyze_asin_data(db, record, manager=manager)
    db.refresh(record)

    return {
        "success": True,
        "already_analyzed": False,
        "processed_reviews": len(record.get_reviews()),
        "results": {
            "fake_percentage": metrics["fake_percentage"],
            "grade": metrics["grade"],
            "explanation": metrics["explanation"],
            "amazon_rating": metrics["amazon_rating"],
            "adjusted_rating": metrics["adjusted_rating"],
            "rating_difference": round(metrics["adjusted_rating"] - metrics["amazon_rating"], 2),
        },
        **analysis_payload(record),
    }
