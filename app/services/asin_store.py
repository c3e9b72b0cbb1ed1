"""
AsinData persistence with completed-status protection.

Writers that may run late (queued jobs, retries) go through the functions here.
Protection is a single conditional UPDATE: the WHERE clause excludes records
that are already analyzed, so a zero row count means the write was refused.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, func, not_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.asin_data import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PENDING_ANALYSIS,
    AsinData,
)

logger = logging.getLogger(__name__)


def _not_analyzed_clause():
    return not_(
        and_(
            AsinData.status == STATUS_COMPLETED,
            AsinData.grade.is_not(None),
            AsinData.fake_percentage.is_not(None),
        )
    )


def get_asin_data(db: Session, asin: str, country: str = "us") -> AsinData | None:
    return db.execute(
        select(AsinData).where(AsinData.asin == asin, AsinData.country == country)
    ).scalar_one_or_none()


def get_or_create_asin_data(
    db: Session,
    asin: str,
    country: str = "us",
    status: str = STATUS_PENDING,
    **fields: Any,
) -> AsinData:
    """Return the (asin, country) record, creating it with ``status`` when missing.

    A concurrent writer inserting the same key first wins; its record is returned.
    """
    record = get_asin_data(db, asin, country)
    if record is not None:
        return record
    record = AsinData(asin=asin, country=country, status=status, **fields)
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_asin_data(db, asin, country)
        if existing is None:
            raise
        logger.info("asin_data %s/%s was created concurrently, using existing record", asin, country)
        return existing
    db.refresh(record)
    logger.info("Created asin_data record %s/%s status=%s", asin, country, status)
    return record


def protected_update(db: Session, record_id: int, values: dict[str, Any], force: bool = False) -> bool:
    """Apply ``values`` unless the record is already analyzed.

    ``force`` skips the protection (explicit re-analysis). Returns True when a
    row was written. Commits.
    """
    values = {**values, "updated_at": datetime.now(UTC)}
    stmt = update(AsinData).where(AsinData.id == record_id)
    if not force:
        stmt = stmt.where(_not_analyzed_clause())
    result = db.execute(stmt.values(**values).execution_options(synchronize_session=False))
    db.commit()
    written = result.rowcount > 0
    if not written:
        logger.warning(
            "Refused write to asin_data id=%s: record already analyzed (fields=%s)",
            record_id,
            sorted(values),
        )
    return written


def save_scraped_reviews(
    db: Session,
    asin: str,
    country: str,
    scraped: dict[str, Any],
    source: str = "brightdata",
) -> tuple[AsinData, bool]:
    """Store transformed scraper output with status ``pending_analysis``.

    Returns ``(record, written)``; ``written`` is False when the record was
    already analyzed and left untouched.
    """
    record = get_or_create_asin_data(db, asin, country)
    title = scraped.get("product_name") or None
    image = scraped.get("product_image_url") or None
    values: dict[str, Any] = {
        "reviews": scraped.get("reviews") or [],
        "product_description": scraped.get("description") or None,
        "total_reviews_on_amazon": scraped.get("total_reviews"),
        "product_title": title,
        "product_image_url": image,
        "have_product_data": bool(title and image),
        "status": STATUS_PENDING_ANALYSIS,
        "source": source,
    }
    written = protected_update(db, record.id, values)
    db.refresh(record)
    if written:
        logger.info(
            "Saved %d scraped reviews for %s/%s",
            len(values["reviews"]),
            asin,
            country,
        )
    return record, written


def save_analysis(
    db: Session,
    record: AsinData,
    llm_result: dict[str, Any],
    metrics: dict[str, Any],
    force: bool = False,
) -> bool:
    """Persist LLM result and metrics and mark the record completed.

    ``first_analyzed_at`` is only set when NULL; ``last_analyzed_at`` is always
    refreshed. Without ``force`` an analyzed record is never overwritten.
    """
    now = datetime.now(UTC)
    values = {
        "llm_result": llm_result,
        "fake_percentage": metrics["fake_percentage"],
        "grade": metrics["grade"],
        "explanation": metrics["explanation"],
        "amazon_rating": metrics["amazon_rating"],
        "adjusted_rating": metrics["adjusted_rating"],
        "status": STATUS_COMPLETED,
        "first_analyzed_at": func.coalesce(AsinData.first_analyzed_at, now),
        "last_analyzed_at": now,
    }
    written = protected_update(db, record.id, values, force=force)
    db.refresh(record)
    if written:
        logger.info(
            "Saved analysis for %s/%s: grade=%s fake=%s%% provider=%s",
            record.asin,
            record.country,
            record.grade,
            record.fake_percentage,
            llm_result.get("analysis_provider"),
        )
    return written


def mark_asin_failed(db: Session, asin: str, country: str, reason: str) -> bool:
    """Set status ``failed`` unless the record is already analyzed."""
    record = get_asin_data(db, asin, country)
    if record is None:
        logger.warning("Cannot mark missing asin_data %s/%s failed: %s", asin, country, reason)
        return False
    written = protected_update(db, record.id, {"status": STATUS_FAILED})
    if written:
        logger.warning("Marked asin_data %s/%s failed: %s", asin, country, reason)
    return written


def find_reanalysis_candidates(
    db: Session,
    grades: Sequence[str],
    limit: int,
    min_fake_percentage: float = 0.0,
) -> list[AsinData]:
    """Completed records with one of ``grades``, highest fake percentage first.

    Only records whose fake percentage is above ``min_fake_percentage`` are
    returned.
    """
    return list(
        db.scalars(
            select(AsinData)
            .where(
                AsinData.status == STATUS_COMPLETED,
                AsinData.grade.in_([g.upper() for g in grades]),
                AsinData.fake_percentage > min_fake_percentage,
            )
            .order_by(AsinData.fake_percentage.desc(), AsinData.id)
            .limit(limit)
        )
    )
