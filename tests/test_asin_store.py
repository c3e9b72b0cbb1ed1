"""Tests for AsinData persistence and completed-status protection."""

from __future__ import annotations

import time
from unittest.mock import patch

from sqlalchemy.orm import Session

from app.models.asin_data import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PENDING_ANALYSIS,
    AsinData,
)
from app.services import asin_store
from app.services.asin_store import (
    get_asin_data,
    get_or_create_asin_data,
    mark_asin_failed,
    protected_update,
    save_analysis,
    save_scraped_reviews,
)
from app.services.metrics import compute_metrics

ASIN = "B000TEST01"


def _scraped(n: int = 2, title: str = "Blender", image: str = "https://img/x.jpg") -> dict:
    return {
        "reviews": [{"id": f"R{i}", "rating": 5, "text": "nice"} for i in range(n)],
        "description": "",
        "total_reviews": 1234,
        "product_name": title,
        "product_image_url": image,
    }


def _llm_result(scores: dict[str, int]) -> dict:
    return {
        "detailed_scores": {rid: {"score": s} for rid, s in scores.items()},
        "analysis_provider": "OpenAI-gpt-4o-mini",
        "total_cost": 0.0,
    }


def _analyze(db: Session, record: AsinData, scores: dict[str, int], force: bool = False) -> bool:
    result = _llm_result(scores)
    metrics = compute_metrics(record.get_reviews(), result["detailed_scores"])
    return save_analysis(db, record, result, metrics, force=force)


class TestGetOrCreate:
    def test_creates_once(self, db: Session):
        first = get_or_create_asin_data(db, ASIN, "us")
        second = get_or_create_asin_data(db, ASIN, "us")
        assert first.id == second.id
        assert first.status == STATUS_PENDING
        assert db.query(AsinData).count() == 1

    def test_country_is_part_of_identity(self, db: Session):
        us = get_or_create_asin_data(db, ASIN, "us")
        gb = get_or_create_asin_data(db, ASIN, "gb")
        assert us.id != gb.id
        assert get_asin_data(db, ASIN, "de") is None

    def test_concurrent_insert_returns_existing_record(self, db: Session):
        existing = get_or_create_asin_data(db, ASIN, "us", status=STATUS_PENDING_ANALYSIS)
        existing_id = existing.id
        lookups: list[str] = []

        def _miss_first_lookup(session, asin, country="us"):
            lookups.append(asin)
            if len(lookups) == 1:
                return None  # the other writer has not committed yet
            return get_asin_data(session, asin, country)

        with patch.object(asin_store, "get_asin_data", side_effect=_miss_first_lookup):
            record = get_or_create_asin_data(db, ASIN, "us")

        assert record.id == existing_id
        assert record.status == STATUS_PENDING_ANALYSIS
        assert len(lookups) == 2
        assert db.query(AsinData).count() == 1


class TestSaveScrapedReviews:
    def test_writes_pending_analysis(self, db: Session):
        record, written = save_scraped_reviews(db, ASIN, "us", _scraped(3))
        assert written is True
        assert record.status == STATUS_PENDING_ANALYSIS
        assert len(record.get_reviews()) == 3
        assert record.product_title == "Blender"
        assert record.have_product_data is True
        assert record.total_reviews_on_amazon == 1234
        assert record.source == "brightdata"

    def test_missing_image_means_no_product_data(self, db: Session):
        record, _ = save_scraped_reviews(db, ASIN, "us", _scraped(1, image=""))
        assert record.have_product_data is False


class TestProtection:
    def test_late_scrape_does_not_revert_completed(self, db: Session):
        record, _ = save_scraped_reviews(db, ASIN, "us", _scraped(2))
        assert _analyze(db, record, {"R0": 10, "R1": 95}) is True
        assert record.is_analyzed()

        record, written = save_scraped_reviews(db, ASIN, "us", _scraped(5))
        assert written is False
        assert record.status == STATUS_COMPLETED
        assert len(record.get_reviews()) == 2

    def test_mark_failed_refused_after_completion(self, db: Session):
        record, _ = save_scraped_reviews(db, ASIN, "us", _scraped(1))
        _analyze(db, record, {"R0": 10})
        assert mark_asin_failed(db, ASIN, "us", "late timeout") is False
        db.refresh(record)
        assert record.status == STATUS_COMPLETED

    def test_mark_failed_before_completion(self, db: Session):
        get_or_create_asin_data(db, ASIN, "us")
        assert mark_asin_failed(db, ASIN, "us", "trigger refused") is True
        assert get_asin_data(db, ASIN, "us").status == STATUS_FAILED

    def test_mark_failed_missing_record(self, db: Session):
        assert mark_asin_failed(db, "B0MISSING0", "us", "x") is False

    def test_completed_without_grade_is_not_protected(self, db: Session):
        record = get_or_create_asin_data(db, ASIN, "us", status=STATUS_COMPLETED)
        assert protected_update(db, record.id, {"status": STATUS_PENDING_ANALYSIS}) is True

    def test_second_analysis_refused_without_force(self, db: Session):
        record, _ = save_scraped_reviews(db, ASIN, "us", _scraped(2))
        _analyze(db, record, {"R0": 10, "R1": 10})
        assert record.grade == "A"
        assert _analyze(db, record, {"R0": 99, "R1": 99}) is False
        assert record.grade == "A"


class TestAnalysisTimestamps:
    def test_first_analyzed_at_survives_forced_reanalysis(self, db: Session):
        record, _ = save_scraped_reviews(db, ASIN, "us", _scraped(2))
        _analyze(db, record, {"R0": 10, "R1": 10})
        first = record.first_analyzed_at
        last = record.last_analyzed_at
        assert first is not None
        assert last is not None

        time.sleep(0.01)
        assert _analyze(db, record, {"R0": 99, "R1": 99}, force=True) is True
        assert record.first_analyzed_at == first
        assert record.last_analyzed_at > last
        assert record.grade == "F"
        assert record.fake_percentage == 100.0

    def test_explanation_and_ratings_saved(self, db: Session):
        record, _ = save_scraped_reviews(db, ASIN, "us", _scraped(2))
        _analyze(db, record, {"R0": 10, "R1": 90})
        assert record.fake_percentage == 50.0
        assert record.grade == "D"
        assert record.adjusted_rating == 5.0
        assert record.amazon_rating == 5.0
        assert record.explanation.startswith("Analysis of 2 reviews")
        assert record.llm_result["analysis_provider"] == "OpenAI-gpt-4o-mini"
