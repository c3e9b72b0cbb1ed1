"""Tests for model helpers and table constraints."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import AnalysisSession, AsinData
from app.models.analysis_session import SESSION_COMPLETED, SESSION_FAILED, SESSION_PROCESSING
from app.models.asin_data import STATUS_COMPLETED
from tests.test_constants import TEST_ASIN, TEST_PRODUCT_URL


class TestAsinData:
    def test_is_analyzed_requires_grade_and_percentage(self):
        record = AsinData(asin=TEST_ASIN, country="us", status=STATUS_COMPLETED)
        assert not record.is_analyzed()
        record.grade = "B"
        assert not record.is_analyzed()
        record.fake_percentage = 12.0
        assert record.is_analyzed()

    def test_accessors_tolerate_missing_values(self):
        record = AsinData(asin=TEST_ASIN, country="us")
        assert record.get_reviews() == []
        assert record.get_detailed_scores() == {}
        record.llm_result = {"detailed_scores": {"R1": {"score": 40}}}
        assert record.get_detailed_scores() == {"R1": {"score": 40}}

    def test_asin_country_unique(self, db: Session):
        db.add(AsinData(asin=TEST_ASIN, country="us"))
        db.commit()
        db.add(AsinData(asin=TEST_ASIN, country="us"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_same_asin_other_country(self, db: Session):
        db.add_all([AsinData(asin=TEST_ASIN, country="us"), AsinData(asin=TEST_ASIN, country="de")])
        db.commit()
        assert db.query(AsinData).count() == 2


class TestAnalysisSession:
    def test_defaults(self, db: Session):
        session = AnalysisSession(user_session="u1", asin=TEST_ASIN, product_url=TEST_PRODUCT_URL)
        db.add(session)
        db.commit()
        assert len(session.id) == 36
        assert session.status == "pending"
        assert session.total_steps == 7
        assert session.progress_percentage == 0.0

    def test_lifecycle(self):
        session = AnalysisSession(user_session="u1", asin=TEST_ASIN, product_url=TEST_PRODUCT_URL)
        session.mark_processing()
        assert session.is_processing()
        session.update_progress(3, 52.0, "Gathering review information...")
        assert session.current_step == 3
        session.mark_completed({"success": True})
        assert session.status == SESSION_COMPLETED
        assert session.progress_percentage == 100.0
        assert session.completed_at is not None

    def test_mark_failed(self):
        session = AnalysisSession(user_session="u1", asin=TEST_ASIN, product_url=TEST_PRODUCT_URL)
        session.mark_failed("boom")
        assert session.status == SESSION_FAILED
        assert session.is_failed()
        assert session.error_message == "boom"
        assert session.status != SESSION_PROCESSING
