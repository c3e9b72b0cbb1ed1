"""Tests for the job queue, the BrightData job chain and the executor."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.exceptions import ScrapingJobFailed
from app.models.asin_data import STATUS_COMPLETED, STATUS_FAILED, STATUS_PENDING_ANALYSIS, STATUS_PROCESSING
from app.models.job_run import JOB_COMPLETED, JOB_FAILED, JOB_QUEUED, JOB_RUNNING, JobRun
from app.pipeline.brightdata_jobs import (
    JOB_ANALYZE_ASIN,
    JOB_CHECK_PROGRESS,
    JOB_PROCESS_RESULTS,
    JOB_TRIGGER,
    check_brightdata_progress,
    process_brightdata_results,
    trigger_brightdata_scraping,
)
from app.pipeline.executor import run_due_jobs
from app.pipeline.queue import claim_job, due_job_ids, enqueue
from app.pipeline.reanalysis import JOB_REANALYZE_ASIN, enqueue_graded_reanalysis, enqueue_reanalysis
from app.services.asin_store import get_asin_data, get_or_create_asin_data
from app.services.review_analysis import analyze_asin_data
from tests.test_constants import TEST_ASIN


def _jobs(db: Session, job_type: str) -> list[JobRun]:
    return list(db.scalars(select(JobRun).where(JobRun.job_type == job_type).order_by(JobRun.id)))


def _make_all_due(db: Session) -> None:
    db.execute(
        update(JobRun)
        .where(JobRun.status == JOB_QUEUED)
        .values(run_after=datetime.now(UTC) - timedelta(seconds=1))
    )
    db.commit()


def _row(review_id: str, rating: int = 5) -> dict:
    return {
        "review_id": review_id,
        "review_text": f"Review text {review_id}",
        "rating": rating,
        "product_name": "Air Fryer XL",
        "product_image_url": "https://img/fryer.jpg",
        "product_rating_count": 10,
    }


def _bd_client(progress: str = "running", snapshot_id: str | None = "s_1", rows=None) -> MagicMock:
    client = MagicMock()
    client.trigger.return_value = snapshot_id
    client.get_progress.return_value = {"status": progress, "records": 0}
    client.fetch_snapshot.return_value = rows if rows is not None else [_row("R1"), _row("R2", 1)]
    client.cancel.return_value = True
    return client


# ── Queue ───────────────────────────────────────────────────────────


class TestQueue:
    def test_delayed_job_not_due_yet(self, db: Session):
        job = enqueue(db, "analyze_asin", {"asin": TEST_ASIN}, delay_seconds=60)
        assert job.status == JOB_QUEUED
        assert job.id not in due_job_ids(db, limit=10)
        later = datetime.now(UTC) + timedelta(minutes=2)
        assert job.id in due_job_ids(db, limit=10, now=later)

    def test_claim_only_once(self, db: Session):
        job = enqueue(db, "analyze_asin", {"asin": TEST_ASIN})
        claimed = claim_job(db, job.id)
        assert claimed is not None
        assert claimed.status == JOB_RUNNING
        assert claimed.started_at is not None
        assert claim_job(db, job.id) is None


# ── BrightData chain ────────────────────────────────────────────────


class TestTriggerScraping:
    def test_schedules_first_check(self, db: Session):
        client = _bd_client()
        result = trigger_brightdata_scraping(db, TEST_ASIN, "gb", client=client)

        assert result == {"status": "triggered", "job_id": "s_1"}
        client.trigger.assert_called_once_with([f"https://www.amazon.co.uk/dp/{TEST_ASIN}/"])
        assert get_asin_data(db, TEST_ASIN, "gb").status == STATUS_PROCESSING
        [check] = _jobs(db, JOB_CHECK_PROGRESS)
        assert check.payload == {"asin": TEST_ASIN, "country": "gb", "job_id": "s_1", "attempt": 1}
        assert check.id not in due_job_ids(db, limit=10)

    def test_no_snapshot_marks_failed(self, db: Session):
        with pytest.raises(ScrapingJobFailed):
            trigger_brightdata_scraping(db, TEST_ASIN, "us", client=_bd_client(snapshot_id=None))
        assert get_asin_data(db, TEST_ASIN, "us").status == STATUS_FAILED
        assert _jobs(db, JOB_CHECK_PROGRESS) == []


class TestCheckProgress:
    def test_ready_enqueues_processing(self, db: Session):
        result = check_brightdata_progress(db, TEST_ASIN, "us", "s_1", client=_bd_client("ready"))
        assert result["status"] == "ready"
        [job] = _jobs(db, JOB_PROCESS_RESULTS)
        assert job.payload == {"asin": TEST_ASIN, "country": "us", "job_id": "s_1"}

    def test_running_reschedules_next_attempt(self, db: Session):
        result = check_brightdata_progress(db, TEST_ASIN, "us", "s_1", attempt=3, client=_bd_client())
        assert result["next_attempt"] == 4
        [job] = _jobs(db, JOB_CHECK_PROGRESS)
        assert job.attempt == 4
        assert job.payload["attempt"] == 4

    def test_unknown_status_keeps_polling(self, db: Session):
        result = check_brightdata_progress(db, TEST_ASIN, "us", "s_1", client=_bd_client("unknown"))
        assert result["next_attempt"] == 2

    def test_attempt_ceiling_fails_and_cancels(self, db: Session):
        get_or_create_asin_data(db, TEST_ASIN, "us", status=STATUS_PROCESSING)
        client = _bd_client()
        with pytest.raises(ScrapingJobFailed):
            check_brightdata_progress(db, TEST_ASIN, "us", "s_1", attempt=10, client=client)
        client.cancel.assert_called_once_with("s_1")
        assert get_asin_data(db, TEST_ASIN, "us").status == STATUS_FAILED
        assert _jobs(db, JOB_CHECK_PROGRESS) == []

    def test_failed_job(self, db: Session):
        with pytest.raises(ScrapingJobFailed):
            check_brightdata_progress(db, TEST_ASIN, "us", "s_1", client=_bd_client("failed"))


class TestProcessResults:
    def test_saves_reviews_and_schedules_analysis(self, db: Session):
        result = process_brightdata_results(db, TEST_ASIN, "us", "s_1", client=_bd_client())
        assert result["status"] == "saved"
        assert result["reviews"] == 2
        record = get_asin_data(db, TEST_ASIN, "us")
        assert record.status == STATUS_PENDING_ANALYSIS
        assert record.product_title == "Air Fryer XL"
        assert record.have_product_data is True
        [job] = _jobs(db, JOB_ANALYZE_ASIN)
        assert job.payload == {"asin": TEST_ASIN, "country": "us"}

    def test_analyzed_record_is_not_overwritten(self, db: Session, fake_manager, make_reviews):
        record = get_or_create_asin_data(db, TEST_ASIN, "us", reviews=make_reviews(1))
        analyze_asin_data(db, record, manager=fake_manager({"R1": 5}))

        result = process_brightdata_results(db, TEST_ASIN, "us", "s_1", client=_bd_client())

        assert result["status"] == "skipped"
        db.refresh(record)
        assert record.status == STATUS_COMPLETED
        assert len(record.get_reviews()) == 1
        assert _jobs(db, JOB_ANALYZE_ASIN) == []


# ── Executor ────────────────────────────────────────────────────────


class TestRunDueJobs:
    def test_unknown_job_type_recorded_as_failed(self, db: Session):
        job = enqueue(db, "no_such_job")
        summary = run_due_jobs(db)
        assert summary["processed"] == 1
        assert summary["failed"] == 1
        db.refresh(job)
        assert job.status == JOB_FAILED
        assert "Unknown job_type" in job.error_message
        assert job.finished_at is not None

    def test_stage_exception_recorded(self, db: Session):
        job = enqueue(db, JOB_TRIGGER, {"asin": TEST_ASIN, "country": "us"})
        bd_cls = MagicMock()
        bd_cls.from_settings.return_value = _bd_client(snapshot_id=None)
        with patch("app.pipeline.brightdata_jobs.BrightDataClient", bd_cls):
            summary = run_due_jobs(db)
        assert summary["failed"] == 1
        db.refresh(job)
        assert job.status == JOB_FAILED
        assert "Failed to trigger" in job.error_message

    def test_full_chain(self, db: Session, fake_manager):
        enqueue(db, JOB_TRIGGER, {"asin": TEST_ASIN, "country": "us"})
        bd_cls = MagicMock()
        bd_cls.from_settings.return_value = _bd_client("ready")
        manager = fake_manager({"R1": 10, "R2": 95})

        with (
            patch("app.pipeline.brightdata_jobs.BrightDataClient", bd_cls),
            patch("app.services.review_analysis.get_llm_manager", return_value=manager),
        ):
            for _ in range(4):
                _make_all_due(db)
                summary = run_due_jobs(db)
                assert summary["failed"] == 0

        record = get_asin_data(db, TEST_ASIN, "us")
        assert record.status == STATUS_COMPLETED
        assert record.fake_percentage == 50.0
        assert record.grade == "D"
        assert record.first_analyzed_at is not None
        statuses = {job.job_type: job.status for job in db.scalars(select(JobRun))}
        assert statuses == {
            JOB_TRIGGER: JOB_COMPLETED,
            JOB_CHECK_PROGRESS: JOB_COMPLETED,
            JOB_PROCESS_RESULTS: JOB_COMPLETED,
            JOB_ANALYZE_ASIN: JOB_COMPLETED,
        }


# ── Re-analysis ─────────────────────────────────────────────────────


class TestReanalysisJobs:
    def _analyzed(self, db: Session, fake_manager, make_reviews, scores: dict[str, int]):
        record = get_or_create_asin_data(
            db, TEST_ASIN, "us", status=STATUS_PENDING_ANALYSIS, reviews=make_reviews(ratings=[5, 4])
        )
        analyze_asin_data(db, record, manager=fake_manager(scores))
        db.refresh(record)
        return record

    def test_job_overwrites_grade_and_keeps_first_analyzed_at(self, db: Session, fake_manager, make_reviews):
        record = self._analyzed(db, fake_manager, make_reviews, {"R1": 95, "R2": 90})
        assert record.grade == "F"
        first_analyzed_at = record.first_analyzed_at
        last_analyzed_at = record.last_analyzed_at

        job_id = enqueue_reanalysis(db, TEST_ASIN, "us")
        with patch(
            "app.services.review_analysis.get_llm_manager",
            return_value=fake_manager({"R1": 10, "R2": 15}),
        ):
            summary = run_due_jobs(db)

        assert summary["failed"] == 0
        assert summary["jobs"][0]["job_type"] == JOB_REANALYZE_ASIN
        assert summary["jobs"][0]["result"] == {
            "status": "reanalyzed",
            "previous_grade": "F",
            "grade": "A",
            "fake_percentage": 0.0,
        }
        db.refresh(record)
        assert record.grade == "A"
        assert record.status == STATUS_COMPLETED
        assert record.first_analyzed_at == first_analyzed_at
        assert record.last_analyzed_at >= last_analyzed_at
        assert db.get(JobRun, job_id).status == JOB_COMPLETED

    def test_missing_product_fails_job(self, db: Session):
        job_id = enqueue_reanalysis(db, "B0NOTHERE0", "us")
        summary = run_due_jobs(db)
        assert summary["failed"] == 1
        assert "No stored reviews" in db.get(JobRun, job_id).error_message

    def test_graded_batch_skips_good_grades(self, db: Session, fake_manager, make_reviews):
        self._analyzed(db, fake_manager, make_reviews, {"R1": 10, "R2": 10})
        assert enqueue_graded_reanalysis(db) == []
        assert _jobs(db, JOB_REANALYZE_ASIN) == []
