"""SQLAlchemy models."""

from app.models.analysis_session import AnalysisSession
from app.models.asin_data import AsinData
from app.models.job_run import JobRun

__all__ = ["AnalysisSession", "AsinData", "JobRun"]
