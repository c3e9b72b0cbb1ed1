"""AsinData model: one analyzed product per (asin, country)."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base

# Record lifecycle. "fetched" comes from extension submissions, "pending_analysis"
# from scraped data waiting for LLM scores.
STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_FETCHED = "fetched"
STATUS_PENDING_ANALYSIS = "pending_analysis"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

ASIN_DATA_STATUSES = (
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_FETCHED,
    STATUS_PENDING_ANALYSIS,
    STATUS_COMPLETED,
    STATUS_FAILED,
)


class AsinData(Base):
    """Reviews, LLM scores and computed metrics for an Amazon product.

    Acts as the analysis cache. Once ``is_analyzed()`` is true, background
    writers must go through ``app.services.asin_store`` which refuses to
    overwrite the record.
    """

    __tablename__ = "asin_data"
    __table_args__ = (UniqueConstraint("asin", "country", name="uq_asin_data_asin_country"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asin: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    country: Mapped[str] = mapped_column(String(2), default="us", nullable=False)
    reviews: Mapped[list | None] = mapped_column(JSON, nullable=True)
    llm_result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    fake_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    grade: Mapped[str | None] = mapped_column(String(1), nullable=True)
    amazon_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    adjusted_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    product_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    have_product_data: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    total_reviews_on_amazon: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default=STATUS_PENDING, nullable=False)
    source: Mapped[str | None] = mapped_column(String(32), nullable=True)
    extension_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    extraction_timestamp: Mapped[str | None] = mapped_column(String(64), nullable=True)
    first_analyzed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_analyzed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def is_analyzed(self) -> bool:
        """True when analysis finished and both grade and fake_percentage are set."""
        return (
            self.status == STATUS_COMPLETED
            and self.grade is not None
            and self.fake_percentage is not None
        )

    def get_reviews(self) -> list[dict[str, Any]]:
        """Stored reviews as a list (never None)."""
        return list(self.reviews or [])

    def get_detailed_scores(self) -> dict[str, Any]:
        """Per-review scores from the stored LLM result."""
        if not isinstance(self.llm_result, dict):
            return {}
        return dict(self.llm_result.get("detailed_scores") or {})

    def __repr__(self) -> str:
        return f"<AsinData {self.asin}/{self.country} status={self.status} grade={self.grade}>"
