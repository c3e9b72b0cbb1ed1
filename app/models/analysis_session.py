"""AnalysisSession model: progress of one user-requested analysis."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base

SESSION_PENDING = "pending"
SESSION_PROCESSING = "processing"
SESSION_COMPLETED = "completed"
SESSION_FAILED = "failed"


class AnalysisSession(Base):
    """Polled by the front end while a product analysis job runs."""

    __tablename__ = "analysis_sessions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_session: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    asin: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    product_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default=SESSION_PENDING, nullable=False)
    current_step: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_steps: Mapped[int] = mapped_column(Integer, default=7, nullable=False)
    progress_percentage: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    current_message: Mapped[str | None] = mapped_column(String(255), nullable=True)
    result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Mutators only touch attributes; callers commit.

    def update_progress(self, step: int, percentage: float, message: str) -> None:
        self.current_step = step
        self.progress_percentage = percentage
        self.current_message = message

    def mark_processing(self) -> None:
        self.status = SESSION_PROCESSING
        self.started_at = datetime.now(UTC)

    def mark_completed(self, result: dict[str, Any]) -> None:
        self.status = SESSION_COMPLETED
        self.result = result
        self.progress_percentage = 100.0
        self.current_message = "Analysis complete!"
        self.completed_at = datetime.now(UTC)

    def mark_failed(self, error: str) -> None:
        self.status = SESSION_FAILED
        self.error_message = error
        self.current_message = "Analysis failed"
        self.completed_at = datetime.now(UTC)

    def is_completed(self) -> bool:
        return self.status == SESSION_COMPLETED

    def is_failed(self) -> bool:
        return self.status == SESSION_FAILED

    def is_processing(self) -> bool:
        return self.status == SESSION_PROCESSING
