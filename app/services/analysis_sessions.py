"""Analysis session lifecycle: start (or reuse), progress view, cancel, cleanup."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import ValidationError
from app.models.analysis_session import (
    SESSION_PENDING,
    SESSION_PROCESSING,
    AnalysisSession,
)
from app.pipeline.queue import enqueue
from app.services.amazon_url import parse_product_url
from app.services.product_analysis import run_product_analysis

logger = logging.getLogger(__name__)

REUSE_WINDOW_MINUTES = 5
CANCELLED_MESSAGE = "Analysis cancelled by user"
JOB_PROCESS_PRODUCT_ANALYSIS = "process_product_analysis"


def find_reusable_session(db: Session, user_session: str, asin: str) -> AnalysisSession | None:
    """Pending/processing session for the same user and ASIN created in the last 5 minutes."""
    cutoff = datetime.now(UTC) - timedelta(minutes=REUSE_WINDOW_MINUTES)
    return (
        db.query(AnalysisSession)
        .filter(
            AnalysisSession.user_session == user_session,
            AnalysisSession.asin == asin,
            AnalysisSession.created_at > cutoff,
            AnalysisSession.status.in_((SESSION_PENDING, SESSION_PROCESSING)),
        )
        .order_by(AnalysisSession.created_at.desc())
        .first()
    )


def start_analysis(
    db: Session,
    product_url: str,
    user_session: str | None = None,
    run_async: bool | None = None,
) -> dict[str, Any]:
    """Create (or reuse) a session for ``product_url`` and schedule the analysis job.

    With ``run_async`` false the job runs before this returns.

    Raises:
        ValidationError: URL is not an Amazon product URL.
    """
    asin, country, canonical_url = parse_product_url(product_url)
    user_session = user_session or f"anon_{uuid.uuid4().hex}"

    existing = find_reusable_session(db, user_session, asin)
    if existing is not None:
        logger.info("Reusing analysis session %s for %s", existing.id, asin)
        return {
            "success": True,
            "session_id": existing.id,
            "status": existing.status,
            "asin": asin,
            "reused": True,
        }

    session = AnalysisSession(
        user_session=user_session,
        asin=asin,
        product_url=canonical_url,
        status=SESSION_PENDING,
        current_message="Queued for analysis...",
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Created analysis session %s for %s/%s", session.id, asin, country)

    if run_async is None:
        run_async = get_settings().analysis_async_enabled
    if run_async:
        enqueue(db, JOB_PROCESS_PRODUCT_ANALYSIS, {"session_id": session.id})
    else:
        run_product_analysis(db, session.id)
        db.refresh(session)

    return {
        "success": True,
        "session_id": session.id,
        "status": session.status,
        "asin": asin,
        "reused": False,
    }


def get_session(db: Session, session_id: str) -> AnalysisSession | None:
    return db.get(AnalysisSession, session_id)


def progress_payload(session: AnalysisSession) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": True,
        "status": session.status,
        "current_step": session.current_step,
        "total_steps": session.total_steps,
        "progress_percentage": session.progress_percentage,
        "current_message": session.current_message,
        "asin": session.asin,
        "analysis_complete": False,
    }
    if session.is_completed():
        result = session.result or {}
        payload["result"] = result
        payload["redirect_url"] = result.get("redirect_url")
        payload["analysis_complete"] = True
    elif session.is_failed():
        payload["error"] = session.error_message
    return payload


def cancel_session(db: Session, session: AnalysisSession) -> AnalysisSession:
    """Mark a pending/processing session failed.

    Raises:
        ValidationError: The session already finished.
    """
    if session.is_completed() or session.is_failed():
        raise ValidationError("Cannot cancel completed or failed analysis")
    session.mark_failed(CANCELLED_MESSAGE)
    db.commit()
    logger.info("Analysis session %s cancelled by user", session.id)
    return session


def cleanup_sessions(db: Session, older_than_hours: int | None = None) -> int:
    """Delete sessions created before the cleanup window. Returns the number deleted."""
    hours = older_than_hours if older_than_hours is not None else get_settings().analysis_session_cleanup_hours
    cutoff = datetime.now(UTC) - timedelta(hours=hours)
    result = db.execute(delete(AnalysisSession).where(AnalysisSession.created_at < cutoff))
    db.commit()
    logger.info("Deleted %d analysis sessions older than %d hours", result.rowcount, hours)
    return result.rowcount
