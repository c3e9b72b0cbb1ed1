"""Product analysis session API: start, poll, cancel, cleanup."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.exceptions import ValidationError
from app.schemas.analysis import AnalysisProgress, AnalysisStartRequest, AnalysisStartResponse
from app.services.analysis_sessions import (
    cancel_session,
    cleanup_sessions,
    get_session,
    progress_payload,
    start_analysis,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/start", response_model=AnalysisStartResponse)
def api_start_analysis(
    data: AnalysisStartRequest,
    db: Session = Depends(get_db),
) -> dict:
    """Create (or reuse) an analysis session for a product URL."""
    try:
        return start_analysis(db, data.product_url, user_session=data.user_session)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None


@router.get("/progress/{session_id}", response_model=AnalysisProgress)
def api_analysis_progress(session_id: str, db: Session = Depends(get_db)) -> dict:
    session = get_session(db, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Analysis session not found")
    return progress_payload(session)


@router.delete("/cancel/{session_id}")
def api_cancel_analysis(session_id: str, db: Session = Depends(get_db)) -> dict:
    """Cancel a pending or processing session."""
    session = get_session(db, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Analysis session not found")
    try:
        cancel_session(db, session)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None
    return {"success": True, "message": "Analysis cancelled"}


@router.post("/cleanup")
def api_cleanup_sessions(db: Session = Depends(get_db)) -> dict:
    """Delete sessions older than the configured cleanup window."""
    deleted = cleanup_sessions(db)
    return {"success": True, "deleted": deleted}
