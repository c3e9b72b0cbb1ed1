"""Chrome extension API: review submission and status polling."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.api.deps import require_extension_api_key
from app.db.session import get_db
from app.exceptions import AllProvidersFailed, ValidationError
from app.services.amazon_url import normalize_country
from app.services.analysis_sessions import get_session, progress_payload
from app.services.asin_store import get_asin_data
from app.services.extension_reviews import analysis_payload, process_submission

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/submit-reviews")
async def api_submit_reviews(
    request: Request,
    db: Session = Depends(get_db),
    _key: None = Depends(require_extension_api_key),
):
    """Store reviews extracted by the extension and analyze them.

    Analysis runs in the threadpool so the event loop keeps serving other
    requests. Validation problems return 422 with per-field details; provider outages
    return 500 with ``retry_suggested``.
    """
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        payload = None

    try:
        return await run_in_threadpool(process_submission, db, payload)
    except ValidationError as exc:
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": str(exc), "details": exc.details},
        )
    except AllProvidersFailed as exc:
        logger.error("Extension analysis failed, all providers down: %s", exc)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Analysis service temporarily unavailable",
                "retry_suggested": True,
            },
        )
    except Exception:
        logger.exception("Extension submission failed")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Failed to process review submission",
                "retry_suggested": False,
            },
        )


@router.get("/analysis/{asin}/{country}")
def api_extension_analysis(
    asin: str,
    country: str,
    db: Session = Depends(get_db),
    _key: None = Depends(require_extension_api_key),
) -> dict:
    record = get_asin_data(db, asin.upper(), normalize_country(country))
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return {"success": True, **analysis_payload(record)}


@router.get("/progress/{session_id}")
def api_extension_progress(
    session_id: str,
    db: Session = Depends(get_db),
    _key: None = Depends(require_extension_api_key),
) -> dict:
    session = get_session(db, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Analysis session not found")
    return progress_payload(session)
