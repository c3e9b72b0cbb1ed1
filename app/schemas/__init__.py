"""Pydantic schemas for request/response validation."""

from app.schemas.analysis import (
    AnalysisProgress,
    AnalysisStartRequest,
    AnalysisStartResponse,
    AsinDataRead,
)
from app.schemas.extension import (
    ExtensionProductInfo,
    ExtensionReview,
    ExtensionSubmission,
)

__all__ = [
    # Analysis
    "AnalysisStartRequest",
    "AnalysisStartResponse",
    "AnalysisProgress",
    "AsinDataRead",
    # Extension
    "ExtensionReview",
    "ExtensionProductInfo",
    "ExtensionSubmission",
]
