"""Analysis session schemas for request/response validation."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AnalysisStartRequest(BaseModel):
    """Body of POST /api/analysis/start."""

    model_config = ConfigDict(populate_by_name=True)

    product_url: str = Field(..., alias="productUrl", min_length=1, max_length=2048)
    user_session: Optional[str] = Field(None, max_length=255)


class AnalysisStartResponse(BaseModel):
    success: bool = True
    session_id: str
    status: str
    asin: str
    reused: bool = False


class AnalysisProgress(BaseModel):
    """Progress payload polled by the front end and the extension."""

    success: bool = True
    status: str
    current_step: int
    total_steps: int
    progress_percentage: float
    current_message: Optional[str] = None
    asin: str
    analysis_complete: bool = False
    result: Optional[dict[str, Any]] = None
    redirect_url: Optional[str] = None
    error: Optional[str] = None


class AsinDataRead(BaseModel):
    """Schema for reading an analyzed product (response)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    asin: str
    country: str
    status: str
    fake_percentage: Optional[float] = Field(None, ge=0.0, le=100.0)
    grade: Optional[str] = None
    amazon_rating: Optional[float] = None
    adjusted_rating: Optional[float] = None
    explanation: Optional[str] = None
    product_title: Optional[str] = None
    product_image_url: Optional[str] = None
    have_product_data: bool = False
    total_reviews_on_amazon: Optional[int] = None
    source: Optional[str] = None
    first_analyzed_at: Optional[datetime] = None
    last_analyzed_at: Optional[datetime] = None
