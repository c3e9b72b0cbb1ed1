"""Chrome extension submission schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ExtensionReview(BaseModel):
    """One review as scraped by the extension from the product page."""

    review_id: str = Field(..., min_length=1)
    author: str
    content: str
    rating: int = Field(..., ge=1, le=5)
    title: str = ""
    date: Optional[str] = None
    verified_purchase: bool = False
    vine_customer: bool = False
    helpful_votes: int = Field(0, ge=0)
    extraction_index: Optional[int] = Field(None, ge=1)


class ExtensionProductInfo(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = Field(None, max_length=500)
    amazon_rating: Optional[float] = Field(None, ge=0.0, le=5.0)
    total_reviews_on_amazon: int = Field(..., ge=0)
    price: Optional[str] = Field(None, max_length=50)
    availability: Optional[str] = Field(None, max_length=100)


class ExtensionSubmission(BaseModel):
    """Body of POST /api/extension/submit-reviews."""

    asin: str = Field(..., pattern=r"^[A-Z0-9]{10}$")
    country: str = Field(..., min_length=2, max_length=2)
    product_url: str = Field(..., max_length=2048)
    extraction_timestamp: Optional[str] = None
    extension_version: str = Field(..., min_length=1, max_length=32)
    reviews: list[ExtensionReview]
    product_info: ExtensionProductInfo

    @field_validator("product_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("product_url must be an http(s) URL")
        return value

    @field_validator("country")
    @classmethod
    def _lower_country(cls, value: str) -> str:
        code = value.lower()
        return "gb" if code == "uk" else code
