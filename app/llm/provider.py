"""
Review analysis provider abstraction.

A provider scores reviews for authenticity. It may:
- build a prompt from review data
- call one LLM backend
- parse the reply into per-review scores

It may NOT: access the DB, choose another provider, or persist anything.
Fallback between providers belongs to app.llm.manager.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

# {"detailed_scores": {review_id: {...}}, "analysis_provider": str, "total_cost": float}
AnalysisResult = dict[str, Any]


def empty_result(provider_name: str) -> AnalysisResult:
    """Result for an empty review list (no network call made)."""
    return {"detailed_scores": {}, "analysis_provider": provider_name, "total_cost": 0.0}


class ReviewAnalysisProvider(ABC):
    """Abstract base for LLM review-analysis providers."""

    #: Registry key used by config (openai, deepseek, ollama).
    key: str = ""

    @abstractmethod
    def analyze_reviews(self, reviews: list[dict[str, Any]]) -> AnalysisResult:
        """Score each review 0-100 (higher = more likely fake).

        Raises:
            InvalidResponseFormat: reply could not be parsed.
            ProviderRequestFailed: transport error or non-2xx reply.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Cheap readiness check (credentials present, endpoint reachable)."""
        ...

    @abstractmethod
    def get_provider_name(self) -> str:
        """Display name recorded in results, e.g. ``OpenAI-gpt-4o-mini``."""
        ...

    @abstractmethod
    def get_estimated_cost(self, review_count: int) -> float:
        """Estimated USD cost of analyzing ``review_count`` reviews."""
        ...

    @abstractmethod
    def get_optimized_max_tokens(self, review_count: int) -> int:
        """Completion token budget for a request with ``review_count`` reviews."""
        ...


def estimate_token_cost(
    review_count: int,
    input_price_per_million: float,
    output_price_per_million: float,
) -> float:
    """Estimate cost using ~50 input and ~8 output tokens per review."""
    input_tokens = review_count * 50
    output_tokens = review_count * 8
    return (input_tokens / 1_000_000) * input_price_per_million + (
        output_tokens / 1_000_000
    ) * output_price_per_million
