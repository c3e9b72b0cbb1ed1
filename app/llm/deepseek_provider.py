"""
DeepSeek review analysis provider.

Talks to the OpenAI-compatible ``/chat/completions`` endpoint over httpx, either
the hosted API or a self-hosted deployment on a local network address.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.exceptions import InvalidResponseFormat, ProviderRequestFailed
from app.llm.chunking import analyze_in_chunks
from app.llm.parsing import parse_review_scores
from app.llm.provider import (
    AnalysisResult,
    ReviewAnalysisProvider,
    empty_result,
    estimate_token_cost,
)
from app.llm.review_prompt import build_chat_messages

logger = logging.getLogger(__name__)

_USER_AGENT = "ReviewAnalyzer-DeepSeek/1.0"
_HEALTH_TIMEOUT = 10.0
_LOCAL_MARKERS = ("localhost", "127.0.0.1", "192.168.", "10.0.")

ANALYSIS_TEMPERATURE = 0.0
MAX_COMPLETION_TOKENS = 8192
MIN_COMPLETION_TOKENS = 2500
CHUNKING_THRESHOLD = 80
CHUNK_SIZE = 50
CHUNK_DELAY_SECONDS = 0.5

# Hosted API pricing, USD per 1M tokens
INPUT_PRICE_PER_MILLION = 0.27
OUTPUT_PRICE_PER_MILLION = 1.10


class DeepSeekProvider(ReviewAnalysisProvider):
    """Review analysis backed by DeepSeek (hosted API or self-hosted)."""

    key = "deepseek"

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.deepseek.com/v1",
        model: str = "deepseek-v3",
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    # ------------------------------------------------------------------
    # ReviewAnalysisProvider interface
    # ------------------------------------------------------------------

    def analyze_reviews(self, reviews: list[dict[str, Any]]) -> AnalysisResult:
        if not reviews:
            return empty_result(self.get_provider_name())

        logger.info("Sending %d reviews to %s for analysis", len(reviews), self.get_provider_name())
        if len(reviews) > CHUNKING_THRESHOLD:
            scores = analyze_in_chunks(
                reviews,
                CHUNK_SIZE,
                self._score_chunk,
                provider_name=self.get_provider_name(),
                delay_seconds=CHUNK_DELAY_SECONDS,
            )
        else:
            scores = self._score_chunk(reviews, None)

        return {
            "detailed_scores": scores,
            "analysis_provider": self.get_provider_name(),
            "total_cost": self.get_estimated_cost(len(reviews)),
        }

    def is_available(self) -> bool:
        if not self.api_key and not self.is_local_deployment():
            return False
        try:
            with httpx.Client() as client:
                resp = client.get(
                    f"{self.base_url}/models",
                    headers=self._headers(),
                    timeout=_HEALTH_TIMEOUT,
                )
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.info("DeepSeek health check failed: %s", exc)
            return False

    def get_provider_name(self) -> str:
        deployment = "Self-Hosted" if self.is_local_deployment() else "API"
        return f"DeepSeek-{deployment}-{self.model}"

    def get_estimated_cost(self, review_count: int) -> float:
        if self.is_local_deployment():
            return 0.0
        return estimate_token_cost(review_count, INPUT_PRICE_PER_MILLION, OUTPUT_PRICE_PER_MILLION)

    def get_optimized_max_tokens(self, review_count: int) -> int:
        base = min(3000, review_count * 15)
        buffer = min(2000, review_count * 8)
        return min(MAX_COMPLETION_TOKENS, max(MIN_COMPLETION_TOKENS, base + buffer))

    def is_local_deployment(self) -> bool:
        return any(marker in self.base_url for marker in _LOCAL_MARKERS)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": _USER_AGENT,
        }

    def _score_chunk(
        self, reviews: list[dict[str, Any]], context_header: str | None
    ) -> dict[str, dict[str, Any]]:
        payload = {
            "model": self.model,
            "messages": build_chat_messages(reviews, self.key, context_header=context_header),
            "temperature": ANALYSIS_TEMPERATURE,
            "max_tokens": self.get_optimized_max_tokens(len(reviews)),
        }
        endpoint = f"{self.base_url}/chat/completions"
        try:
            with httpx.Client() as client:
                resp = client.post(
                    endpoint,
                    json=payload,
                    headers=self._headers(),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as exc:
            raise ProviderRequestFailed(f"DeepSeek request failed: {exc}") from exc

        if resp.status_code != 200:
            raise ProviderRequestFailed(
                f"DeepSeek API error: {resp.status_code} - {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise InvalidResponseFormat(f"Unexpected DeepSeek response envelope: {exc}") from exc

        logger.debug("DeepSeek raw response content: %s", content[:1000])
        return parse_review_scores(content)
