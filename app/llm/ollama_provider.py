"""
Ollama review analysis provider.

Local models via ``POST /api/generate`` (non-streaming). Large review sets are
analyzed in chunks.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.exceptions import InvalidResponseFormat, ProviderRequestFailed
from app.llm.chunking import analyze_in_chunks
from app.llm.parsing import parse_review_scores
from app.llm.provider import AnalysisResult, ReviewAnalysisProvider, empty_result
from app.llm.review_prompt import build_review_prompt, get_provider_text_limit

logger = logging.getLogger(__name__)

_HEALTH_TIMEOUT = 5.0

NUM_PREDICT_SINGLE = 2048
NUM_PREDICT_CHUNK = 1024


def _looks_like_html(body: str) -> bool:
    head = body.lstrip()[:20].lower()
    return head.startswith("<html") or head.startswith("<!doctype")


class OllamaProvider(ReviewAnalysisProvider):
    """Review analysis backed by a local Ollama server."""

    key = "ollama"

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "phi4:14b",
        timeout: float = 120.0,
        chunking_threshold: int = 80,
        chunk_size: int = 25,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.chunking_threshold = chunking_threshold
        self.chunk_size = chunk_size

    # ------------------------------------------------------------------
    # ReviewAnalysisProvider interface
    # ------------------------------------------------------------------

    def analyze_reviews(self, reviews: list[dict[str, Any]]) -> AnalysisResult:
        if not reviews:
            return empty_result(self.get_provider_name())

        if len(reviews) > self.chunking_threshold:
            logger.info(
                "Large review set (%d > %d), using chunked analysis for Ollama",
                len(reviews),
                self.chunking_threshold,
            )
            scores = analyze_in_chunks(
                reviews,
                self.chunk_size,
                lambda chunk, context: self._generate(chunk, NUM_PREDICT_CHUNK, context),
                provider_name=self.get_provider_name(),
            )
        else:
            logger.info("Sending %d reviews to Ollama for analysis", len(reviews))
            scores = self._generate(reviews, NUM_PREDICT_SINGLE, None)

        return {
            "detailed_scores": scores,
            "analysis_provider": self.get_provider_name(),
            "total_cost": 0.0,
        }

    def is_available(self) -> bool:
        try:
            with httpx.Client() as client:
                resp = client.get(f"{self.base_url}/api/tags", timeout=_HEALTH_TIMEOUT)
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.info("Ollama health check failed: %s", exc)
            return False

    def get_provider_name(self) -> str:
        return f"Ollama-{self.model}"

    def get_estimated_cost(self, review_count: int) -> float:
        return 0.0

    def get_optimized_max_tokens(self, review_count: int) -> int:
        return review_count * 10 + min(1000, review_count * 5)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _generate(
        self,
        reviews: list[dict[str, Any]],
        num_predict: int,
        context_header: str | None,
    ) -> dict[str, dict[str, Any]]:
        prompt = build_review_prompt(
            reviews,
            fmt="single",
            max_text_length=get_provider_text_limit(self.key),
            context_header=context_header,
        )["prompt"]
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": 0.1,
                "num_ctx": 4096,
                "top_p": 0.9,
                "num_predict": num_predict,
            },
        }
        try:
            with httpx.Client() as client:
                resp = client.post(
                    f"{self.base_url}/api/generate",
                    json=payload,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as exc:
            raise ProviderRequestFailed(f"Ollama request failed: {exc}") from exc

        if resp.status_code != 200:
            body = resp.text or ""
            if _looks_like_html(body):
                raise ProviderRequestFailed(
                    f"Ollama service is returning HTML instead of JSON (HTTP {resp.status_code}). "
                    f"This usually means Ollama is down or misconfigured. "
                    f"Check if Ollama is running on {self.base_url}",
                    status_code=resp.status_code,
                )
            raise ProviderRequestFailed(
                f"Ollama API request failed (HTTP {resp.status_code}): {body[:200]}",
                status_code=resp.status_code,
            )

        try:
            text = resp.json()["response"]
        except (ValueError, KeyError, TypeError) as exc:
            raise InvalidResponseFormat(f"Unexpected Ollama response envelope: {exc}") from exc
        return parse_review_scores(text or "")
