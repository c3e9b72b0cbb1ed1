"""
OpenAI review analysis provider.

Scores reviews through the synchronous openai SDK client. Batches over
CHUNKING_THRESHOLD are sent in chunks; rate limits, timeouts and connection
errors are retried with exponential backoff.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from openai import APIConnectionError, APIError, APITimeoutError, OpenAI, RateLimitError

from app.exceptions import ProviderUnavailable
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

# Retry configuration
INITIAL_BACKOFF = 1.0  # seconds
BACKOFF_MULTIPLIER = 2.0

# Errors that trigger retry
_RETRYABLE_ERRORS = (RateLimitError, APITimeoutError, APIConnectionError)

# Review analysis tuning
ANALYSIS_TEMPERATURE = 0.1
CHUNKING_THRESHOLD = 100
CHUNK_SIZE = 25
CHUNK_DELAY_SECONDS = 0.5
MAX_COMPLETION_TOKENS = 4096
MIN_COMPLETION_TOKENS = 1000

# gpt-4o-mini pricing, USD per 1M tokens
INPUT_PRICE_PER_MILLION = 0.15
OUTPUT_PRICE_PER_MILLION = 0.60


class OpenAIProvider(ReviewAnalysisProvider):
    """Review analysis backed by the OpenAI chat completions API."""

    key = "openai"

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        max_retries: int = 3,
        base_url: str | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = (
            OpenAI(api_key=api_key, timeout=timeout, base_url=base_url) if api_key else None
        )

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
        return bool(self.api_key)

    def get_provider_name(self) -> str:
        return f"OpenAI-{self.model}"

    def get_estimated_cost(self, review_count: int) -> float:
        return estimate_token_cost(review_count, INPUT_PRICE_PER_MILLION, OUTPUT_PRICE_PER_MILLION)

    def get_optimized_max_tokens(self, review_count: int) -> int:
        base = review_count * 8
        buffer = min(1000, review_count * 4)
        return min(MAX_COMPLETION_TOKENS, max(MIN_COMPLETION_TOKENS, base + buffer))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _score_chunk(
        self, reviews: list[dict[str, Any]], context_header: str | None
    ) -> dict[str, dict[str, Any]]:
        text = self._call_with_retry(
            {
                "model": self.model,
                "messages": build_chat_messages(reviews, self.key, context_header=context_header),
                "temperature": ANALYSIS_TEMPERATURE,
                "max_tokens": self.get_optimized_max_tokens(len(reviews)),
            }
        )
        return parse_review_scores(text)

    def _call_with_retry(self, create_kwargs: dict[str, Any]) -> str:
        """Call the OpenAI API with exponential-backoff retry on rate limit/timeout/connection."""
        if self._client is None:
            raise ProviderUnavailable("OPENAI_API_KEY is not configured")

        prompt_chars = sum(len(m.get("content") or "") for m in create_kwargs["messages"])
        delay = INITIAL_BACKOFF
        attempt = 0
        while attempt < self.max_retries:
            attempt += 1
            started = time.monotonic()
            try:
                response = self._client.chat.completions.create(**create_kwargs)
            except _RETRYABLE_ERRORS as exc:
                if attempt >= self.max_retries:
                    logger.error(
                        "%s unavailable after %d attempts: %s",
                        self.get_provider_name(),
                        attempt,
                        exc,
                    )
                    raise
                logger.warning(
                    "%s %s on attempt %d/%d; sleeping %.1fs",
                    self.get_provider_name(),
                    type(exc).__name__,
                    attempt,
                    self.max_retries,
                    delay,
                )
                time.sleep(delay)
                delay *= BACKOFF_MULTIPLIER
                continue
            except APIError as exc:
                logger.error("%s rejected request: %s", self.get_provider_name(), exc)
                raise

            usage = response.usage
            logger.info(
                "%s completion: prompt_chars=%d tokens_in=%d tokens_out=%d latency=%.2fs",
                self.get_provider_name(),
                prompt_chars,
                usage.prompt_tokens if usage else 0,
                usage.completion_tokens if usage else 0,
                time.monotonic() - started,
            )
            return response.choices[0].message.content or ""

        raise ProviderUnavailable("OpenAI call made no attempts (max_retries < 1)")
