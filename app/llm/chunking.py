"""Chunked analysis for large review sets.

Splits reviews into fixed-size chunks, runs each through a provider callback
and merges the per-review scores. A failed chunk is tolerated until more than
``max_failure_rate`` of all chunks have failed, then the whole batch fails.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from app.exceptions import ProviderRequestFailed
from app.llm.review_prompt import build_chunk_context, summarize_reviews

logger = logging.getLogger(__name__)

DEFAULT_MAX_FAILURE_RATE = 0.5

# (chunk, context_header) -> {review_id: score_dict}
ChunkProcessor = Callable[[list[dict[str, Any]], str], dict[str, dict[str, Any]]]


def chunk_reviews(reviews: list[dict[str, Any]], chunk_size: int) -> list[list[dict[str, Any]]]:
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    return [reviews[i : i + chunk_size] for i in range(0, len(reviews), chunk_size)]


def analyze_in_chunks(
    reviews: list[dict[str, Any]],
    chunk_size: int,
    process_chunk: ChunkProcessor,
    provider_name: str,
    delay_seconds: float = 0.0,
    max_failure_rate: float = DEFAULT_MAX_FAILURE_RATE,
) -> dict[str, dict[str, Any]]:
    """Run ``process_chunk`` over each chunk and merge the detailed scores.

    Raises:
        ProviderRequestFailed: When failed chunks exceed ``total * max_failure_rate``,
            or when no chunk succeeded.
    """
    chunks = chunk_reviews(reviews, chunk_size)
    total_chunks = len(chunks)
    summary = summarize_reviews(reviews)
    merged: dict[str, dict[str, Any]] = {}
    failed = 0

    logger.info(
        "%s: processing %d reviews in %d chunks of %d",
        provider_name,
        len(reviews),
        total_chunks,
        chunk_size,
    )

    for index, chunk in enumerate(chunks):
        chunk_number = index + 1
        context = build_chunk_context(summary, chunk_number, total_chunks)
        try:
            merged.update(process_chunk(chunk, context))
            logger.info("%s: chunk %d/%d completed", provider_name, chunk_number, total_chunks)
        except Exception as exc:
            failed += 1
            logger.warning(
                "%s: chunk %d/%d failed (%d failures so far): %s",
                provider_name,
                chunk_number,
                total_chunks,
                failed,
                exc,
            )
            if failed > total_chunks * max_failure_rate:
                raise ProviderRequestFailed(
                    f"Chunked analysis failed: {failed}/{total_chunks} chunks failed. "
                    f"Last error: {exc}"
                ) from exc

        if delay_seconds > 0 and chunk_number < total_chunks:
            time.sleep(delay_seconds)

    if not merged:
        raise ProviderRequestFailed(f"{provider_name}: no successful chunks to aggregate")

    logger.info(
        "%s: chunked analysis completed, %d reviews scored, %d/%d chunks failed",
        provider_name,
        len(merged),
        failed,
        total_chunks,
    )
    return merged
