"""Tests for chunked review analysis."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from app.exceptions import ProviderRequestFailed
from app.llm.chunking import analyze_in_chunks, chunk_reviews


def _reviews(n: int) -> list[dict]:
    return [{"id": f"R{i}", "rating": 5, "text": "fine"} for i in range(n)]


def _scorer(fail_chunks: set[int] | None = None):
    calls: list[tuple[list[str], str]] = []

    def process(chunk, context):
        calls.append(([r["id"] for r in chunk], context))
        if fail_chunks and len(calls) in fail_chunks:
            raise ProviderRequestFailed("boom")
        return {r["id"]: {"score": 10} for r in chunk}

    return process, calls


class TestChunkReviews:
    def test_splits_with_remainder(self):
        chunks = chunk_reviews(_reviews(7), 3)
        assert [len(c) for c in chunks] == [3, 3, 1]

    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            chunk_reviews(_reviews(2), 0)


class TestAnalyzeInChunks:
    def test_merges_all_chunks(self):
        process, calls = _scorer()
        with patch("app.llm.chunking.time") as mock_time:
            scores = analyze_in_chunks(_reviews(60), 25, process, "Test", delay_seconds=0.5)
        assert len(scores) == 60
        assert len(calls) == 3
        # delay between chunks, not after the last one
        assert mock_time.sleep.call_count == 2
        assert "batch 1 of 3" in calls[0][1]
        assert "60 reviews" in calls[2][1]

    def test_tolerates_minority_failures(self):
        process, _ = _scorer(fail_chunks={2})
        scores = analyze_in_chunks(_reviews(100), 25, process, "Test")
        assert len(scores) == 75

    def test_fails_when_more_than_half_fail(self):
        process, calls = _scorer(fail_chunks={1, 2, 3})
        with pytest.raises(ProviderRequestFailed, match="3/4 chunks failed"):
            analyze_in_chunks(_reviews(100), 25, process, "Test")
        assert len(calls) == 3

    def test_single_failed_chunk_of_one(self):
        process, _ = _scorer(fail_chunks={1})
        with pytest.raises(ProviderRequestFailed):
            analyze_in_chunks(_reviews(10), 25, process, "Test")
