"""
LLM reply parsing.

Replies are parsed strictly. The only recovery is to take the first balanced
``{...}`` or ``[...]`` substring (which also covers markdown fences and
surrounding prose). Any other shape raises InvalidResponseFormat.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from app.exceptions import InvalidResponseFormat

logger = logging.getLogger(__name__)

_OPENERS = {"{": "}", "[": "]"}

# Keys under which an object reply may carry the per-review list
_LIST_KEYS = ("results", "reviews", "scores", "detailed_scores")


def extract_balanced_json(text: str) -> str | None:
    """Return the first balanced JSON object/array substring, or None.

    Scans from the first ``{`` or ``[``, tracking string literals and escapes so
    brackets inside strings do not count.
    """
    start = -1
    for i, ch in enumerate(text):
        if ch in _OPENERS:
            start = i
            break
    if start < 0:
        return None

    stack: list[str] = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack[-1] != ch:
                return None
            stack.pop()
            if not stack:
                return text[start : i + 1]
    return None


def parse_llm_json(text: str) -> Any:
    """Parse LLM output as JSON: strict first, then the balanced-substring recovery.

    Raises:
        InvalidResponseFormat: When neither attempt yields valid JSON.
    """
    if not text or not text.strip():
        raise InvalidResponseFormat("Empty response from provider")
    stripped = text.strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    candidate = extract_balanced_json(stripped)
    if candidate is None:
        raise InvalidResponseFormat(
            f"No JSON object or array found in response: {stripped[:200]!r}"
        )
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise InvalidResponseFormat(f"Malformed JSON in response: {exc}") from exc


def generate_label(score: float) -> str:
    if score >= 80:
        return "fake"
    if score >= 60:
        return "suspicious"
    if score >= 45:
        return "uncertain"
    if score >= 25:
        return "likely_genuine"
    return "genuine"


def confidence_from_score(score: float) -> float:
    """Higher confidence at the extremes, lowest in the uncertain middle."""
    if score >= 90 or score <= 10:
        return 0.95
    if score >= 80 or score <= 20:
        return 0.85
    if score >= 70 or score <= 30:
        return 0.75
    if score >= 60 or score <= 40:
        return 0.65
    return 0.55


def explanation_from_label(label: str, score: float) -> str:
    if label == "fake":
        if score >= 90:
            return "Likely inauthentic: Clear manipulation patterns detected"
        return "Suspicious: Multiple concerning indicators present"
    if label == "suspicious":
        return "Concerning patterns: Some indicators suggest potential manipulation"
    if label == "uncertain":
        return "Mixed signals: Insufficient information to determine authenticity"
    if label == "likely_genuine":
        return "Likely authentic: Some genuine signals present"
    if score <= 15:
        return "Highly authentic: Strong genuine indicators - detailed experience, personal context"
    return "Genuine: Natural language with specific details"


def _score_items(decoded: Any) -> list[dict[str, Any]]:
    if isinstance(decoded, list):
        return decoded
    if isinstance(decoded, dict):
        for key in _LIST_KEYS:
            value = decoded.get(key)
            if isinstance(value, list):
                return value
        # Single-review reply
        if "id" in decoded and "score" in decoded:
            return [decoded]
    raise InvalidResponseFormat(
        f"Expected a list of {{id, score}} objects, got {type(decoded).__name__}"
    )


def format_analysis_results(decoded: Any) -> dict[str, dict[str, Any]]:
    """Turn parsed JSON into ``{review_id: {score, label, confidence, explanation}}``.

    Scores are clamped to 0-100. Items without ``id``/``score`` or with a
    non-numeric or non-finite score are skipped; an empty outcome is a format error.
    """
    results: dict[str, dict[str, Any]] = {}
    for item in _score_items(decoded):
        if not isinstance(item, dict) or "id" not in item or "score" not in item:
            continue
        try:
            score = int(round(float(item["score"])))
        except (TypeError, ValueError, OverflowError):
            logger.warning("Skipping non-numeric score for review %s: %r", item.get("id"), item["score"])
            continue
        score = max(0, min(100, score))

        label = item.get("label") or generate_label(score)
        confidence = item.get("confidence")
        try:
            confidence = float(confidence) if confidence is not None else confidence_from_score(score)
        except (TypeError, ValueError):
            confidence = confidence_from_score(score)
        if not math.isfinite(confidence):
            confidence = confidence_from_score(score)

        results[str(item["id"])] = {
            "score": score,
            "label": label,
            "confidence": confidence,
            "explanation": explanation_from_label(label, score),
        }

    if not results:
        raise InvalidResponseFormat("Response contained no scored reviews")
    return results


def parse_review_scores(text: str) -> dict[str, dict[str, Any]]:
    """Parse raw LLM text into formatted per-review scores."""
    return format_analysis_results(parse_llm_json(text))
