"""
Aggregate authenticity metrics for an analyzed product.

Per-review scores come from ``llm_result["detailed_scores"]`` keyed by review
id. A review counts as fake when its score is at or above the cutoff (85 by
default). Also holds the analyzability rules shared by the analysis job and
the listing queries.
"""

from __future__ import annotations

import logging
from typing import Any

from app.services.grading import UNANALYZABLE_GRADE, calculate_grade

logger = logging.getLogger(__name__)

DEFAULT_FAKE_CUTOFF = 85
DEFAULT_EXPLANATION = "Unable to analyze reviews at this time."

# (inclusive upper bound on fake %, sentence closing paragraph 1, paragraph 2, paragraph 3)
_EXPLANATION_BANDS: tuple[tuple[float, str, str, str], ...] = (
    (
        15,
        "This product demonstrates excellent review authenticity with strong genuine customer engagement.",
        "The reviews show clear authentic signals: detailed personal experiences, specific product "
        "knowledge, balanced perspectives mentioning both strengths and limitations, and verified "
        "purchase confirmations. These patterns are consistent with genuine customer feedback.",
        "The high authenticity rate reflects a product with satisfied customers sharing real "
        "experiences. The review distribution and language patterns indicate organic, legitimate "
        "feedback from actual users.",
    ),
    (
        30,
        "This product shows good review authenticity with predominantly genuine customer feedback.",
        "Most reviews exhibit authentic characteristics: personal usage context, specific details "
        "about product performance, and natural language patterns. The verified purchase rate "
        "supports overall authenticity.",
        "While a small portion of reviews may lack detailed authenticity signals, the overall review "
        "quality is reliable for making informed purchase decisions. Focus on verified purchase "
        "reviews for the most trustworthy insights.",
    ),
    (
        50,
        "This product has a mixed review profile with both genuine and questionable reviews present.",
        "The analysis identified genuine reviews with personal experiences and specific details "
        "alongside some reviews lacking authenticity indicators. Verified purchase reviews tend to "
        "be more reliable.",
        "When evaluating this product, prioritize reviews that include specific usage scenarios, "
        "balanced perspectives, and verified purchase status. These provide the most trustworthy "
        "insights into actual product performance.",
    ),
    (
        70,
        "This product shows concerning review patterns with a significant portion lacking authenticity signals.",
        "While genuine customer experiences are present, many reviews exhibit patterns suggesting "
        "potential manipulation: generic praise, promotional language, or lack of specific product "
        "knowledge.",
        "Exercise caution and focus primarily on verified purchase reviews with detailed personal "
        "experiences. Consider seeking additional product information from other sources before "
        "purchasing.",
    ),
)
_EXPLANATION_WORST = (
    "This product has significant review authenticity concerns with many reviews showing manipulation patterns.",
    "The majority of reviews lack genuine authenticity signals such as personal context, specific "
    "product knowledge, or balanced perspectives. Patterns suggest potential coordinated review "
    "activity.",
    "Genuine customer feedback may be present but is overshadowed by suspicious content. We "
    "recommend thorough research from multiple sources before making a purchase decision.",
)


# ── Analyzability policy ──────────────────────────────────────────────


def is_analyzable(asin_data: Any) -> bool:
    """A product can be analyzed when it has at least one stored review."""
    return len(asin_data.get_reviews()) > 0


def should_display_in_listing(asin_data: Any) -> bool:
    """Completed, graded, has product data and at least one review."""
    return (
        asin_data.is_analyzed()
        and bool(asin_data.have_product_data)
        and bool(asin_data.product_title)
        and is_analyzable(asin_data)
    )


def default_analysis_result() -> dict[str, Any]:
    return {"detailed_scores": {}, "analysis_provider": "system", "total_cost": 0.0}


def default_metrics() -> dict[str, Any]:
    """Metrics for a product that cannot be analyzed (no reviews or no scores)."""
    return {
        "fake_percentage": 0.0,
        "grade": UNANALYZABLE_GRADE,
        "explanation": DEFAULT_EXPLANATION,
        "amazon_rating": 0.0,
        "adjusted_rating": 0.0,
        "total_reviews": 0,
        "fake_count": 0,
    }


# ── Calculations ──────────────────────────────────────────────────────


def _score_value(score_data: Any) -> float:
    """Numeric score from ``{"score": n, ...}`` or a bare number; anything else is 0."""
    if isinstance(score_data, dict):
        score_data = score_data.get("score")
    if isinstance(score_data, bool):
        return 0.0
    if isinstance(score_data, (int, float)):
        return float(score_data)
    return 0.0


def _numeric_rating(review: dict[str, Any]) -> float | None:
    rating = review.get("rating")
    if isinstance(rating, bool):
        return None
    if isinstance(rating, (int, float)):
        return float(rating)
    if isinstance(rating, str):
        try:
            return float(rating)
        except ValueError:
            return None
    return None


def calculate_average_rating(reviews: list[dict[str, Any]]) -> float:
    ratings = [r for r in (_numeric_rating(review) for review in reviews) if r is not None]
    if not ratings:
        return 0.0
    return round(sum(ratings) / len(ratings), 2)


def _review_scores(reviews: list[dict[str, Any]], detailed_scores: dict[str, Any]) -> list[float]:
    """Score of each stored review, in review order; unscored reviews are 0.

    Score entries for ids that are not stored reviews are ignored.
    """
    return [
        _score_value(detailed_scores.get(str(review.get("id", index)), 0))
        for index, review in enumerate(reviews)
    ]


def count_fake_reviews(
    reviews: list[dict[str, Any]],
    detailed_scores: dict[str, Any],
    cutoff: float = DEFAULT_FAKE_CUTOFF,
) -> int:
    return sum(1 for score in _review_scores(reviews, detailed_scores) if score >= cutoff)


def calculate_adjusted_rating(
    reviews: list[dict[str, Any]],
    detailed_scores: dict[str, Any],
    cutoff: float = DEFAULT_FAKE_CUTOFF,
) -> float:
    """Mean rating of reviews scored below ``cutoff``.

    Reviews without a score count as 0 (genuine). When no review qualifies the
    plain average is returned.
    """
    if not reviews or not detailed_scores:
        return calculate_average_rating(reviews)

    genuine: list[float] = []
    for review, score in zip(reviews, _review_scores(reviews, detailed_scores)):
        rating = _numeric_rating(review)
        if score < cutoff and rating is not None:
            genuine.append(rating)

    if not genuine:
        return calculate_average_rating(reviews)
    return round(sum(genuine) / len(genuine), 2)


def generate_explanation(total_reviews: int, fake_count: int, fake_percentage: float) -> str:
    """Three-paragraph summary keyed on the fake-percentage band."""
    genuine_percentage = round(100 - fake_percentage, 1)
    genuine_count = total_reviews - fake_count
    opening = (
        f"Analysis of {total_reviews} reviews found approximately {genuine_count} genuine reviews "
        f"({genuine_percentage:g}% authenticity rate). "
    )

    closing, paragraph2, paragraph3 = _EXPLANATION_WORST
    for upper, band_closing, band_p2, band_p3 in _EXPLANATION_BANDS:
        if fake_percentage <= upper:
            closing, paragraph2, paragraph3 = band_closing, band_p2, band_p3
            break

    return f"{opening}{closing}\n\n{paragraph2}\n\n{paragraph3}"


def compute_metrics(
    reviews: list[dict[str, Any]],
    detailed_scores: dict[str, Any],
    cutoff: float = DEFAULT_FAKE_CUTOFF,
) -> dict[str, Any]:
    """Metrics from reviews and their per-review scores; defaults when either is empty."""
    if not reviews or not detailed_scores:
        return default_metrics()

    total_reviews = len(reviews)
    fake_count = count_fake_reviews(reviews, detailed_scores, cutoff)
    fake_percentage = round(fake_count / total_reviews * 100, 1)
    return {
        "fake_percentage": fake_percentage,
        "grade": calculate_grade(fake_percentage),
        "explanation": generate_explanation(total_reviews, fake_count, fake_percentage),
        "amazon_rating": calculate_average_rating(reviews),
        "adjusted_rating": calculate_adjusted_rating(reviews, detailed_scores, cutoff),
        "total_reviews": total_reviews,
        "fake_count": fake_count,
    }


def calculate_final_metrics(asin_data: Any, cutoff: float = DEFAULT_FAKE_CUTOFF) -> dict[str, Any]:
    """Compute fake percentage, grade, ratings and explanation for a stored product.

    Pure with respect to ``asin_data``: the record is read, never written.
    Persisting the result is up to ``app.services.asin_store``.
    """
    if not is_analyzable(asin_data):
        return default_metrics()
    metrics = compute_metrics(asin_data.get_reviews(), asin_data.get_detailed_scores(), cutoff)
    logger.debug(
        "Metrics for %s: fake=%s%% grade=%s adjusted=%s",
        getattr(asin_data, "asin", "?"),
        metrics["fake_percentage"],
        metrics["grade"],
        metrics["adjusted_rating"],
    )
    return metrics
