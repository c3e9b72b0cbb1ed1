"""Letter grade from fake-review percentage. Single source of truth for thresholds."""

from __future__ import annotations

# (grade, inclusive upper bound on fake percentage)
GRADE_THRESHOLDS: tuple[tuple[str, float], ...] = (
    ("A", 8.0),
    ("B", 20.0),
    ("C", 40.0),
    ("D", 65.0),
)
FAILING_GRADE = "F"
UNANALYZABLE_GRADE = "U"

GRADE_DESCRIPTIONS: dict[str, str] = {
    "A": "Excellent - Very few fake reviews detected",
    "B": "Good - Low fake review percentage",
    "C": "Fair - Moderate fake review concerns",
    "D": "Poor - High fake review percentage",
    "F": "Failing - Majority of reviews appear fake",
    "U": "Unanalyzable - No reviews available for analysis",
}


def calculate_grade(fake_percentage: float) -> str:
    """Map a fake percentage (0-100) to A-F. Upper bounds are inclusive (40.0 -> C)."""
    for grade, upper in GRADE_THRESHOLDS:
        if fake_percentage <= upper:
            return grade
    return FAILING_GRADE


def get_grade_thresholds() -> dict[str, dict[str, float]]:
    """Grade ranges for display, e.g. ``{"A": {"min": 0, "max": 8}, ...}``."""
    ranges: dict[str, dict[str, float]] = {}
    lower = 0.0
    for grade, upper in GRADE_THRESHOLDS:
        ranges[grade] = {"min": lower, "max": upper}
        lower = upper
    ranges[FAILING_GRADE] = {"min": lower, "max": 100.0}
    return ranges


def grade_description(grade: str) -> str:
    return GRADE_DESCRIPTIONS.get(grade, "Unknown grade")
