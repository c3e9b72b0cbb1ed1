"""Tests for letter grade calculation."""

from __future__ import annotations

import pytest

from app.services.grading import (
    GRADE_THRESHOLDS,
    calculate_grade,
    get_grade_thresholds,
    grade_description,
)


class TestCalculateGrade:
    @pytest.mark.parametrize(
        "fake_percentage,expected",
        [
            (0.0, "A"),
            (8.0, "A"),
            (8.1, "B"),
            (15.0, "B"),
            (20.0, "B"),
            (20.1, "C"),
            (40.0, "C"),
            (40.1, "D"),
            (65.0, "D"),
            (65.1, "F"),
            (100.0, "F"),
        ],
    )
    def test_boundaries_are_inclusive(self, fake_percentage: float, expected: str):
        assert calculate_grade(fake_percentage) == expected

    def test_grades_never_improve_as_percentage_rises(self):
        order = "ABCDF"
        grades = [calculate_grade(p / 10) for p in range(0, 1001)]
        ranks = [order.index(g) for g in grades]
        assert ranks == sorted(ranks)


class TestThresholdTable:
    def test_ranges_are_contiguous(self):
        ranges = get_grade_thresholds()
        assert list(ranges) == ["A", "B", "C", "D", "F"]
        assert ranges["A"] == {"min": 0.0, "max": 8.0}
        assert ranges["C"] == {"min": 20.0, "max": 40.0}
        assert ranges["F"] == {"min": 65.0, "max": 100.0}

    def test_threshold_tuple_matches_calculation(self):
        for grade, upper in GRADE_THRESHOLDS:
            assert calculate_grade(upper) == grade


class TestGradeDescription:
    def test_known_and_unanalyzable(self):
        assert grade_description("A").startswith("Excellent")
        assert grade_description("U").startswith("Unanalyzable")

    def test_unknown_grade(self):
        assert grade_description("Z") == "Unknown grade"
