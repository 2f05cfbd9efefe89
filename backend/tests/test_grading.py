"""
Markwise Backend — Grading Arithmetic Unit Tests
=================================================

What:  Tests for the pure grading functions: percentage, clamping, letter
       grades, reply parsing and feedback composition.
How:   Plain inputs and outputs; no database, no model.
"""

import json

import pytest

from markwise.services.grading import (
    DEFAULT_GRADING_SCALE,
    FEEDBACK_DIVIDER,
    clamp_score,
    compose_feedback,
    letter_grade,
    parse_grading_response,
    percentage,
    round_half_up,
    safe_max_score,
)


class TestPercentage:

    def test_rounds_to_whole_percent(self):
        assert percentage(45, 50) == 90
        assert percentage(2, 3) == 67

    def test_non_positive_max_counts_as_hundred(self):
        assert percentage(42, 0) == 42
        assert percentage(42, -10) == 42
        assert percentage(42, None) == 42
        assert safe_max_score(0) == 100

    def test_halves_round_up(self):
        assert percentage(85, 200) == 43
        assert percentage(1, 8) == 13
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(2.4999) == 2

    def test_tie_reaches_odd_threshold(self):
        # 169/200 is 84.5%
        assert letter_grade(percentage(169, 200), {"A": 95, "B": 85, "C": 0}) == "B"

    def test_clamp_score_bounds(self):
        assert clamp_score(120, 100) == 100
        assert clamp_score(-3, 100) == 0
        assert clamp_score(37.6, 50) == 38
        assert clamp_score(42.5, 50) == 43


class TestLetterGrade:

    @pytest.mark.parametrize("pct, expected", [
        (100, "A"), (90, "A"), (89, "B"), (80, "B"), (75, "C"), (60, "D"), (59, "F"), (0, "F"),
    ])
    def test_default_scale(self, pct, expected):
        assert letter_grade(pct) == expected

    def test_custom_scale_uses_highest_reached_threshold(self):
        scale = {"Merit": 70, "Distinction": 85, "Pass": 50}
        assert letter_grade(90, scale) == "Distinction"
        assert letter_grade(72, scale) == "Merit"
        assert letter_grade(50, scale) == "Pass"

    def test_below_every_threshold_returns_lowest_letter(self):
        assert letter_grade(10, {"Distinction": 85, "Merit": 70, "Pass": 50}) == "Pass"

    def test_empty_scale_returns_f(self):
        assert letter_grade(95, {}) == "F"

    def test_monotone_in_percentage(self):
        """A higher percentage never earns a lower letter."""
        order = sorted(DEFAULT_GRADING_SCALE, key=DEFAULT_GRADING_SCALE.get)
        ranks = [order.index(letter_grade(pct)) for pct in range(0, 101)]
        assert ranks == sorted(ranks)


class TestParseGradingResponse:

    def test_json_reply(self):
        raw = json.dumps({
            "score": 42,
            "overall_feedback": "Solid work.",
            "detailed_feedback": "The argument is clear; sources are thin.",
            "strengths": ["Clear thesis"],
            "weaknesses": ["Few citations"],
            "recommendations": [
                {"topic": "Citations", "resource": "Purdue OWL", "priority": "high"}
            ],
        })
        result = parse_grading_response(raw, 50)

        assert result.score == 42
        assert result.feedback == "Solid work."
        assert result.detailed_feedback == "The argument is clear; sources are thin."
        assert result.strengths == ["Clear thesis"]
        assert result.weaknesses == ["Few citations"]
        assert result.recommendations == [
            {"topic": "Citations", "resource": "Purdue OWL", "priority": "high"}
        ]

    def test_json_score_is_clamped(self):
        assert parse_grading_response('{"score": 130}', 100).score == 100
        assert parse_grading_response('{"score": -4}', 100).score == 0

    def test_json_score_as_string(self):
        assert parse_grading_response('{"score": "87"}', 100).score == 87

    def test_json_without_score_defaults_to_zero(self):
        result = parse_grading_response('{"feedback": "Incomplete"}', 100)
        assert result.score == 0
        assert result.feedback == "Incomplete"
        assert result.detailed_feedback == "Incomplete"

    def test_string_recommendations_are_normalized(self):
        result = parse_grading_response('{"score": 1, "recommendations": ["Read ch. 3"]}', 10)
        assert result.recommendations == [
            {"topic": "Read ch. 3", "resource": "", "priority": None}
        ]

    def test_free_text_reply_uses_score_pattern(self):
        raw = "Good effort overall.\nScore: 42 out of 50"
        result = parse_grading_response(raw, 50)
        assert result.score == 42
        assert result.feedback == raw
        assert result.strengths == []

    def test_free_text_without_score_falls_back(self):
        result = parse_grading_response("Nice essay, no number here.", 100)
        assert result.score == 75
        assert parse_grading_response("No number.", 10).score == 8

    @pytest.mark.parametrize("raw", [
        '{"score": NaN}',
        '{"score": Infinity}',
        '{"score": -Infinity}',
        '{"score": "Infinity"}',
        '{"score": "nan"}',
    ])
    def test_non_finite_score_counts_as_zero(self, raw):
        assert parse_grading_response(raw, 100).score == 0

    def test_free_text_score_is_clamped(self):
        assert parse_grading_response("score: 99", 20).score == 20

    def test_json_array_is_treated_as_text(self):
        assert parse_grading_response("[1, 2, 3]", 100).score == 75


class TestComposeFeedback:

    def test_detailed_only_without_strengths_or_weaknesses(self):
        text = compose_feedback(
            "  Well done.  ",
            [],
            [],
            [{"topic": "Extra", "resource": "Book", "priority": "low"}],
        )
        assert text == "Well done."

    def test_full_sections(self):
        text = compose_feedback(
            "Detailed paragraph.",
            ["Clear thesis", "Good structure"],
            ["Few citations"],
            [{"topic": "Citations", "resource": "Purdue OWL", "priority": "high"}],
        )

        assert text.startswith("Detailed paragraph.\n\n" + FEEDBACK_DIVIDER)
        assert "✅ STRENGTHS:\n\n1. Clear thesis\n2. Good structure" in text
        assert "📝 AREAS FOR IMPROVEMENT:\n\n1. Few citations" in text
        assert "💡 RECOMMENDED NEXT STEPS:\n\n1. [HIGH] Citations\n   → Purdue OWL" in text

    def test_recommendation_without_priority(self):
        text = compose_feedback("D", ["S"], [], [{"topic": "T", "resource": "R", "priority": None}])
        assert text.endswith("1. T\n   → R")
