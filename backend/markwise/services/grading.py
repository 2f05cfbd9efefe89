"""
Markwise Backend — Grading Arithmetic
======================================

What:  Pure functions behind AI grading: percentage, letter grade, parsing
       the model's reply and composing the feedback shown to students.
Why:   Kept free of I/O so every rule (clamping, fallbacks, scale lookup)
       is testable without a database or a model.

Grading scale:
    A mapping of letter → minimum percentage, e.g. {"A": 90, ..., "F": 0}.
    Classrooms may define their own; thresholds are compared in
    descending order and the first one the percentage reaches wins.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_GRADING_SCALE: Dict[str, float] = {"A": 90, "B": 80, "C": 70, "D": 60, "F": 0}

DEFAULT_MAX_SCORE = 100

# Share of max_score awarded when the reply has no readable score
FALLBACK_SCORE_RATIO = 0.75

FEEDBACK_DIVIDER = "═" * 39

_SCORE_PATTERN = re.compile(r"score[:\s]+(\d+)", re.IGNORECASE)


@dataclass
class GradingResult:
    score: int
    feedback: str
    detailed_feedback: str
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[Dict[str, Any]] = field(default_factory=list)


def safe_max_score(max_score: Optional[float]) -> float:
    """Missing or non-positive maximums count as 100 points."""
    if max_score and max_score > 0:
        return max_score
    return DEFAULT_MAX_SCORE


def round_half_up(value: float) -> int:
    """Nearest integer with .5 going up (2.5 -> 3), unlike the built-in round."""
    return math.floor(value + 0.5)


def percentage(score: float, max_score: Optional[float]) -> int:
    return round_half_up(score / safe_max_score(max_score) * 100)


def clamp_score(score: float, max_score: int) -> int:
    return int(max(0, min(round_half_up(score), max_score)))


def letter_grade(pct: float, scale: Optional[Mapping[str, float]] = None) -> str:
    """
    Letter for a percentage under the given scale.

    Returns the lowest letter of the scale when no threshold is reached,
    and "F" for an empty scale.
    """
    if scale is None:
        scale = DEFAULT_GRADING_SCALE
    thresholds = sorted(
        ((letter, float(threshold)) for letter, threshold in scale.items()),
        key=lambda item: item[1],
        reverse=True,
    )
    for letter, threshold in thresholds:
        if pct >= threshold:
            return letter
    return thresholds[-1][0] if thresholds else "F"


def _as_str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


def _as_recommendations(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    recommendations = []
    for item in value:
        if isinstance(item, dict):
            recommendations.append({
                "topic": str(item.get("topic", "")),
                "resource": str(item.get("resource", "")),
                "priority": item.get("priority"),
            })
        elif isinstance(item, str) and item:
            recommendations.append({"topic": item, "resource": "", "priority": None})
    return recommendations


def _coerce_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0
    # json.loads accepts NaN and Infinity
    return score if math.isfinite(score) else 0


def parse_grading_response(raw: str, max_score: int) -> GradingResult:
    """
    Turns the model's reply into a GradingResult.

    A JSON object is read field by field. Anything else is treated as free
    text: the whole reply becomes the feedback and the score is taken from
    the first "score: N" in it, or FALLBACK_SCORE_RATIO of max_score.
    The score is always clamped to [0, max_score].
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        data = None

    if isinstance(data, dict):
        feedback = (
            data.get("overall_feedback")
            or data.get("feedback")
            or data.get("detailed_feedback")
            or raw
        )
        detailed = data.get("detailed_feedback") or data.get("overall_feedback") or feedback
        return GradingResult(
            score=clamp_score(_coerce_score(data.get("score", 0)), max_score),
            feedback=str(feedback),
            detailed_feedback=str(detailed),
            strengths=_as_str_list(data.get("strengths")),
            weaknesses=_as_str_list(data.get("weaknesses")),
            recommendations=_as_recommendations(data.get("recommendations")),
        )

    logger.warning("Grading reply was not a JSON object; falling back to text parsing")
    text = raw or ""
    match = _SCORE_PATTERN.search(text)
    score = int(match.group(1)) if match else round_half_up(max_score * FALLBACK_SCORE_RATIO)
    return GradingResult(
        score=clamp_score(score, max_score),
        feedback=text,
        detailed_feedback=text,
    )


def compose_feedback(
    detailed: str,
    strengths: List[str],
    weaknesses: List[str],
    recommendations: List[Dict[str, Any]],
) -> str:
    """
    Student-facing feedback: the detailed paragraph, then numbered
    strengths, areas for improvement and next steps under a divider.
    The sections are appended only when there are strengths or weaknesses.
    """
    text = detailed or ""
    if not strengths and not weaknesses:
        return text.strip()

    text += f"\n\n{FEEDBACK_DIVIDER}\n"
    if strengths:
        text += "\n✅ STRENGTHS:\n"
        for idx, strength in enumerate(strengths, start=1):
            text += f"\n{idx}. {strength}"
        text += "\n"
    if weaknesses:
        text += "\n📝 AREAS FOR IMPROVEMENT:\n"
        for idx, weakness in enumerate(weaknesses, start=1):
            text += f"\n{idx}. {weakness}"
        text += "\n"
    if recommendations:
        text += "\n💡 RECOMMENDED NEXT STEPS:\n"
        for idx, rec in enumerate(recommendations, start=1):
            priority = f"[{str(rec['priority']).upper()}] " if rec.get("priority") else ""
            text += f"\n{idx}. {priority}{rec.get('topic', '')}\n   → {rec.get('resource', '')}"
    return text.strip()
