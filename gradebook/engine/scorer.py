# gradebook/engine/scorer.py

"""
PURE SCORING RULES FOR ASSESSMENT SUBMISSIONS.

Everything here is deterministic arithmetic over plain inputs: questions,
options and responses are read through their attributes only, so ORM rows,
dataclasses or test doubles all work. No store access happens here.

SCORING FLOW:
multiple_choice / true_false: auto-graded, full points or zero
short_answer: graded by a teacher, clamped to [0, points]

FINAL SCORE:
score = round_half_up(raw_total / raw_max * max_score), 0 when raw_max == 0
"""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from gradebook.models.assessment import QuestionType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradeOutcome:
    """Result of grading one response. None means "not graded yet"."""
    is_correct: Optional[bool]
    points_earned: Optional[float]


UNANSWERED = GradeOutcome(is_correct=None, points_earned=0.0)
PENDING_MANUAL = GradeOutcome(is_correct=None, points_earned=None)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3, not 2)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def auto_grade(question: Any, options: Iterable[Any], selected_option_id: Any) -> GradeOutcome:
    """
    Grade an objective question - BINARY RULE ONLY.

    - Short answer questions are left for the teacher (points stay None)
    - Skipped question: no credit, is_correct stays None
    - Selected id not among the question's options: treated as skipped
    - Correct option = full points, anything else = zero
    """
    if question.question_type not in QuestionType.OBJECTIVE:
        return PENDING_MANUAL

    if not selected_option_id:
        return UNANSWERED

    selected = next(
        (o for o in options if str(o.id) == str(selected_option_id)),
        None,
    )
    if selected is None:
        logger.warning(
            "Option %s not found for question %s, giving no credit",
            selected_option_id,
            question.id,
        )
        return UNANSWERED

    if selected.is_correct:
        return GradeOutcome(is_correct=True, points_earned=float(question.points))
    return GradeOutcome(is_correct=False, points_earned=0.0)


def clamp_manual_points(value: float, max_points: float) -> float:
    """
    Clamp a teacher-entered score into [0, max_points].

    Over-entry is tolerated and corrected rather than rejected. A value that
    is not a finite number counts as 0.
    """
    if not math.isfinite(value):
        logger.warning("Manual score %s is not a number, using 0", value)
        return 0.0

    clamped = min(max(float(value), 0.0), float(max_points))
    if clamped != value:
        logger.info("Manual score %s clamped to %s (max %s)", value, clamped, max_points)
    return clamped


def manual_grade(question: Any, value: float) -> GradeOutcome:
    """Grade a short answer; any nonzero score counts as correct for display."""
    points = clamp_manual_points(value, question.points)
    return GradeOutcome(is_correct=points > 0, points_earned=points)


def raw_total(responses: Iterable[Any]) -> float:
    """Sum of points earned, ungraded responses counting as 0."""
    return sum(float(r.points_earned or 0) for r in responses)


def raw_max(questions: Iterable[Any]) -> float:
    """Sum of points over every question of the assessment, whatever its type."""
    return sum(float(q.points or 0) for q in questions)


def normalize_score(total: float, maximum: float, max_score: int) -> int:
    """
    Map raw points onto the assessment's max_score.

    Returns 0 when the assessment carries no points at all; the result is
    always within [0, max_score].
    """
    if maximum <= 0 or max_score <= 0:
        return 0

    ratio = min(max(total / maximum, 0.0), 1.0)
    return min(max(round_half_up(ratio * max_score), 0), max_score)


def score_submission(questions: Iterable[Any], responses: Iterable[Any], max_score: int) -> int:
    """Normalized score of a submission from its questions and responses."""
    questions = list(questions)
    question_ids = {str(q.id) for q in questions}

    counted = [r for r in responses if str(r.question_id) in question_ids]
    return normalize_score(raw_total(counted), raw_max(questions), max_score)


def score_percentage(score: Optional[int], max_score: int) -> float:
    if not score or max_score <= 0:
        return 0.0
    return round(score / max_score * 100, 2)


def performance_message(percentage: float) -> str:
    if percentage >= 90:
        return "Excellent! You have mastered this topic."
    if percentage >= 80:
        return "Great job! You have a strong understanding."
    if percentage >= 70:
        return "Good work! You are on the right track."
    if percentage >= 60:
        return "Not bad, but there's room for improvement."
    if percentage >= 50:
        return "You passed, but should review this material."
    return "You need to spend more time studying this material."


def is_answered(question: Any, selected_option_id: Any = None, text_response: Optional[str] = None) -> bool:
    """A question counts as answered once it has a selection or non-blank text."""
    if question.question_type == QuestionType.SHORT_ANSWER:
        return bool(text_response and text_response.strip())
    return bool(selected_option_id)
