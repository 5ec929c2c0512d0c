"""
Aggregate scoring of an attempt.

Binary kinds contribute 1.0 or 0.0; scenario paths contribute their
fractional credit. The percentage is computed from total credit, so a
half-right scenario moves the score even though it never counts toward
correct_count.
"""

from __future__ import annotations

import math
from typing import Mapping

from src.assessment.evaluators import evaluate
from src.assessment.models import QuizDefinition, ScoreResult


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (66.5 -> 67, not 66)."""
    return int(math.floor(value + 0.5))


def score_attempt(
    quiz: QuizDefinition,
    answers: Mapping[str, object],
    xp_multiplier: float = 1.0,
) -> ScoreResult:
    """
    Score every question in quiz order.

    Args:
        quiz: The quiz definition
        answers: question id -> resolved answer; missing ids score zero
        xp_multiplier: Applied to earned XP (retry penalty)

    Returns:
        ScoreResult with percentage clamped to [0, 100]
    """
    correctness: list[bool] = []
    credits: list[float] = []
    xp = 0.0

    for question in quiz.questions:
        result = evaluate(question, answers.get(question.id))
        correctness.append(result.correct)
        credits.append(result.credit)
        xp += question.weight * result.credit

    total = len(quiz.questions)
    earned = sum(credits)
    percentage = round_half_up(earned / total * 100) if total else 0
    percentage = min(100, max(0, percentage))

    return ScoreResult(
        correct_count=sum(1 for ok in correctness if ok),
        total_count=total,
        earned_credit=earned,
        percentage=percentage,
        passed=percentage >= quiz.passing_score,
        per_question_correctness=tuple(correctness),
        per_question_credit=tuple(credits),
        xp_earned=int(math.floor(xp * max(0.0, xp_multiplier))),
    )
