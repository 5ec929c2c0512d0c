"""
Constructive feedback after a submission.

Tone selection is a pure, total function of the attempt outcome:

    passed                          -> SUCCESS
    failed, attempts remaining      -> ENCOURAGING
    failed, no attempts remaining   -> FINAL

An unbounded quiz (remaining_attempts=None) always has attempts remaining.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.assessment.scoring import round_half_up


class FeedbackTone(str, Enum):
    SUCCESS = "success"
    ENCOURAGING = "encouraging"
    FINAL = "final"


@dataclass(frozen=True)
class Feedback:
    tone: FeedbackTone
    message: str
    emoji: str = ""


ENCOURAGEMENT_MESSAGES = (
    "You're so close! These are just small gaps in understanding.",
    "Great effort! Let's focus on these specific areas and you'll ace it next time!",
    "Almost there! A quick review of these concepts and you'll be unstoppable!",
    "Nice try! Everyone learns at their own pace - let's strengthen these areas together!",
    "You've got this! These are common tricky spots - let's master them!",
)


def _percentage(correct_count: float, total_count: int) -> int:
    if total_count <= 0:
        return 0
    return round_half_up(correct_count / total_count * 100)


def select_tone(
    correct_count: float,
    total_count: int,
    is_first_attempt: bool,
    remaining_attempts: Optional[int],
    passing_score: int = 70,
) -> FeedbackTone:
    """Pick the feedback tone. Defined for every input combination."""
    if _percentage(correct_count, total_count) >= passing_score:
        return FeedbackTone.SUCCESS
    if remaining_attempts is None or remaining_attempts > 0:
        return FeedbackTone.ENCOURAGING
    return FeedbackTone.FINAL


def _plural(n: float, one: str, many: str) -> str:
    return one if n == 1 else many


def _count(n: float) -> str:
    # scenario credit can make the tally fractional
    return str(int(n)) if float(n).is_integer() else f"{n:.1f}"


def generate_feedback(
    correct_count: float,
    total_count: int,
    is_first_attempt: bool,
    remaining_attempts: Optional[int],
    passing_score: int = 70,
) -> Feedback:
    """Build the learner-facing message for a submitted attempt."""
    tone = select_tone(correct_count, total_count, is_first_attempt, remaining_attempts, passing_score)
    percentage = _percentage(correct_count, total_count)

    if tone == FeedbackTone.SUCCESS:
        if percentage == 100:
            if is_first_attempt:
                return Feedback(tone, "Perfect! You aced it on your first try! Outstanding work!", "🎉")
            return Feedback(tone, "Perfect score! All your hard work paid off!", "🎉")
        if percentage >= 90:
            return Feedback(tone, "Excellent work! You've mastered this material!", "🌟")
        return Feedback(tone, "Great job! You passed! Keep up the good work!", "✅")

    if tone == FeedbackTone.FINAL:
        return Feedback(
            tone,
            f"You got {_count(correct_count)} out of {total_count} right. "
            "Review the material and come back stronger!",
            "📚",
        )

    if remaining_attempts is None:
        retry_hint = "Let's review and try again!"
    else:
        retry_hint = (
            f"You have {remaining_attempts} more "
            f"{_plural(remaining_attempts, 'attempt', 'attempts')}. Let's review and try again!"
        )

    if percentage >= passing_score * 0.7:
        return Feedback(
            tone,
            f"Mission incomplete, but you're close! You got {_count(correct_count)} out of {total_count} right. {retry_hint}",
            "💪",
        )

    missed = total_count - correct_count
    return Feedback(
        tone,
        f"Mission incomplete, but don't worry! You missed {_count(missed)} "
        f"{_plural(missed, 'question', 'questions')}. {retry_hint}",
        "🎯",
    )


def should_focus_remediation(attempt_count: int, percentage: int, passing_score: int) -> bool:
    """True for repeat near-misses, where targeted review helps most."""
    return attempt_count >= 2 and percentage < passing_score and percentage >= passing_score * 0.6


def encouragement(attempt_number: int) -> str:
    """Generic encouragement when no remediation content is mapped."""
    return ENCOURAGEMENT_MESSAGES[(max(attempt_number, 1) - 1) % len(ENCOURAGEMENT_MESSAGES)]
