"""
Ordering evaluator.

Learners arrange options shown in a shuffled display order. What gets
compared is the sequence of ORIGINAL option indices, position by position,
against the key. One swapped pair fails the whole question.
"""

from typing import Any, Sequence

from src.assessment.models import MalformedAnswer, OrderingAnswer, QuestionKind

from . import register
from .base import Evaluation, is_index


def resolve_display_order(display_order: Sequence[int], arranged: Sequence[int]) -> list[int]:
    """
    Map a learner's arrangement of display slots back to original indices.

    Args:
        display_order: display_order[slot] is the original index shown in that slot
        arranged: the learner's final order, as display slots

    Returns:
        Original option indices in the learner's order.

    Raises:
        IndexError: if a slot does not exist in display_order
    """
    for slot in arranged:
        if not is_index(slot) or not 0 <= slot < len(display_order):
            raise IndexError(f"no display slot {slot!r}")
    return [display_order[slot] for slot in arranged]


@register(QuestionKind.ORDERING)
class OrderingEvaluator:
    """Evaluator for ordering questions."""

    def resolve(self, question, raw: Any):
        if isinstance(raw, OrderingAnswer):
            return raw
        if isinstance(raw, dict) and "display_order" in raw and "arranged" in raw:
            try:
                raw = resolve_display_order(raw["display_order"], raw["arranged"])
            except (IndexError, TypeError):
                return MalformedAnswer(QuestionKind.ORDERING, raw)
        if not isinstance(raw, (list, tuple)) or not all(is_index(i) for i in raw):
            return MalformedAnswer(QuestionKind.ORDERING, raw)
        return OrderingAnswer(tuple(raw))

    def evaluate(self, question, answer: OrderingAnswer) -> Evaluation:
        return Evaluation.binary(tuple(answer.sequence) == tuple(question.correct_answer))

    def correct_positions(self, question, answer: OrderingAnswer) -> int:
        """Count of positions already in the right place (for feedback only)."""
        return sum(
            1 for got, want in zip(answer.sequence, question.correct_answer) if got == want
        )
