"""
Multi-select evaluator.

The submitted index set must equal the key exactly. No partial credit:
selecting every option, or missing one correct option, fails the question.
"""

from typing import Any

from src.assessment.models import MalformedAnswer, MultiSelectAnswer, QuestionKind

from . import register
from .base import Evaluation, is_index


@register(QuestionKind.MULTI_SELECT)
class MultiSelectEvaluator:
    """Evaluator for multi-select questions."""

    def resolve(self, question, raw: Any):
        if isinstance(raw, MultiSelectAnswer):
            return raw
        if not isinstance(raw, (list, tuple, set, frozenset)):
            return MalformedAnswer(QuestionKind.MULTI_SELECT, raw)
        if not all(is_index(i) for i in raw):
            return MalformedAnswer(QuestionKind.MULTI_SELECT, raw)
        indices = frozenset(raw)
        # Duplicates would hide a size mismatch once collapsed into a set
        if len(indices) != len(raw):
            return MalformedAnswer(QuestionKind.MULTI_SELECT, list(raw))
        return MultiSelectAnswer(indices)

    def evaluate(self, question, answer: MultiSelectAnswer) -> Evaluation:
        expected = frozenset(question.correct_answer)
        submitted = answer.indices
        correct = len(submitted) == len(expected) and all(i in expected for i in submitted)
        return Evaluation.binary(correct)
