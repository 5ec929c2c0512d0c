"""
Single-choice evaluator.

Correct iff the chosen option index equals the key.
"""

import re
from typing import Any

from src.assessment.models import ChoiceAnswer, MalformedAnswer, QuestionKind

from . import register
from .base import Evaluation, is_index

_NUMERIC = re.compile(r"-?[0-9]+")


@register(QuestionKind.SINGLE_CHOICE)
class SingleChoiceEvaluator:
    """Evaluator for single-choice questions."""

    def resolve(self, question, raw: Any):
        if isinstance(raw, ChoiceAnswer):
            return raw
        if is_index(raw):
            return ChoiceAnswer(raw)
        # Numeric strings come through from form posts and the CLI
        if isinstance(raw, str) and _NUMERIC.fullmatch(raw.strip()):
            return ChoiceAnswer(int(raw.strip()))
        return MalformedAnswer(QuestionKind.SINGLE_CHOICE, raw)

    def evaluate(self, question, answer: ChoiceAnswer) -> Evaluation:
        return Evaluation.binary(answer.index == question.correct_answer)
