"""
Answer evaluators, one per question kind.

Each kind has its own module with:
- resolve(): Turn a raw learner value into a typed answer (or MalformedAnswer)
- evaluate(): Score a typed answer against the question's key

Evaluators are pure: no I/O, no state, and they never raise on bad input.
"""

from typing import TYPE_CHECKING, Any

from src.assessment.models import MalformedAnswer, QuestionKind

if TYPE_CHECKING:
    from .base import Evaluation, Evaluator


# Evaluator registry - populated by @register decorator
EVALUATORS: dict[QuestionKind, "Evaluator"] = {}


def register(kind: QuestionKind):
    """Decorator to register an evaluator for a question kind."""
    def decorator(cls):
        EVALUATORS[kind] = cls()
        return cls
    return decorator


def get_evaluator(kind: str | QuestionKind) -> "Evaluator | None":
    """Get the evaluator for a question kind."""
    if isinstance(kind, str):
        try:
            kind = QuestionKind(kind.lower())
        except ValueError:
            return None
    return EVALUATORS.get(kind)


def resolve_answer(question, raw: Any):
    """Resolve a raw captured value into the answer variant for this question."""
    evaluator = get_evaluator(question.kind)
    if evaluator is None:
        return MalformedAnswer(QuestionKind(question.kind), raw)
    return evaluator.resolve(question, raw)


def evaluate(question, answer) -> "Evaluation":
    """Score one answer. Missing, malformed or mismatched answers earn nothing."""
    from .base import Evaluation

    evaluator = get_evaluator(question.kind)
    if evaluator is None or answer is None or isinstance(answer, MalformedAnswer):
        return Evaluation.zero()
    if answer.kind != question.kind:
        return Evaluation.zero()
    return evaluator.evaluate(question, answer)


def score(question, answer) -> bool:
    """Binary correctness of one answer."""
    return evaluate(question, answer).correct


# Import evaluators to trigger registration
from . import single_choice
from . import multi_select
from . import ordering
from . import scenario_path

__all__ = [
    "EVALUATORS",
    "evaluate",
    "get_evaluator",
    "register",
    "resolve_answer",
    "score",
]
