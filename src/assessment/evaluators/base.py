"""
Base protocol and types for answer evaluators.
"""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class Evaluation:
    """Result of scoring one answer."""
    correct: bool
    credit: float = 0.0  # 0.0-1.0, fractional only for scenario paths

    @classmethod
    def zero(cls) -> "Evaluation":
        return cls(correct=False, credit=0.0)

    @classmethod
    def binary(cls, correct: bool) -> "Evaluation":
        return cls(correct=correct, credit=1.0 if correct else 0.0)


def is_index(value: Any) -> bool:
    """True for plain ints. bools are rejected even though they subclass int."""
    return isinstance(value, int) and not isinstance(value, bool)


class Evaluator(Protocol):
    """Protocol for question kind evaluators."""

    def resolve(self, question, raw: Any):
        """Turn a raw learner value into a typed answer, or MalformedAnswer."""
        ...

    def evaluate(self, question, answer) -> Evaluation:
        """Score a typed answer. Never raises."""
        ...
