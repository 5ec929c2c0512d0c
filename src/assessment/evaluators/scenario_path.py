"""
Scenario-path evaluator.

A scenario is a small decision tree. The learner's answer is the list of
option ids chosen from the start step until an endpoint (an option with no
next step). Each option carries a score; the path total divided by the
scenario's perfect score is the credit. Only a perfect path counts as
"correct" for the correct_count tally.
"""

from typing import Any

from loguru import logger

from src.assessment.models import MalformedAnswer, QuestionKind, ScenarioPathAnswer

from . import register
from .base import Evaluation


def walk_path(question, option_ids) -> int | None:
    """
    Follow option_ids through the scenario and total the option scores.

    Returns None when the path is not a complete walk of the tree: an unknown
    step or option, a path that stops before an endpoint, or choices left over
    after one. Loops are cut off by the path length itself.
    """
    step_id: str | None = question.start_step_id
    total = 0

    for option_id in option_ids:
        if step_id is None:
            return None  # choices after the endpoint
        step = question.step(step_id)
        if step is None:
            return None
        option = step.option(option_id)
        if option is None:
            return None
        total += option.score
        step_id = option.next_step_id

    if step_id is not None:
        return None  # path ended before an endpoint
    return total


@register(QuestionKind.SCENARIO_PATH)
class ScenarioPathEvaluator:
    """Evaluator for scenario-path questions."""

    def resolve(self, question, raw: Any):
        if isinstance(raw, ScenarioPathAnswer):
            return raw
        if isinstance(raw, (list, tuple)) and raw and all(isinstance(o, str) for o in raw):
            return ScenarioPathAnswer(tuple(raw))
        return MalformedAnswer(QuestionKind.SCENARIO_PATH, raw)

    def evaluate(self, question, answer: ScenarioPathAnswer) -> Evaluation:
        total = walk_path(question, answer.option_ids)
        if total is None:
            logger.debug("Scenario {}: incomplete or invalid path {}", question.id, answer.option_ids)
            return Evaluation.zero()
        if question.perfect_score <= 0:
            return Evaluation.zero()

        credit = min(1.0, max(0.0, total / question.perfect_score))
        return Evaluation(correct=total == question.perfect_score, credit=credit)
