"""
Remediation Planner: targeted review content for missed questions.

The mapping is static authoring data keyed by question id or by topic tag.
The planner only hands back resource ids; resolving them into a video
timestamp or an article anchor is the caller's job.
"""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Mapping, Optional

from loguru import logger
from pydantic import ValidationError

from src.assessment.models import QuizDefinition, RemediationSuggestion, ScoreResult


class RemediationPlanner:
    """
    Picks at most one suggestion per missed question.

    Lookup order for a missed question:
    - its question id
    - its topic tag, if the question has one

    Suggestions keep missed-question order, are deduplicated by resource_id
    (first occurrence wins) and capped at max_suggestions.
    """

    def __init__(
        self,
        mapping: Optional[Mapping[str, RemediationSuggestion]] = None,
        max_suggestions: Optional[int] = None,
    ):
        self.mapping: dict[str, RemediationSuggestion] = dict(mapping or {})
        self.max_suggestions = max_suggestions

    @classmethod
    def from_dict(cls, data: Mapping[str, dict], max_suggestions: Optional[int] = None) -> "RemediationPlanner":
        """Build from raw authoring data, skipping entries that do not parse."""
        mapping = {}
        for key, entry in data.items():
            try:
                mapping[key] = RemediationSuggestion.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping remediation entry '{key}': {e.error_count()} validation errors")
        return cls(mapping, max_suggestions)

    @classmethod
    def from_file(cls, path: Path, max_suggestions: Optional[int] = None) -> "RemediationPlanner":
        """Load a JSON mapping file ({key: suggestion})."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data, max_suggestions)

    def lookup(self, question) -> Optional[RemediationSuggestion]:
        suggestion = self.mapping.get(question.id)
        if suggestion is None and question.topic:
            suggestion = self.mapping.get(question.topic)
        return suggestion

    def plan(self, attempt, quiz: QuizDefinition, score: ScoreResult) -> list[RemediationSuggestion]:
        """
        Suggest review content for the missed questions of a submitted attempt.

        Args:
            attempt: The submitted AttemptState (kept for callers that key on it)
            quiz: The quiz definition
            score: The attempt's ScoreResult

        Returns:
            Ordered suggestions; empty when nothing maps. An empty list is a
            normal outcome and the caller shows generic encouragement.
        """
        suggestions: list[RemediationSuggestion] = []
        seen: set[str] = set()

        for index in score.missed_indices():
            if index >= len(quiz.questions):
                break
            suggestion = self.lookup(quiz.questions[index])
            if suggestion is None or suggestion.resource_id in seen:
                continue
            seen.add(suggestion.resource_id)
            suggestions.append(suggestion)

        if self.max_suggestions is not None:
            suggestions = suggestions[: self.max_suggestions]

        logger.debug(
            "Remediation for quiz {} attempt {}: {} suggestions",
            quiz.id,
            getattr(attempt, "attempt_number", "?"),
            len(suggestions),
        )
        return suggestions


def missed_topics(quiz: QuizDefinition, score: ScoreResult) -> list[str]:
    """Topic tags of missed questions, most frequently missed first."""
    counts: Counter[str] = Counter()
    for index in score.missed_indices():
        if index < len(quiz.questions) and quiz.questions[index].topic:
            counts[quiz.questions[index].topic] += 1
    # Counter.most_common keeps insertion order among ties
    return [topic for topic, _ in counts.most_common()]
