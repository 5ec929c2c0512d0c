"""
Data model for the assessment engine.

Quiz definitions arrive from authoring as plain dicts and are parsed once into
pydantic models (a discriminated union on ``kind``). Learner answers are a
small tagged union of frozen dataclasses, resolved when they are captured so
evaluators never have to sniff shapes at scoring time.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestionKind(str, Enum):
    """Supported question kinds."""
    SINGLE_CHOICE = "single-choice"
    MULTI_SELECT = "multi-select"
    ORDERING = "ordering"
    SCENARIO_PATH = "scenario-path"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"


class RemediationKind(str, Enum):
    VIDEO_SEGMENT = "video-segment"
    TEXT_SECTION = "text-section"
    INTERACTIVE_CHALLENGE = "interactive-challenge"


# =============================================================================
# Quiz definitions (inbound, immutable)
# =============================================================================


class _Definition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class _QuestionBase(_Definition):
    id: str
    weight: int = Field(default=10, validation_alias=AliasChoices("weight", "xpReward", "xp_reward"))
    topic: str | None = None
    prompt: str = Field(default="", validation_alias=AliasChoices("prompt", "question"))
    options: tuple[str, ...] = ()


class SingleChoiceQuestion(_QuestionBase):
    kind: Literal["single-choice"] = "single-choice"
    correct_answer: int = Field(validation_alias=AliasChoices("correct_answer", "correctAnswer"))


class MultiSelectQuestion(_QuestionBase):
    kind: Literal["multi-select"] = "multi-select"
    correct_answer: frozenset[int] = Field(
        validation_alias=AliasChoices("correct_answer", "correctAnswer")
    )


class OrderingQuestion(_QuestionBase):
    kind: Literal["ordering"] = "ordering"
    correct_answer: tuple[int, ...] = Field(
        validation_alias=AliasChoices("correct_answer", "correctAnswer")
    )


class ScenarioOption(_Definition):
    id: str
    text: str = ""
    consequence: str = ""
    score: int = 0
    next_step_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("next_step_id", "nextStepId", "nextScenarioId"),
    )


class ScenarioStep(_Definition):
    id: str
    situation: str = ""
    options: tuple[ScenarioOption, ...]

    def option(self, option_id: str) -> ScenarioOption | None:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None


class ScenarioPathQuestion(_QuestionBase):
    kind: Literal["scenario-path"] = "scenario-path"
    steps: tuple[ScenarioStep, ...]
    start_step_id: str = Field(validation_alias=AliasChoices("start_step_id", "startStepId"))
    perfect_score: int = Field(validation_alias=AliasChoices("perfect_score", "perfectScore"))

    def step(self, step_id: str) -> ScenarioStep | None:
        for s in self.steps:
            if s.id == step_id:
                return s
        return None


Question = Annotated[
    Union[SingleChoiceQuestion, MultiSelectQuestion, OrderingQuestion, ScenarioPathQuestion],
    Field(discriminator="kind"),
]


class QuizDefinition(_Definition):
    """An already-validated quiz as supplied by authoring."""

    id: str
    title: str = ""
    questions: tuple[Question, ...]
    passing_score: int = Field(default=70, validation_alias=AliasChoices("passing_score", "passingScore"))
    # None means unbounded
    max_attempts: int | None = Field(
        default=None, validation_alias=AliasChoices("max_attempts", "maxAttempts")
    )

    def question_index(self, question_id: str) -> int | None:
        for i, q in enumerate(self.questions):
            if q.id == question_id:
                return i
        return None

    def get_question(self, question_id: str):
        idx = self.question_index(question_id)
        return None if idx is None else self.questions[idx]

    @property
    def last_index(self) -> int:
        return len(self.questions) - 1


# =============================================================================
# Submitted answers (tagged union)
# =============================================================================


@dataclass(frozen=True)
class ChoiceAnswer:
    index: int
    kind: ClassVar[QuestionKind] = QuestionKind.SINGLE_CHOICE

    def to_raw(self) -> Any:
        return self.index


@dataclass(frozen=True)
class MultiSelectAnswer:
    indices: frozenset[int]
    kind: ClassVar[QuestionKind] = QuestionKind.MULTI_SELECT

    def to_raw(self) -> Any:
        return sorted(self.indices)


@dataclass(frozen=True)
class OrderingAnswer:
    sequence: tuple[int, ...]
    kind: ClassVar[QuestionKind] = QuestionKind.ORDERING

    def to_raw(self) -> Any:
        return list(self.sequence)


@dataclass(frozen=True)
class ScenarioPathAnswer:
    option_ids: tuple[str, ...]
    kind: ClassVar[QuestionKind] = QuestionKind.SCENARIO_PATH

    def to_raw(self) -> Any:
        return list(self.option_ids)


@dataclass(frozen=True)
class MalformedAnswer:
    """A value whose shape does not fit the question kind. Always scores zero."""
    question_kind: QuestionKind
    raw: Any = None

    @property
    def kind(self) -> QuestionKind:
        return self.question_kind

    def to_raw(self) -> Any:
        return self.raw


SubmittedAnswer = Union[ChoiceAnswer, MultiSelectAnswer, OrderingAnswer, ScenarioPathAnswer, MalformedAnswer]


# =============================================================================
# Attempt state and results
# =============================================================================


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring a submitted attempt."""

    correct_count: int
    total_count: int
    earned_credit: float
    percentage: int
    passed: bool
    per_question_correctness: tuple[bool, ...]
    per_question_credit: tuple[float, ...] = ()
    xp_earned: int = 0

    def missed_indices(self) -> list[int]:
        return [i for i, ok in enumerate(self.per_question_correctness) if not ok]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["per_question_correctness"] = list(self.per_question_correctness)
        data["per_question_credit"] = list(self.per_question_credit)
        return data


@dataclass
class AttemptState:
    """Mutable state of one learner's attempt at one quiz."""

    learner_id: str
    quiz_id: str
    attempt_number: int
    cursor: int = 0
    captured_answers: dict[str, SubmittedAnswer] = field(default_factory=dict)
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    started_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)
    score: ScoreResult | None = None

    @property
    def is_submitted(self) -> bool:
        return self.status == AttemptStatus.SUBMITTED

    def raw_answers(self) -> dict[str, Any]:
        return {qid: answer.to_raw() for qid, answer in self.captured_answers.items()}


class RemediationSuggestion(_Definition):
    """Corrective content for a missed question; resolved by the caller."""

    resource_id: str = Field(validation_alias=AliasChoices("resource_id", "resourceId"))
    kind: RemediationKind = Field(validation_alias=AliasChoices("kind", "type"))
    title: str
    estimated_minutes: int = Field(
        default=3, validation_alias=AliasChoices("estimated_minutes", "estimatedMinutes")
    )
    description: str = ""
    start_time: int | None = Field(default=None, validation_alias=AliasChoices("start_time", "startTime"))
    end_time: int | None = Field(default=None, validation_alias=AliasChoices("end_time", "endTime"))


class PersistedProgressRecord(BaseModel):
    """Durable snapshot of an attempt plus auto-save extras."""

    model_config = ConfigDict(extra="ignore")

    learner_id: str
    quiz_id: str
    attempt_number: int = 1
    cursor: int = 0
    captured_answers: dict[str, Any] = Field(default_factory=dict)
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    started_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    saved_at: datetime | None = None
    attempt_data: dict[str, Any] | None = None
    lesson_progress: dict[str, list[str]] = Field(default_factory=dict)
    video_progress: dict[str, float] = Field(default_factory=dict)
    time_spent_seconds: int = 0
    attempt_history: list[dict[str, Any]] = Field(default_factory=list)
    version: int = 0

    @property
    def completed_attempts(self) -> int:
        return len(self.attempt_history)
