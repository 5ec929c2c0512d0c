"""
Assessment & Progress Engine.

Scores learner answers, runs the attempt lifecycle, plans remediation for
missed questions and keeps progress saved across interruptions.

Components:
- models: quiz definitions, answers, scores and the persisted record
- evaluators: per-kind answer resolution and scoring (registry)
- attempt: attempt state machine
- remediation / feedback: review suggestions and learner-facing messages
- persistence: storage backends and the save-scheduling port
- events: completion event bus
- session: controller tying the pieces together
"""

from .attempt import QuizAttempt, can_retry, remaining_attempts
from .errors import (
    AnswerRequired,
    AssessmentError,
    AttemptAlreadySubmitted,
    AttemptError,
    AttemptLimitExceeded,
    PersistenceError,
    QuestionNotReached,
    StaleRecordError,
    UnknownQuestion,
)
from .evaluators import EVALUATORS, evaluate, get_evaluator, resolve_answer, score
from .events import EventBus, QuizCompleted
from .feedback import Feedback, FeedbackTone, generate_feedback, select_tone
from .models import (
    AttemptState,
    AttemptStatus,
    PersistedProgressRecord,
    QuestionKind,
    QuizDefinition,
    RemediationSuggestion,
    ScoreResult,
)
from .persistence import (
    InMemoryProgressBackend,
    JsonFileProgressBackend,
    LifecycleHooks,
    ProgressKey,
    ProgressPort,
    SaveMode,
    SqliteProgressBackend,
)
from .remediation import RemediationPlanner
from .scoring import score_attempt
from .session import SessionController, SubmissionOutcome

# Question kinds with a registered evaluator
SUPPORTED_KINDS = list(EVALUATORS.keys())

__all__ = [
    "AnswerRequired",
    "AssessmentError",
    "AttemptAlreadySubmitted",
    "AttemptError",
    "AttemptLimitExceeded",
    "AttemptState",
    "AttemptStatus",
    "EVALUATORS",
    "EventBus",
    "Feedback",
    "FeedbackTone",
    "InMemoryProgressBackend",
    "JsonFileProgressBackend",
    "LifecycleHooks",
    "PersistedProgressRecord",
    "PersistenceError",
    "ProgressKey",
    "ProgressPort",
    "QuestionKind",
    "QuestionNotReached",
    "QuizAttempt",
    "QuizCompleted",
    "QuizDefinition",
    "RemediationPlanner",
    "RemediationSuggestion",
    "SaveMode",
    "ScoreResult",
    "SqliteProgressBackend",
    "StaleRecordError",
    "SubmissionOutcome",
    "SUPPORTED_KINDS",
    "SessionController",
    "UnknownQuestion",
    "can_retry",
    "evaluate",
    "generate_feedback",
    "get_evaluator",
    "remaining_attempts",
    "resolve_answer",
    "score",
    "score_attempt",
    "select_tone",
]
