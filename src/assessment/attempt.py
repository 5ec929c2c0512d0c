"""
Attempt state machine.

One QuizAttempt drives one learner through one numbered attempt at a quiz:

    in-progress --submit()--> submitted   (terminal)

The cursor only moves forward through advance() and backward through
retreat(). Retrying never reopens a submitted attempt; the caller starts a
new QuizAttempt with the next attempt number.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from src.assessment.errors import (
    AnswerRequired,
    AttemptAlreadySubmitted,
    AttemptLimitExceeded,
    QuestionNotReached,
    UnknownQuestion,
)
from src.assessment.evaluators import resolve_answer
from src.assessment.models import (
    AttemptState,
    AttemptStatus,
    PersistedProgressRecord,
    QuizDefinition,
    ScoreResult,
    utcnow,
)
from src.assessment.scoring import score_attempt


def remaining_attempts(max_attempts: Optional[int], prior_attempt_count: int) -> Optional[int]:
    """Attempts left after prior_attempt_count, or None when unbounded."""
    if max_attempts is None:
        return None
    return max(0, max_attempts - prior_attempt_count)


def can_retry(max_attempts: Optional[int], prior_attempt_count: int) -> bool:
    remaining = remaining_attempts(max_attempts, prior_attempt_count)
    return remaining is None or remaining > 0


class QuizAttempt:
    """State machine for a single attempt."""

    def __init__(
        self,
        quiz: QuizDefinition,
        state: AttemptState,
        clock: Callable[[], datetime] = utcnow,
        xp_multiplier: float = 1.0,
    ):
        self.quiz = quiz
        self.state = state
        self.xp_multiplier = xp_multiplier
        self._clock = clock

    @classmethod
    def start(
        cls,
        quiz: QuizDefinition,
        learner_id: str,
        attempt_number: int = 1,
        clock: Callable[[], datetime] = utcnow,
        xp_multiplier: float = 1.0,
    ) -> "QuizAttempt":
        """Begin a fresh attempt at cursor 0."""
        if quiz.max_attempts is not None and attempt_number > quiz.max_attempts:
            raise AttemptLimitExceeded(quiz.id, attempt_number, quiz.max_attempts)

        now = clock()
        state = AttemptState(
            learner_id=learner_id,
            quiz_id=quiz.id,
            attempt_number=attempt_number,
            started_at=now,
            last_activity_at=now,
        )
        logger.debug("Started attempt {} of quiz {} for {}", attempt_number, quiz.id, learner_id)
        return cls(quiz, state, clock, xp_multiplier)

    @classmethod
    def restore(
        cls,
        quiz: QuizDefinition,
        record: PersistedProgressRecord,
        clock: Callable[[], datetime] = utcnow,
        xp_multiplier: float = 1.0,
    ) -> "QuizAttempt":
        """Rehydrate an attempt from a persisted record."""
        answers = {}
        for qid, raw in record.captured_answers.items():
            question = quiz.get_question(qid)
            if question is None:
                logger.warning("Dropping saved answer for unknown question {} in quiz {}", qid, quiz.id)
                continue
            answers[qid] = resolve_answer(question, raw)

        cursor = min(max(record.cursor, 0), max(quiz.last_index, 0))
        state = AttemptState(
            learner_id=record.learner_id,
            quiz_id=record.quiz_id,
            attempt_number=record.attempt_number,
            cursor=cursor,
            captured_answers=answers,
            status=record.status,
            started_at=record.started_at,
            last_activity_at=record.last_activity_at,
        )
        if state.is_submitted:
            state.score = score_attempt(quiz, answers, xp_multiplier)
        return cls(quiz, state, clock, xp_multiplier)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def cursor(self) -> int:
        return self.state.cursor

    @property
    def is_submitted(self) -> bool:
        return self.state.is_submitted

    @property
    def current_question(self):
        if not self.quiz.questions:
            return None
        return self.quiz.questions[self.state.cursor]

    @property
    def is_last_question(self) -> bool:
        return self.state.cursor >= self.quiz.last_index

    def answer_for(self, question_id: str):
        return self.state.captured_answers.get(question_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _ensure_in_progress(self) -> None:
        if self.state.is_submitted:
            raise AttemptAlreadySubmitted(self.state.quiz_id, self.state.attempt_number)

    def _touch(self) -> None:
        self.state.last_activity_at = self._clock()

    def capture_answer(self, value: Any, question_id: str | None = None):
        """
        Record an answer, replacing any earlier one for the same question.

        Args:
            value: Raw learner value, resolved here into a typed answer
            question_id: Defaults to the question under the cursor

        Returns:
            The resolved answer (possibly a MalformedAnswer)
        """
        self._ensure_in_progress()

        if question_id is None:
            question = self.current_question
            if question is None:
                raise UnknownQuestion("<none>")
        else:
            index = self.quiz.question_index(question_id)
            if index is None:
                raise UnknownQuestion(question_id)
            if index > self.state.cursor:
                raise QuestionNotReached(question_id, self.state.cursor)
            question = self.quiz.questions[index]

        answer = resolve_answer(question, value)
        self.state.captured_answers[question.id] = answer
        self._touch()
        return answer

    def advance(self) -> bool:
        """
        Move to the next question, or submit from the last one.

        Returns:
            True if this call submitted the attempt
        """
        self._ensure_in_progress()

        question = self.current_question
        if question is not None and question.id not in self.state.captured_answers:
            raise AnswerRequired(question.id)

        if self.is_last_question:
            self.submit()
            return True

        self.state.cursor += 1
        self._touch()
        return False

    def retreat(self) -> int:
        """Step back one question. Answers are kept."""
        self._ensure_in_progress()
        if self.state.cursor > 0:
            self.state.cursor -= 1
            self._touch()
        return self.state.cursor

    def submit(self, xp_multiplier: Optional[float] = None) -> ScoreResult:
        """Score all questions and close the attempt."""
        self._ensure_in_progress()

        if xp_multiplier is None:
            xp_multiplier = self.xp_multiplier
        result = score_attempt(self.quiz, self.state.captured_answers, xp_multiplier)
        self.state.score = result
        self.state.status = AttemptStatus.SUBMITTED
        self._touch()

        logger.info(
            "Quiz {} attempt {} submitted: {}/{} ({}%), passed={}",
            self.state.quiz_id,
            self.state.attempt_number,
            result.correct_count,
            result.total_count,
            result.percentage,
            result.passed,
        )
        return result

    # ------------------------------------------------------------------
    # Persistence view
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Partial progress record describing the current state."""
        return {
            "learner_id": self.state.learner_id,
            "quiz_id": self.state.quiz_id,
            "attempt_number": self.state.attempt_number,
            "cursor": self.state.cursor,
            "captured_answers": self.state.raw_answers(),
            "status": self.state.status,
            "started_at": self.state.started_at,
            "last_activity_at": self.state.last_activity_at,
        }
