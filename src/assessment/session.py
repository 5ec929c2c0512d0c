"""
Session Controller.

Glue between a learner's UI actions and the engine: it drives the attempt
state machine, hands each change to the progress port, and on submission
runs scoring, feedback, remediation and the completion event.

Usage:
    controller = SessionController(quiz, "learner-1", port, events=bus, planner=planner)
    controller.open()
    controller.answer(2)
    controller.next()
    ...
    outcome = controller.submit()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger

from config import Settings, get_settings
from src.assessment.attempt import QuizAttempt, remaining_attempts
from src.assessment.errors import AttemptAlreadySubmitted, PersistenceError
from src.assessment.events import EventBus, QuizCompleted
from src.assessment.feedback import Feedback, encouragement, generate_feedback, should_focus_remediation
from src.assessment.models import (
    AttemptStatus,
    PersistedProgressRecord,
    QuizDefinition,
    RemediationSuggestion,
    ScoreResult,
)
from src.assessment.persistence import ProgressPort
from src.assessment.remediation import RemediationPlanner


@dataclass
class SubmissionOutcome:
    """Everything the UI needs after a submit."""

    score: ScoreResult
    feedback: Feedback
    suggestions: list[RemediationSuggestion] = field(default_factory=list)
    remaining_attempts: Optional[int] = None
    completion_event: Optional[QuizCompleted] = None
    encouragement: Optional[str] = None
    focus_remediation: bool = False

    @property
    def passed(self) -> bool:
        return self.score.passed


class SessionController:
    """
    One learner, one quiz, one progress record.

    Persistence failures never block the learner: they are logged and
    surfaced through save_failed while navigation carries on.
    """

    def __init__(
        self,
        quiz: QuizDefinition,
        learner_id: str,
        port: ProgressPort,
        *,
        events: Optional[EventBus] = None,
        planner: Optional[RemediationPlanner] = None,
        settings: Optional[Settings] = None,
    ):
        self.quiz = quiz
        self.learner_id = learner_id
        self.port = port
        self.events = events or EventBus()
        self.settings = settings or get_settings()
        self.planner = planner or RemediationPlanner(
            max_suggestions=self.settings.remediation_max_suggestions
        )

        self.attempt: Optional[QuizAttempt] = None
        self.history: list[dict[str, Any]] = []
        self.last_outcome: Optional[SubmissionOutcome] = None
        self.resumed = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def save_failed(self) -> bool:
        return not self.port.status.healthy

    @property
    def attempts_used(self) -> int:
        return len(self.history)

    @property
    def remaining_attempts(self) -> Optional[int]:
        return remaining_attempts(self.quiz.max_attempts, self.attempts_used)

    def _multiplier(self, attempt_number: int) -> float:
        return 1.0 if attempt_number <= 1 else self.settings.retry_xp_multiplier

    def _require_attempt(self) -> QuizAttempt:
        if self.attempt is None:
            raise RuntimeError("Session not opened - call open() first")
        return self.attempt

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _load(self) -> Optional[PersistedProgressRecord]:
        try:
            return self.port.load()
        except PersistenceError as e:
            logger.warning("Could not load progress for {} on {}: {}", self.learner_id, self.quiz.id, e)
            return None

    def open(self) -> QuizAttempt:
        """
        Load saved progress, then resume or start an attempt.

        Raises:
            AttemptLimitExceeded: no attempts left for a new attempt
        """
        record = self._load()
        self.history = list(record.attempt_history) if record else []

        if record is not None and record.status == AttemptStatus.IN_PROGRESS and record.quiz_id == self.quiz.id:
            self.attempt = QuizAttempt.restore(
                self.quiz, record, xp_multiplier=self._multiplier(record.attempt_number)
            )
            self.resumed = True
            logger.info(
                "Resuming quiz {} attempt {} at question {}",
                self.quiz.id,
                record.attempt_number,
                self.attempt.cursor + 1,
            )
            self.port.start()
            return self.attempt

        attempt_number = self.attempts_used + 1
        self.attempt = QuizAttempt.start(
            self.quiz,
            self.learner_id,
            attempt_number,
            xp_multiplier=self._multiplier(attempt_number),
        )
        self.resumed = False
        if record is None:
            self._save(self.attempt.snapshot())
        else:
            self._replace_record()
        self.port.start()
        return self.attempt

    def retry(self) -> QuizAttempt:
        """
        Start the next attempt after a submission.

        Raises:
            AttemptLimitExceeded: no attempts left
        """
        current = self._require_attempt()
        attempt_number = self.attempts_used + 1
        if not current.is_submitted:
            # restarting an unfinished attempt keeps its number
            attempt_number = current.state.attempt_number

        self.attempt = QuizAttempt.start(
            self.quiz,
            self.learner_id,
            attempt_number,
            xp_multiplier=self._multiplier(attempt_number),
        )
        self.last_outcome = None
        self.resumed = False
        self._replace_record()
        self.port.start()
        logger.info("Retrying quiz {} (attempt {})", self.quiz.id, attempt_number)
        return self.attempt

    def abandon(self) -> None:
        """
        Drop the attempt and its saved progress.

        Completed attempts stay on record so they still count against
        max_attempts on the next open().
        """
        try:
            self.port.clear()
        except PersistenceError as e:
            logger.warning("Could not clear progress for {} on {}: {}", self.learner_id, self.quiz.id, e)

        if self.history:
            self._save(
                {
                    "learner_id": self.learner_id,
                    "quiz_id": self.quiz.id,
                    "attempt_number": self.history[-1]["attempt_number"],
                    "status": AttemptStatus.SUBMITTED,
                    "attempt_history": list(self.history),
                },
                immediate=True,
            )
        self.attempt = None
        self.last_outcome = None

    def close(self) -> None:
        """Flush anything pending and stop the save timer."""
        self.port.close()

    # ------------------------------------------------------------------
    # Learner actions
    # ------------------------------------------------------------------

    def answer(self, value: Any, question_id: str | None = None):
        """
        Capture an answer for the current (or an earlier) question.

        Returns:
            The resolved answer, or None if the attempt was already submitted
        """
        attempt = self._require_attempt()
        if question_id is None and attempt.current_question is not None:
            question_id = attempt.current_question.id

        try:
            answer = attempt.capture_answer(value, question_id)
        except AttemptAlreadySubmitted as e:
            logger.warning("Ignoring answer: {}", e)
            return None

        self._save(
            {
                "cursor": attempt.cursor,
                "captured_answers": {question_id: answer.to_raw()},
                "last_activity_at": attempt.state.last_activity_at,
            }
        )
        return answer

    def next(self) -> Optional[SubmissionOutcome]:
        """
        Advance one question. On the last question this submits.

        Raises:
            AnswerRequired: the current question has no answer yet
        """
        attempt = self._require_attempt()
        try:
            submitted = attempt.advance()
        except AttemptAlreadySubmitted as e:
            logger.warning("Ignoring next(): {}", e)
            return None

        if submitted:
            return self._complete()

        self._save({"cursor": attempt.cursor, "last_activity_at": attempt.state.last_activity_at})
        return None

    def previous(self) -> int:
        attempt = self._require_attempt()
        try:
            cursor = attempt.retreat()
        except AttemptAlreadySubmitted as e:
            logger.warning("Ignoring previous(): {}", e)
            return attempt.cursor

        self._save({"cursor": cursor, "last_activity_at": attempt.state.last_activity_at})
        return cursor

    def submit(self) -> Optional[SubmissionOutcome]:
        """
        Score the attempt and close it.

        A second submit is a logged no-op that returns the first outcome;
        the completion event is never published twice.
        """
        attempt = self._require_attempt()
        try:
            attempt.submit()
        except AttemptAlreadySubmitted as e:
            logger.warning("Ignoring submit(): {}", e)
            return self.last_outcome
        return self._complete()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _complete(self) -> SubmissionOutcome:
        attempt = self._require_attempt()
        state = attempt.state
        score = state.score
        submitted_at = state.last_activity_at

        self.history.append(
            {
                "attempt_number": state.attempt_number,
                "score": score.percentage,
                "passed": score.passed,
                "xp_earned": score.xp_earned,
                "submitted_at": submitted_at.isoformat(),
            }
        )
        attempt_data = {
            "score": score.percentage,
            "passed": score.passed,
            "attempt_count": state.attempt_number,
            "correct_count": score.correct_count,
            "total_count": score.total_count,
            "xp_earned": score.xp_earned,
        }
        self._save(
            {
                **attempt.snapshot(),
                "attempt_data": attempt_data,
                "attempt_history": list(self.history),
            },
            immediate=True,
        )

        remaining = self.remaining_attempts
        feedback = generate_feedback(
            score.earned_credit,
            score.total_count,
            state.attempt_number == 1,
            remaining,
            self.quiz.passing_score,
        )

        suggestions: list[RemediationSuggestion] = []
        note = None
        if not score.passed:
            suggestions = self.planner.plan(state, self.quiz, score)
            if not suggestions:
                note = encouragement(state.attempt_number)

        event = None
        if score.passed:
            event = QuizCompleted(
                learner_id=self.learner_id,
                quiz_id=self.quiz.id,
                score=score.percentage,
                xp_earned=score.xp_earned,
                attempt_number=state.attempt_number,
                occurred_at=submitted_at,
            )
            delivered = self.events.publish(event)
            logger.debug("QuizCompleted for {} delivered to {} handlers", self.quiz.id, delivered)

        self.last_outcome = SubmissionOutcome(
            score=score,
            feedback=feedback,
            suggestions=suggestions,
            remaining_attempts=remaining,
            completion_event=event,
            encouragement=note,
            focus_remediation=should_focus_remediation(
                state.attempt_number, score.percentage, self.quiz.passing_score
            ),
        )
        return self.last_outcome

    def _replace_record(self) -> None:
        """Swap the stored record for the current fresh attempt, keeping history."""
        attempt = self._require_attempt()
        try:
            self.port.clear()
        except PersistenceError as e:
            logger.warning("Could not clear previous progress for {}: {}", self.quiz.id, e)

        self._save(
            {
                **attempt.snapshot(),
                "attempt_data": None,
                "attempt_history": list(self.history),
            },
            immediate=True,
        )

    def _save(self, partial: dict[str, Any], immediate: bool = False) -> None:
        try:
            self.port.request_save(partial, immediate=immediate)
        except PersistenceError as e:
            # still buffered in the port; the next flush retries it
            logger.warning("Progress not saved for {} on {}: {}", self.learner_id, self.quiz.id, e)
