"""
Integration Tests for the Quiz Flow.

Drives the whole engine the way a UI would:
1. SessionController opens an attempt (loading saved progress first)
2. Answers and navigation are saved through the ProgressPort
3. Submission scores, plans remediation and publishes completion
4. Retry starts the next attempt on the same stored record

Uses the file-based backends under tmp_path; no external services needed.
"""

import pytest

from src.assessment.events import EventBus, QuizCompleted
from src.assessment.feedback import FeedbackTone
from src.assessment.models import AttemptStatus
from src.assessment.persistence import (
    InterruptSignal,
    JsonFileProgressBackend,
    LifecycleHooks,
    ProgressKey,
    ProgressPort,
    SaveMode,
    SqliteProgressBackend,
)
from src.assessment.remediation import RemediationPlanner
from src.assessment.session import SessionController

pytestmark = pytest.mark.integration


@pytest.fixture(params=["json", "sqlite"])
def backend(request, tmp_path):
    if request.param == "json":
        yield JsonFileProgressBackend(tmp_path / "progress")
    else:
        store = SqliteProgressBackend(tmp_path / "progress.db")
        yield store
        store.close()


class TestEndToEnd:
    """Fail, review, retry, pass."""

    def test_fail_then_pass(self, backend, three_question_quiz, remediation_data, settings):
        bus = EventBus()
        completed = []
        bus.subscribe(QuizCompleted, completed.append)

        key = ProgressKey("learner-1", three_question_quiz.id)
        port = ProgressPort(backend, key, mode=SaveMode.IMMEDIATE)
        controller = SessionController(
            three_question_quiz,
            "learner-1",
            port,
            events=bus,
            planner=RemediationPlanner.from_dict(remediation_data),
            settings=settings,
        )
        controller.open()

        # Attempt 1: q1 wrong
        for value in (0, 1, 3):
            controller.answer(value)
            outcome = controller.next()

        assert outcome.score.percentage == 67
        assert outcome.passed is False
        assert [s.resource_id for s in outcome.suggestions] == ["video-routing"]
        assert outcome.feedback.tone == FeedbackTone.ENCOURAGING
        assert completed == []

        # Attempt 2: all right
        controller.retry()
        for value in (2, 1, 3):
            controller.answer(value)
            outcome = controller.next()

        assert outcome.score.percentage == 100
        assert outcome.passed is True
        assert len(completed) == 1
        assert completed[0].learner_id == "learner-1"
        assert completed[0].quiz_id == three_question_quiz.id
        assert completed[0].score == 100

        record = backend.load(key)
        assert record.status == AttemptStatus.SUBMITTED
        assert record.attempt_number == 2
        assert [h["score"] for h in record.attempt_history] == [67, 100]
        assert record.attempt_data["passed"] is True

        controller.close()


class TestResume:
    """Navigating away and coming back."""

    def test_resume_after_interrupt(self, backend, three_question_quiz, settings):
        key = ProgressKey("learner-1", three_question_quiz.id)

        # Session 1: debounced, interrupted mid-quiz
        hooks = LifecycleHooks()
        port = ProgressPort(backend, key, mode=SaveMode.DEBOUNCED, flush_interval_seconds=3600, hooks=hooks)
        first = SessionController(three_question_quiz, "learner-1", port, settings=settings)
        first.open()
        first.answer(2)
        first.next()
        first.answer(1)
        hooks.fire(InterruptSignal.UNLOAD)
        first.close()

        # Session 2: picks up at question 2 with both answers
        port = ProgressPort(backend, key, mode=SaveMode.DEBOUNCED, flush_interval_seconds=3600)
        second = SessionController(three_question_quiz, "learner-1", port, settings=settings)
        attempt = second.open()

        assert second.resumed is True
        assert attempt.cursor == 1
        assert attempt.state.attempt_number == 1

        second.next()
        second.answer(3)
        outcome = second.next()
        second.close()

        assert outcome.score.percentage == 100

    def test_two_sessions_on_one_attempt(self, backend, three_question_quiz, settings):
        """The session with the older view cannot overwrite the newer record."""
        key = ProgressKey("learner-1", three_question_quiz.id)
        tab_a = SessionController(three_question_quiz, "learner-1", ProgressPort(backend, key), settings=settings)
        tab_a.open()

        tab_b = SessionController(three_question_quiz, "learner-1", ProgressPort(backend, key), settings=settings)
        tab_b.open()

        tab_a.answer(2)
        tab_b.answer(0)

        assert tab_b.save_failed is True
        assert backend.load(key).captured_answers == {"q1": 2}
