"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (engine + storage end to end)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Deterministic clock; advance() moves it forward."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    from config import Settings

    return Settings(
        _env_file=None,
        progress_save_mode="immediate",
        retry_xp_multiplier=0.8,
        remediation_max_suggestions=None,
    )


@pytest.fixture
def three_question_quiz_data():
    """Raw authoring data: three single-choice questions, pass mark 70."""
    return {
        "id": "osi-basics",
        "title": "OSI Basics",
        "passingScore": 70,
        "maxAttempts": 3,
        "questions": [
            {
                "id": "q1",
                "kind": "single-choice",
                "question": "Which layer handles routing?",
                "options": ["Physical", "Data Link", "Network", "Transport"],
                "correctAnswer": 2,
                "topic": "layer-3",
                "xpReward": 10,
            },
            {
                "id": "q2",
                "kind": "single-choice",
                "question": "Which layer uses MAC addresses?",
                "options": ["Physical", "Data Link", "Network", "Transport"],
                "correctAnswer": 1,
                "topic": "layer-2",
                "xpReward": 10,
            },
            {
                "id": "q3",
                "kind": "single-choice",
                "question": "Which layer provides end-to-end reliability?",
                "options": ["Physical", "Data Link", "Network", "Transport"],
                "correctAnswer": 3,
                "topic": "layer-4",
                "xpReward": 10,
            },
        ],
    }


@pytest.fixture
def three_question_quiz(three_question_quiz_data):
    from src.assessment.models import QuizDefinition

    return QuizDefinition.model_validate(three_question_quiz_data)


@pytest.fixture
def scenario_question_data():
    """Two-step scenario; perfect path is s1:a -> s2:a (score 10)."""
    return {
        "id": "incident",
        "kind": "scenario-path",
        "question": "A user reports no connectivity.",
        "startStepId": "s1",
        "perfectScore": 10,
        "steps": [
            {
                "id": "s1",
                "situation": "Where do you start?",
                "options": [
                    {"id": "a", "text": "Check the cable", "score": 5, "nextStepId": "s2"},
                    {"id": "b", "text": "Reinstall the OS", "score": 0, "nextStepId": "s2"},
                ],
            },
            {
                "id": "s2",
                "situation": "The link light is off.",
                "options": [
                    {"id": "a", "text": "Swap the cable", "score": 5},
                    {"id": "b", "text": "Escalate", "score": 2},
                ],
            },
        ],
    }


@pytest.fixture
def mixed_quiz(scenario_question_data):
    """One question of every kind."""
    from src.assessment.models import QuizDefinition

    return QuizDefinition.model_validate(
        {
            "id": "mixed",
            "title": "Mixed",
            "passing_score": 70,
            "questions": [
                {
                    "id": "single",
                    "kind": "single-choice",
                    "options": ["a", "b", "c"],
                    "correct_answer": 0,
                },
                {
                    "id": "multi",
                    "kind": "multi-select",
                    "options": ["a", "b", "c", "d"],
                    "correct_answer": [0, 2],
                },
                {
                    "id": "order",
                    "kind": "ordering",
                    "options": ["first", "second", "third"],
                    "correct_answer": [0, 1, 2],
                },
                scenario_question_data,
            ],
        }
    )


@pytest.fixture
def remediation_data():
    """Mapping keyed by question id and by topic."""
    return {
        "q1": {
            "resourceId": "video-routing",
            "type": "video-segment",
            "title": "Routing in 3 minutes",
            "startTime": 120,
            "endTime": 300,
        },
        "layer-2": {
            "resourceId": "article-switching",
            "type": "text-section",
            "title": "How switches learn MAC addresses",
            "estimatedMinutes": 5,
        },
    }


@pytest.fixture
def memory_backend():
    from src.assessment.persistence import InMemoryProgressBackend

    return InMemoryProgressBackend()


@pytest.fixture
def progress_key():
    from src.assessment.persistence import ProgressKey

    return ProgressKey("learner-1", "osi-basics")
