"""
Unit tests for progress storage backends.

Every backend gets the same contract checks; the file-based ones also get
their own failure cases.
"""

import pytest

from src.assessment.errors import PersistenceError, StaleRecordError
from src.assessment.models import AttemptStatus, PersistedProgressRecord
from src.assessment.persistence import (
    InMemoryProgressBackend,
    JsonFileProgressBackend,
    ProgressKey,
    SqliteProgressBackend,
)


@pytest.fixture(params=["memory", "json", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        yield InMemoryProgressBackend()
    elif request.param == "json":
        yield JsonFileProgressBackend(tmp_path / "progress")
    else:
        store = SqliteProgressBackend(tmp_path / "progress.db")
        yield store
        store.close()


@pytest.fixture
def record():
    return PersistedProgressRecord(
        learner_id="learner-1",
        quiz_id="osi-basics",
        attempt_number=2,
        cursor=1,
        captured_answers={"q1": 2, "q2": [0, 2]},
        video_progress={"intro": 42.5},
        lesson_progress={"module-1": ["lesson-1", "lesson-2"]},
        attempt_history=[{"attempt_number": 1, "score": 67, "passed": False}],
        version=1,
    )


class TestBackendContract:
    """Behaviour shared by all backends."""

    def test_load_missing_returns_none(self, backend, progress_key):
        assert backend.load(progress_key) is None

    def test_save_then_load(self, backend, progress_key, record):
        backend.save(progress_key, record)
        loaded = backend.load(progress_key)

        assert loaded.captured_answers == {"q1": 2, "q2": [0, 2]}
        assert loaded.video_progress == {"intro": 42.5}
        assert loaded.lesson_progress == {"module-1": ["lesson-1", "lesson-2"]}
        assert loaded.attempt_history[0]["score"] == 67
        assert loaded.status == AttemptStatus.IN_PROGRESS
        assert loaded.completed_attempts == 1

    def test_save_overwrites(self, backend, progress_key, record):
        backend.save(progress_key, record)
        backend.save(progress_key, record.model_copy(update={"cursor": 2, "version": 2}))
        assert backend.load(progress_key).cursor == 2

    def test_delete(self, backend, progress_key, record):
        backend.save(progress_key, record)
        backend.delete(progress_key)
        assert backend.load(progress_key) is None

    def test_delete_missing_is_ok(self, backend, progress_key):
        backend.delete(progress_key)

    def test_keys_are_isolated(self, backend, record):
        backend.save(ProgressKey("learner-1", "osi-basics"), record)
        assert backend.load(ProgressKey("learner-2", "osi-basics")) is None
        assert backend.load(ProgressKey("learner-1", "other-quiz")) is None

    def test_expected_version_matches(self, backend, progress_key, record):
        backend.save(progress_key, record, expected_version=0)
        backend.save(progress_key, record.model_copy(update={"version": 2}), expected_version=1)
        assert backend.load(progress_key).version == 2

    def test_stale_version_rejected(self, backend, progress_key, record):
        backend.save(progress_key, record)
        with pytest.raises(StaleRecordError) as exc_info:
            backend.save(progress_key, record.model_copy(update={"cursor": 0}), expected_version=0)

        assert exc_info.value.actual_version == 1
        assert backend.load(progress_key).cursor == 1


class TestProgressKey:
    def test_str(self):
        assert str(ProgressKey("a", "b")) == "a:b"

    def test_slug_is_filesystem_safe(self):
        assert ProgressKey("user@example.com", "quiz/1").slug == "user_example.com__quiz_1"


class TestJsonFileBackend:
    def test_writes_one_file_per_key(self, tmp_path, progress_key, record):
        backend = JsonFileProgressBackend(tmp_path)
        backend.save(progress_key, record)

        assert backend.list_keys() == [progress_key.slug]
        assert not list(tmp_path.glob("*.tmp"))

    def test_corrupt_file_raises_persistence_error(self, tmp_path, progress_key):
        backend = JsonFileProgressBackend(tmp_path)
        (tmp_path / f"{progress_key.slug}.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceError):
            backend.load(progress_key)


class TestSqliteBackend:
    def test_survives_reopen(self, tmp_path, progress_key, record):
        db_path = tmp_path / "progress.db"
        first = SqliteProgressBackend(db_path)
        first.save(progress_key, record)
        first.close()

        second = SqliteProgressBackend(db_path)
        try:
            assert second.load(progress_key).cursor == 1
        finally:
            second.close()

    def test_in_memory_database(self, progress_key, record):
        backend = SqliteProgressBackend(":memory:")
        backend.save(progress_key, record)
        assert backend.load(progress_key).attempt_number == 2
        backend.close()
