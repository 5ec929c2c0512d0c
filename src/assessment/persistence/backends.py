"""
Storage backends for progress records.

All backends are plain key-value stores keyed by (learner_id, quiz_id). They
raise PersistenceError on I/O failure and StaleRecordError when a versioned
write finds a newer record than the writer last saw (two tabs writing the
same attempt).

- InMemoryProgressBackend: tests and embedding
- JsonFileProgressBackend: one JSON file per key under a directory
- SqliteProgressBackend: one row per key in a local SQLite database
"""

from __future__ import annotations

import json
import os
import re
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from loguru import logger
from pydantic import ValidationError

from src.assessment.errors import PersistenceError, StaleRecordError
from src.assessment.models import PersistedProgressRecord


@dataclass(frozen=True)
class ProgressKey:
    """Storage key for one learner's progress on one quiz."""

    learner_id: str
    quiz_id: str

    def __str__(self) -> str:
        return f"{self.learner_id}:{self.quiz_id}"

    @property
    def slug(self) -> str:
        """Filesystem-safe name."""
        return re.sub(r"[^A-Za-z0-9_.-]", "_", f"{self.learner_id}__{self.quiz_id}")


class ProgressBackend(Protocol):
    """Outbound storage port."""

    def load(self, key: ProgressKey) -> Optional[PersistedProgressRecord]:
        ...

    def save(
        self,
        key: ProgressKey,
        record: PersistedProgressRecord,
        expected_version: Optional[int] = None,
    ) -> None:
        ...

    def delete(self, key: ProgressKey) -> None:
        ...


def _check_version(key: ProgressKey, current: Optional[int], expected: Optional[int]) -> None:
    if expected is None:
        return
    if (current or 0) != expected:
        raise StaleRecordError(str(key), expected, current)


# =============================================================================
# In-memory
# =============================================================================


class InMemoryProgressBackend:
    """
    Dict-backed store. Records are kept as JSON-mode dumps so callers never
    share mutable state with the store.
    """

    def __init__(self):
        self._records: dict[ProgressKey, dict] = {}
        self._lock = threading.Lock()
        self.write_count = 0

    def load(self, key: ProgressKey) -> Optional[PersistedProgressRecord]:
        with self._lock:
            data = self._records.get(key)
        return None if data is None else PersistedProgressRecord.model_validate(data)

    def save(
        self,
        key: ProgressKey,
        record: PersistedProgressRecord,
        expected_version: Optional[int] = None,
    ) -> None:
        with self._lock:
            current = self._records.get(key)
            _check_version(key, current["version"] if current else None, expected_version)
            self._records[key] = record.model_dump(mode="json")
            self.write_count += 1

    def delete(self, key: ProgressKey) -> None:
        with self._lock:
            self._records.pop(key, None)

    def keys(self) -> list[ProgressKey]:
        with self._lock:
            return list(self._records)


# =============================================================================
# JSON files
# =============================================================================


class JsonFileProgressBackend:
    """
    Stores each record as {slug}.json in a directory.

    Writes go to a temp file first and are moved into place, so a crash
    mid-write leaves the previous record intact.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: ProgressKey) -> Path:
        return self.directory / f"{key.slug}.json"

    def _read(self, key: ProgressKey) -> Optional[PersistedProgressRecord]:
        filepath = self._path(key)
        if not filepath.exists():
            return None
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
            return PersistedProgressRecord.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise PersistenceError(f"Failed to read progress {key}: {e}") from e

    def load(self, key: ProgressKey) -> Optional[PersistedProgressRecord]:
        with self._lock:
            return self._read(key)

    def save(
        self,
        key: ProgressKey,
        record: PersistedProgressRecord,
        expected_version: Optional[int] = None,
    ) -> None:
        filepath = self._path(key)
        tmp_path = filepath.with_suffix(".json.tmp")

        with self._lock:
            if expected_version is not None:
                current = self._read(key)
                _check_version(key, current.version if current else None, expected_version)
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    f.write(record.model_dump_json(indent=2))
                os.replace(tmp_path, filepath)
            except OSError as e:
                raise PersistenceError(f"Failed to write progress {key}: {e}") from e

        logger.debug("Progress {} written to {}", key, filepath)

    def delete(self, key: ProgressKey) -> None:
        with self._lock:
            try:
                self._path(key).unlink(missing_ok=True)
            except OSError as e:
                raise PersistenceError(f"Failed to delete progress {key}: {e}") from e

    def list_keys(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))


# =============================================================================
# SQLite
# =============================================================================


class SqliteProgressBackend:
    """
    SQLite-backed store. One row per (learner_id, quiz_id) with the record
    serialized as JSON; the version is mirrored into its own column and
    checked under the connection lock before the upsert.
    """

    DEFAULT_DB_PATH = Path.home() / ".quizflow" / "progress.db"

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or self.DEFAULT_DB_PATH
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._init_schema()

        logger.info(f"SqliteProgressBackend initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            # The debounce timer writes from its own thread
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        try:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS progress_records (
                    learner_id TEXT NOT NULL,
                    quiz_id TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    saved_at TEXT,
                    payload TEXT NOT NULL,
                    PRIMARY KEY (learner_id, quiz_id)
                )
            """)
            self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialize {self.db_path}: {e}") from e

    def load(self, key: ProgressKey) -> Optional[PersistedProgressRecord]:
        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT payload FROM progress_records WHERE learner_id = ? AND quiz_id = ?",
                    (key.learner_id, key.quiz_id),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read progress {key}: {e}") from e

        if row is None:
            return None
        try:
            return PersistedProgressRecord.model_validate_json(row["payload"])
        except ValidationError as e:
            raise PersistenceError(f"Corrupt progress record {key}: {e}") from e

    def save(
        self,
        key: ProgressKey,
        record: PersistedProgressRecord,
        expected_version: Optional[int] = None,
    ) -> None:
        payload = record.model_dump_json()
        saved_at = record.saved_at.isoformat() if record.saved_at else None

        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT version FROM progress_records WHERE learner_id = ? AND quiz_id = ?",
                    (key.learner_id, key.quiz_id),
                ).fetchone()
                _check_version(key, row["version"] if row else None, expected_version)

                self.conn.execute(
                    """
                    INSERT INTO progress_records (learner_id, quiz_id, version, saved_at, payload)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(learner_id, quiz_id) DO UPDATE SET
                        version = excluded.version,
                        saved_at = excluded.saved_at,
                        payload = excluded.payload
                    """,
                    (key.learner_id, key.quiz_id, record.version, saved_at, payload),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write progress {key}: {e}") from e

    def delete(self, key: ProgressKey) -> None:
        try:
            with self._lock:
                self.conn.execute(
                    "DELETE FROM progress_records WHERE learner_id = ? AND quiz_id = ?",
                    (key.learner_id, key.quiz_id),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete progress {key}: {e}") from e

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
