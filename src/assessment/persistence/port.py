"""
Progress Persistence Port.

Owns WHEN progress is written. Callers describe what changed with
request_save(); the port either writes through at once (immediate mode) or
buffers the change and flushes it on a timer (debounced mode). Either way it
also flushes whenever the host reports an interruption, because a timer
cannot be trusted to fire before a closing tab or exiting process.

Usage:
    port = ProgressPort(backend, ProgressKey("learner-1", "quiz-1"),
                        mode=SaveMode.DEBOUNCED, hooks=hooks)
    port.start()
    port.request_save({"cursor": 2, "captured_answers": {"q2": 1}})
    ...
    port.close()
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from loguru import logger

from src.assessment.errors import PersistenceError
from src.assessment.models import PersistedProgressRecord, utcnow
from src.assessment.persistence.backends import ProgressBackend, ProgressKey
from src.assessment.persistence.lifecycle import InterruptSignal, LifecycleHooks
from src.assessment.persistence.merge import merge_partial, merge_progress, validate_partial


class SaveMode(str, Enum):
    """Write policy, chosen by the caller."""
    IMMEDIATE = "immediate"
    DEBOUNCED = "debounced"


class FlushReason(str, Enum):
    TIMER = "timer"
    HIDDEN = "hidden"
    UNLOAD = "unload"
    MANUAL = "manual"
    STOP = "stop"


@dataclass
class SaveStatus:
    """Side-channel save status for "saved / not saved" indicators."""

    last_saved_at: datetime | None = None
    last_error: str | None = None
    pending: bool = False
    writes: int = 0
    failures: int = 0
    is_flushing: bool = False
    is_running: bool = False

    @property
    def healthy(self) -> bool:
        return self.last_error is None


class ProgressPort:
    """
    Merges partial progress into the last-known record and decides when to
    write it.

    Concurrency: the debounce timer runs on a background thread. A single
    write lock ensures only one write is in flight; a timer flush that finds
    it taken is skipped rather than queued, while interruption flushes wait
    for it and then write whatever is still pending. on_status is called
    after the write lock is released, so it may request another save.
    """

    def __init__(
        self,
        backend: ProgressBackend,
        key: ProgressKey,
        mode: SaveMode = SaveMode.IMMEDIATE,
        flush_interval_seconds: float = 30.0,
        hooks: Optional[LifecycleHooks] = None,
        on_status: Optional[Callable[[SaveStatus], None]] = None,
        clock: Callable[[], datetime] = utcnow,
        version_check: bool = True,
    ):
        self.backend = backend
        self.key = key
        self.mode = SaveMode(mode)
        self.flush_interval_seconds = flush_interval_seconds
        self.on_status = on_status
        self.version_check = version_check
        self._clock = clock

        self._baseline: Optional[PersistedProgressRecord] = None
        self._pending: dict[str, Any] = {}
        self._status = SaveStatus()

        self._lock = threading.RLock()  # guards _pending, _baseline, _status
        self._write_lock = threading.Lock()  # the single in-flight write
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

        self._unregister_interrupt: Callable[[], None] | None = None
        if hooks is not None:
            self._unregister_interrupt = hooks.on_interrupt(self._handle_interrupt)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def status(self) -> SaveStatus:
        with self._lock:
            return replace(self._status)

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    @property
    def record(self) -> Optional[PersistedProgressRecord]:
        """Last-known record with any unsaved changes applied."""
        with self._lock:
            if self._baseline is None and not self._pending:
                return None
            return merge_progress(self._baseline, self._pending, self.key.learner_id, self.key.quiz_id)

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load(self) -> Optional[PersistedProgressRecord]:
        """
        Read the stored record and make it the merge baseline.

        Unsaved changes stay buffered on top of it.

        Raises:
            PersistenceError: if the backend cannot be read
        """
        record = self.backend.load(self.key)
        with self._lock:
            self._baseline = record
        logger.debug("Loaded progress {}: {}", self.key, "found" if record else "none")
        return record

    def request_save(self, partial: Mapping[str, Any], immediate: bool = False) -> None:
        """
        Ask for a partial state to be persisted.

        Args:
            partial: Field name -> value; map fields merge key-wise
            immediate: Write through now even in debounced mode

        Raises:
            ValueError: unknown or port-owned field names
            PersistenceError: an immediate write failed; the change stays
                buffered and goes out with the next flush
        """
        validate_partial(partial)

        if self.mode == SaveMode.IMMEDIATE or immediate:
            try:
                with self._write_lock:
                    with self._lock:
                        combined = merge_partial(self._pending, partial)
                        self._pending = {}
                    self._write_locked(combined)
            finally:
                self._notify()
            return

        with self._lock:
            self._pending = merge_partial(self._pending, partial)
            self._status.pending = True

    def add_time_spent(self, seconds: int) -> None:
        """Accumulate time-on-task; saved under the current policy."""
        with self._lock:
            if "time_spent_seconds" in self._pending:
                current = self._pending["time_spent_seconds"]
            else:
                current = self._baseline.time_spent_seconds if self._baseline else 0
        self.request_save({"time_spent_seconds": current + max(0, int(seconds))})

    def flush(self, reason: FlushReason = FlushReason.MANUAL, wait: bool = True) -> bool:
        """
        Write the pending buffer if there is one.

        Failures are reported through status, never raised.

        Args:
            reason: For logging
            wait: If False, skip when another write is in flight

        Returns:
            True if a write happened and succeeded
        """
        if not self._write_lock.acquire(blocking=wait):
            logger.debug("Flush ({}) skipped - write already in flight", reason.value)
            return False

        attempted = False
        try:
            with self._lock:
                if not self._pending:
                    return False
                partial = self._pending
                self._pending = {}
                self._status.is_flushing = True

            logger.debug("Flushing progress {} ({})", self.key, reason.value)
            attempted = True
            try:
                self._write_locked(partial)
            except PersistenceError:
                return False
            return True
        finally:
            with self._lock:
                self._status.is_flushing = False
            self._write_lock.release()
            if attempted:
                self._notify()

    def _write_locked(self, partial: Mapping[str, Any]) -> None:
        """Merge and write. Caller holds _write_lock."""
        with self._lock:
            baseline = self._baseline

        base_version = baseline.version if baseline else 0
        record = merge_progress(baseline, partial, self.key.learner_id, self.key.quiz_id)
        record = record.model_copy(update={"saved_at": self._clock(), "version": base_version + 1})

        try:
            self.backend.save(
                self.key,
                record,
                expected_version=base_version if self.version_check else None,
            )
        except PersistenceError as e:
            with self._lock:
                # Keep the change; newer buffered fields still win
                self._pending = merge_partial(partial, self._pending)
                self._status.pending = True
                self._status.failures += 1
                self._status.last_error = str(e)
            logger.warning("Progress save failed for {}: {}", self.key, e)
            raise

        with self._lock:
            self._baseline = record
            self._status.pending = bool(self._pending)
            self._status.writes += 1
            self._status.last_saved_at = record.saved_at
            self._status.last_error = None
        logger.debug("Progress {} saved (version {})", self.key, record.version)

    def _notify(self) -> None:
        if self.on_status is None:
            return
        try:
            self.on_status(self.status)
        except Exception:
            logger.exception("Save status callback failed")

    # ------------------------------------------------------------------
    # Interruptions and timer
    # ------------------------------------------------------------------

    def _handle_interrupt(self, signal: InterruptSignal) -> None:
        reason = FlushReason.HIDDEN if signal == InterruptSignal.HIDDEN else FlushReason.UNLOAD
        self.flush(reason, wait=True)

    def start(self) -> bool:
        """
        Start the periodic flush timer (debounced mode only).

        Returns:
            True if the timer is running
        """
        if self.mode != SaveMode.DEBOUNCED:
            return False
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Progress flush timer already running")
            return True

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._flush_loop,
            name=f"progress-flush-{self.key.slug}",
            daemon=True,
        )
        self._thread.start()
        with self._lock:
            self._status.is_running = True

        logger.info("Progress flush timer started (interval: {}s)", self.flush_interval_seconds)
        return True

    def _flush_loop(self) -> None:
        while not self._stop_event.is_set():
            if self._stop_event.wait(timeout=self.flush_interval_seconds):
                break
            self.flush(FlushReason.TIMER, wait=False)

    def _cancel_timer(self) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)
        self._thread = None
        with self._lock:
            self._status.is_running = False

    def stop(self) -> None:
        """Stop the timer and flush what is left."""
        self._cancel_timer()
        self.flush(FlushReason.STOP)

    def close(self) -> None:
        """stop() and detach from lifecycle hooks."""
        self.stop()
        if self._unregister_interrupt is not None:
            self._unregister_interrupt()
            self._unregister_interrupt = None

    def clear(self) -> None:
        """
        Delete the stored record, drop unsaved changes and cancel the timer.

        Raises:
            PersistenceError: if the backend delete fails
        """
        self._cancel_timer()
        with self._write_lock:
            with self._lock:
                self._pending = {}
                self._baseline = None
                self._status.pending = False
            self.backend.delete(self.key)
        logger.info("Progress {} cleared", self.key)
