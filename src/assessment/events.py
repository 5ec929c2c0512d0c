"""
Completion events.

EventBus is a plain publish/subscribe channel. It is constructed explicitly
and handed to the session controller, so every test (and every tenant, if the
host wants) gets an isolated instance.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, TypeVar

from loguru import logger

from src.assessment.models import utcnow


@dataclass(frozen=True)
class QuizCompleted:
    """Emitted once per passing submission. XP and notification systems listen for it."""

    learner_id: str
    quiz_id: str
    score: int
    xp_earned: int
    attempt_number: int
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


E = TypeVar("E")
Handler = Callable[[Any], None]


class EventBus:
    """
    Synchronous in-process pub/sub keyed by event class.

    Usage:
        bus = EventBus()
        unsubscribe = bus.subscribe(QuizCompleted, award_xp)
        bus.publish(QuizCompleted(...))
    """

    def __init__(self):
        self._handlers: dict[type, list[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """Register a handler. Returns a function that removes it."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, event: Any) -> int:
        """
        Deliver an event to its subscribers in registration order.

        A handler that raises is logged and skipped; the rest still run.

        Returns:
            Number of handlers that ran without error
        """
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception("Handler {} failed for {}", getattr(handler, "__name__", handler), type(event).__name__)
        return delivered

    def handler_count(self, event_type: type) -> int:
        with self._lock:
            return len(self._handlers.get(event_type, []))
