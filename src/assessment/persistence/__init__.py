"""
Progress persistence: storage backends, merge rules and the save-scheduling port.
"""

from .backends import (
    InMemoryProgressBackend,
    JsonFileProgressBackend,
    ProgressBackend,
    ProgressKey,
    SqliteProgressBackend,
)
from .lifecycle import InterruptSignal, LifecycleHooks
from .merge import MAP_FIELDS, merge_partial, merge_progress, validate_partial
from .port import FlushReason, ProgressPort, SaveMode, SaveStatus

__all__ = [
    "FlushReason",
    "InMemoryProgressBackend",
    "InterruptSignal",
    "JsonFileProgressBackend",
    "LifecycleHooks",
    "MAP_FIELDS",
    "ProgressBackend",
    "ProgressKey",
    "ProgressPort",
    "SaveMode",
    "SaveStatus",
    "SqliteProgressBackend",
    "merge_partial",
    "merge_progress",
    "validate_partial",
]
