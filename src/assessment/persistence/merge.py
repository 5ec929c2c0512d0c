"""
Merge rules for progress records.

Top-level fields are replaced wholesale. The three map fields below are
merged key by key so that saving one answer never drops another. Applying
the same partial twice gives the same result as applying it once.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from src.assessment.models import PersistedProgressRecord

MAP_FIELDS = frozenset({"captured_answers", "lesson_progress", "video_progress"})

# Owned by the port, never by callers
PORT_FIELDS = frozenset({"version", "saved_at"})

RECORD_FIELDS = frozenset(PersistedProgressRecord.model_fields)


def validate_partial(partial: Mapping[str, Any]) -> None:
    """Reject unknown or port-owned field names."""
    unknown = set(partial) - RECORD_FIELDS
    if unknown:
        raise ValueError(f"Unknown progress fields: {sorted(unknown)}")
    reserved = set(partial) & PORT_FIELDS
    if reserved:
        raise ValueError(f"Fields managed by the progress port: {sorted(reserved)}")
    for name in MAP_FIELDS & set(partial):
        if not isinstance(partial[name], Mapping):
            raise ValueError(f"{name} must be a mapping")


def merge_partial(base: Mapping[str, Any], partial: Mapping[str, Any]) -> dict[str, Any]:
    """Merge partial onto base, returning a new dict."""
    merged = dict(base)
    for name, value in partial.items():
        if name in MAP_FIELDS:
            current = merged.get(name) or {}
            merged[name] = {**current, **value}
        else:
            merged[name] = value
    return merged


def merge_progress(
    record: Optional[PersistedProgressRecord],
    partial: Mapping[str, Any],
    learner_id: str,
    quiz_id: str,
) -> PersistedProgressRecord:
    """Apply a partial to a record, creating the record if there is none yet."""
    if record is None:
        record = PersistedProgressRecord(learner_id=learner_id, quiz_id=quiz_id)
    merged = merge_partial(record.model_dump(), partial)
    return PersistedProgressRecord.model_validate(merged)
