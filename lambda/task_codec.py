from __future__ import annotations

import json
from enum import Enum
from typing import Any, Iterable, Mapping

from task_rules import TASK_STATUSES, VALID_STATUSES


class StoredShape(str, Enum):
    EMPTY = "empty"
    LEGACY = "legacy"  # whole list as one JSON string
    ITEMS = "items"  # list of task objects and/or per-item JSON strings
    UNKNOWN = "unknown"


def stored_shape(stored: Any) -> StoredShape:
    if stored is None:
        return StoredShape.EMPTY
    if isinstance(stored, str):
        return StoredShape.LEGACY
    if isinstance(stored, (list, tuple)):
        return StoredShape.ITEMS
    return StoredShape.UNKNOWN


def encode_tasks(tasks: Iterable[Any]) -> list[Any]:
    """Encode tasks for storage.

    Always emits the native shape: a list of plain objects. Elements that are
    not mappings are opaque values decoded from older records and are written
    back untouched.
    """
    out: list[Any] = []
    for task in tasks:
        if isinstance(task, Mapping):
            out.append(dict(task))
        else:
            out.append(task)
    return out


def _decode_item(item: Any) -> Any:
    if not isinstance(item, str):
        return item
    try:
        parsed = json.loads(item)
    except ValueError:
        return item
    return parsed if isinstance(parsed, dict) else item


def _decode_legacy(stored: str) -> list[Any]:
    try:
        parsed = json.loads(stored)
    except ValueError:
        return []
    if not isinstance(parsed, list):
        return []
    return [_decode_item(item) for item in parsed]


def decode_tasks(stored: Any) -> list[Any]:
    """Decode any stored ``tasksAssigned`` value into a list. Never raises."""
    shape = stored_shape(stored)
    if shape is StoredShape.LEGACY:
        return _decode_legacy(stored)
    if shape is StoredShape.ITEMS:
        return [_decode_item(item) for item in stored]
    return []


def empty_counts() -> dict[str, int]:
    return {status: 0 for status in TASK_STATUSES}


def summarize(records: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    counts = empty_counts()
    total = 0
    for record in records:
        if not isinstance(record, Mapping):
            continue
        for task in decode_tasks(record.get("tasksAssigned")):
            if not isinstance(task, Mapping):
                continue
            status = task.get("status")
            if isinstance(status, str) and status in VALID_STATUSES:
                counts[status] += 1
                total += 1
    return {"counts": counts, "total": total}
