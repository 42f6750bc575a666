from __future__ import annotations

from typing import Any, Callable, Mapping

STATUS_OPEN = "open"
STATUS_COMPLETED = "completed"
STATUS_TODO = "todo"
STATUS_WORKING = "working"
STATUS_DEFERRED = "deferred"
STATUS_PENDING = "pending"

# Canonical order; error messages and summaries enumerate statuses this way.
TASK_STATUSES = (
    STATUS_OPEN,
    STATUS_COMPLETED,
    STATUS_TODO,
    STATUS_WORKING,
    STATUS_DEFERRED,
    STATUS_PENDING,
)
VALID_STATUSES = frozenset(TASK_STATUSES)

INVALID_STATUS_MESSAGE = f"invalid status: {', '.join(TASK_STATUSES)}"


class InternError(Exception):
    code = "INTERN_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InternError):
    code = "VALIDATION_ERROR"


class NotFound(InternError):
    code = "NOT_FOUND"


class StorageError(InternError):
    code = "STORAGE_ERROR"


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def validate_status(value: Any) -> str:
    if is_blank(value):
        raise ValidationError("status required")
    if not isinstance(value, str) or value not in VALID_STATUSES:
        raise ValidationError(INVALID_STATUS_MESSAGE)
    return value


def normalize_task(raw: Any, now: str, new_id: Callable[[], str]) -> dict[str, Any]:
    """Return the canonical task record for a loosely-typed task payload.

    ``now`` becomes ``updatedAt`` on every pass, and ``assignedAt`` when the
    payload does not carry one. ``new_id`` is only called after validation
    succeeds and only when the payload has no ``id``.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("task must be an object")
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("title required")
    status = validate_status(raw.get("status"))

    task_id = raw.get("id")
    if is_blank(task_id):
        task_id = new_id()
    description = raw.get("description")
    assigned_at = raw.get("assignedAt")
    return {
        "id": str(task_id),
        "title": title,
        "description": str(description) if description else "",
        "status": status,
        "assignedAt": str(assigned_at) if assigned_at else now,
        "updatedAt": now,
    }


def normalize_tasks(raw_tasks: Any, now: str, new_id: Callable[[], str]) -> list[dict[str, Any]]:
    if not isinstance(raw_tasks, list):
        raise ValidationError("tasksAssigned must be a list")
    out: list[dict[str, Any]] = []
    seen: set[str] = set()
    for raw in raw_tasks:
        task = normalize_task(raw, now, new_id)
        if task["id"] in seen:
            raise ValidationError(f"duplicate task id: {task['id']}")
        seen.add(task["id"])
        out.append(task)
    return out
