from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from intern_ids import new_task_id, now_iso
from intern_store import ListFilters
from task_codec import decode_tasks, encode_tasks, summarize
from task_rules import (
    InternError,
    NotFound,
    ValidationError,
    is_blank,
    normalize_task,
    normalize_tasks,
    validate_status,
)


@dataclass(frozen=True)
class Result:
    ok: bool
    data: Any = None
    total: int | None = None
    message: str = ""
    error: InternError | None = None

    @property
    def error_code(self) -> str:
        return self.error.code if self.error else ""

    @property
    def error_message(self) -> str:
        return self.error.message if self.error else ""


def _ok(data: Any = None, *, total: int | None = None, message: str = "") -> Result:
    return Result(ok=True, data=data, total=total, message=message)


def _string_list(value: Any, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list")
    return [str(v) for v in value]


def _require_object(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError("request body must be a JSON object")
    return payload


def present(record: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(record)
    out["tasksAssigned"] = decode_tasks(record.get("tasksAssigned"))
    return out


class InternService:
    """Intern CRUD plus task operations over an injected record store.

    Public methods never raise ``InternError``; failures come back as a
    ``Result`` with ``ok=False``. Validation runs before any store write.

    ``update_task_status`` and ``add_task`` read the intern, change the task
    list locally and write the whole list back. The store offers no revision
    check, so two concurrent calls on the same intern can lose one update.
    """

    def __init__(
        self,
        store: Any,
        *,
        clock: Callable[[], str] = now_iso,
        new_id: Callable[[], str] = new_task_id,
    ) -> None:
        self.store = store
        self.clock = clock
        self.new_id = new_id

    def _guard(self, op: Callable[[], Result]) -> Result:
        try:
            return op()
        except InternError as e:
            return Result(ok=False, error=e)

    # ---- intern records ----
    def list_interns(self, filters: ListFilters | None = None) -> Result:
        def op() -> Result:
            records, total = self.store.list_records(filters or ListFilters())
            return _ok([present(r) for r in records], total=total)

        return self._guard(op)

    def get_intern(self, intern_id: str) -> Result:
        return self._guard(lambda: _ok(present(self.store.get_record(intern_id))))

    def create_intern(self, payload: Any, intern_id: str | None = None) -> Result:
        def op() -> Result:
            body = _require_object(payload)
            name = body.get("internName")
            batch = body.get("batch")
            if is_blank(name) or is_blank(batch):
                raise ValidationError("internName and batch are required")
            now = self.clock()
            tasks = normalize_tasks(body.get("tasksAssigned") or [], now, self.new_id)
            fields = {
                "internName": str(name),
                "batch": str(batch),
                "roles": _string_list(body.get("roles"), "roles"),
                "currentProjects": _string_list(body.get("currentProjects"), "currentProjects"),
                "tasksAssigned": encode_tasks(tasks),
            }
            record_id = str(body.get("documentId") or intern_id or "").strip() or None
            record = self.store.create_record(record_id, fields)
            return _ok(present(record), message="Intern created successfully")

        return self._guard(op)

    def update_intern(self, intern_id: str, payload: Any) -> Result:
        def op() -> Result:
            body = _require_object(payload)
            fields: dict[str, Any] = {}
            for key in ("internName", "batch"):
                if not is_blank(body.get(key)):
                    fields[key] = str(body[key])
            for key in ("roles", "currentProjects"):
                if body.get(key) is not None:
                    fields[key] = _string_list(body[key], key)
            if body.get("tasksAssigned") is not None:
                tasks = normalize_tasks(body["tasksAssigned"], self.clock(), self.new_id)
                fields["tasksAssigned"] = encode_tasks(tasks)
            record = self.store.update_record(intern_id, fields)
            return _ok(present(record), message="Intern updated successfully")

        return self._guard(op)

    def delete_intern(self, intern_id: str) -> Result:
        def op() -> Result:
            self.store.delete_record(intern_id)
            return _ok(message="Intern deleted successfully")

        return self._guard(op)

    # ---- aggregates ----
    def count_interns(self) -> Result:
        def op() -> Result:
            _records, total = self.store.list_records(ListFilters(limit=1))
            return _ok({"count": total}, total=total)

        return self._guard(op)

    def task_summary(self) -> Result:
        def op() -> Result:
            records, _total = self.store.list_records(ListFilters())
            return _ok(summarize(records))

        return self._guard(op)

    # ---- single-task conveniences ----
    def update_task_status(self, intern_id: str, task_id: str, new_status: Any) -> Result:
        def op() -> Result:
            status = validate_status(new_status)
            record = self.store.get_record(intern_id)
            tasks = decode_tasks(record.get("tasksAssigned"))
            for i, task in enumerate(tasks):
                if isinstance(task, Mapping) and task.get("id") == task_id:
                    break
            else:
                raise NotFound("task not found")
            updated = dict(tasks[i])
            updated["status"] = status
            updated["updatedAt"] = self.clock()
            tasks[i] = updated
            saved = self.store.update_record(intern_id, {"tasksAssigned": encode_tasks(tasks)})
            return _ok(present(saved), message="Task status updated successfully")

        return self._guard(op)

    def add_task(self, intern_id: str, raw_task: Any) -> Result:
        def op() -> Result:
            task = normalize_task(raw_task, self.clock(), self.new_id)
            record = self.store.get_record(intern_id)
            tasks = decode_tasks(record.get("tasksAssigned"))
            if any(isinstance(t, Mapping) and t.get("id") == task["id"] for t in tasks):
                raise ValidationError(f"duplicate task id: {task['id']}")
            tasks.append(task)
            saved = self.store.update_record(intern_id, {"tasksAssigned": encode_tasks(tasks)})
            return _ok(present(saved), message="Task added successfully")

        return self._guard(op)
