import importlib
import json
import sys
from pathlib import Path

import boto3
from botocore.stub import Stubber

LAMBDA_DIR = str(Path(__file__).resolve().parents[1] / "lambda")

T0 = "2025-08-01T09:00:00.000000Z"
T1 = "2025-08-01T10:00:00.000000Z"


def _load_modules():
    if LAMBDA_DIR not in sys.path:
        sys.path.insert(0, LAMBDA_DIR)
    mods = {}
    for name in ("intern_ids", "task_rules", "task_codec", "intern_store", "intern_service"):
        mods[name] = importlib.reload(importlib.import_module(name))
    return mods["intern_service"], mods["intern_store"]


class RecordingStore:
    """Wraps a memory store and records every call made through it."""

    def __init__(self, inner):
        self.inner = inner
        self.calls: list[tuple] = []

    def __getattr__(self, name):
        target = getattr(self.inner, name)

        def call(*args, **kwargs):
            self.calls.append((name, args))
            return target(*args, **kwargs)

        return call

    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in {"create_record", "update_record", "delete_record"}]


def _intern(intern_id: str, tasks, *, name: str = "Jane Smith", batch: str = "2025-Summer") -> dict:
    return {
        "internId": intern_id,
        "internName": name,
        "batch": batch,
        "roles": ["Backend Developer"],
        "currentProjects": ["API Development"],
        "tasksAssigned": tasks,
        "createdAt": T0,
        "updatedAt": T0,
    }


def _task(task_id: str, status: str) -> dict:
    return {
        "id": task_id,
        "title": f"title {task_id}",
        "description": "",
        "status": status,
        "assignedAt": T0,
        "updatedAt": T0,
    }


def _service(records, *, ids=("gen-1", "gen-2")):
    svc_mod, store_mod = _load_modules()
    pool = list(ids)
    store = RecordingStore(store_mod.MemoryInternStore(records, new_id=lambda: "rec-new", clock=lambda: T1))
    svc = svc_mod.InternService(store, clock=lambda: T1, new_id=lambda: pool.pop(0))
    return svc, store, store_mod


def test_update_task_status_changes_only_the_target_task():
    svc, store, _ = _service([_intern("i1", [_task("t1", "open"), _task("t2", "todo")])])

    result = svc.update_task_status("i1", "t1", "completed")

    assert result.ok
    assert result.message == "Task status updated successfully"
    t1, t2 = result.data["tasksAssigned"]
    assert t1["status"] == "completed"
    assert t1["updatedAt"] == T1
    assert t1["assignedAt"] == T0
    assert t2 == _task("t2", "todo")
    assert len(store.writes()) == 1


def test_update_task_status_upgrades_legacy_records_to_native_shape():
    legacy = json.dumps([_task("t1", "open")])
    svc, store, _ = _service([_intern("i1", legacy)])

    assert svc.update_task_status("i1", "t1", "working").ok

    stored = store.inner.records["i1"]["tasksAssigned"]
    assert isinstance(stored, list)
    assert stored[0]["status"] == "working"


def test_update_task_status_unknown_task_is_not_found_without_write():
    svc, store, _ = _service([_intern("i1", [_task("t1", "open")])])

    result = svc.update_task_status("i1", "missing", "completed")

    assert not result.ok
    assert result.error_code == "NOT_FOUND"
    assert result.error_message == "task not found"
    assert store.writes() == []


def test_update_task_status_unknown_intern_is_not_found():
    svc, store, _ = _service([])

    result = svc.update_task_status("nobody", "t1", "completed")

    assert result.error_code == "NOT_FOUND"
    assert store.writes() == []


def test_update_task_status_invalid_status_never_touches_storage():
    svc, store, _ = _service([_intern("i1", [_task("t1", "open")])])

    result = svc.update_task_status("i1", "t1", "done")

    assert result.error_code == "VALIDATION_ERROR"
    assert result.error_message == "invalid status: open, completed, todo, working, deferred, pending"
    assert store.calls == []


def test_add_task_appends_normalized_task():
    svc, store, _ = _service([_intern("i1", [_task("t1", "open")])])

    result = svc.add_task("i1", {"title": "Write tests", "status": "todo"})

    assert result.ok
    assert result.message == "Task added successfully"
    tasks = result.data["tasksAssigned"]
    assert [t["id"] for t in tasks] == ["t1", "gen-1"]
    assert tasks[1] == {
        "id": "gen-1",
        "title": "Write tests",
        "description": "",
        "status": "todo",
        "assignedAt": T1,
        "updatedAt": T1,
    }


def test_add_task_invalid_task_is_rejected_before_reading():
    svc, store, _ = _service([_intern("i1", [])])

    result = svc.add_task("i1", {"title": "no status"})

    assert result.error_code == "VALIDATION_ERROR"
    assert result.error_message == "status required"
    assert store.calls == []


def test_create_intern_requires_name_and_batch():
    svc, store, _ = _service([])

    result = svc.create_intern({"internName": "Only Name"})

    assert result.error_code == "VALIDATION_ERROR"
    assert result.error_message == "internName and batch are required"
    assert store.calls == []


def test_create_intern_normalizes_tasks_and_honours_document_id():
    svc, store, _ = _service([])

    result = svc.create_intern(
        {
            "documentId": "intern-042",
            "internName": "Alex Chen",
            "batch": "2025-Fall",
            "roles": ["Data Scientist"],
            "tasksAssigned": [{"title": "Data Analysis", "status": "working"}],
        }
    )

    assert result.ok
    assert result.message == "Intern created successfully"
    data = result.data
    assert data["internId"] == "intern-042"
    assert data["currentProjects"] == []
    assert data["createdAt"] == T1
    assert data["tasksAssigned"][0]["id"] == "gen-1"
    assert "documentId" not in store.inner.records["intern-042"]


def test_create_intern_rejects_bad_task_without_writing():
    svc, store, _ = _service([])

    result = svc.create_intern({"internName": "A", "batch": "B", "tasksAssigned": [{"title": "x", "status": "nope"}]})

    assert result.error_code == "VALIDATION_ERROR"
    assert store.writes() == []


def test_create_intern_rejects_non_object_body():
    svc, _store, _ = _service([])
    assert svc.create_intern(["not", "an", "object"]).error_message == "request body must be a JSON object"


def test_update_intern_keeps_fields_not_supplied():
    svc, _store, _ = _service([_intern("i1", [_task("t1", "open")])])

    result = svc.update_intern("i1", {"batch": "2025-Fall", "internName": "  "})

    assert result.ok
    assert result.data["batch"] == "2025-Fall"
    assert result.data["internName"] == "Jane Smith"
    assert result.data["tasksAssigned"][0]["id"] == "t1"
    assert result.data["updatedAt"] == T1


def test_update_intern_replaces_task_list():
    svc, _store, _ = _service([_intern("i1", [_task("t1", "open")])])

    result = svc.update_intern("i1", {"tasksAssigned": [{"id": "t9", "title": "New", "status": "pending"}]})

    assert [t["id"] for t in result.data["tasksAssigned"]] == ["t9"]


def test_update_and_delete_missing_intern_are_not_found():
    svc, _store, _ = _service([])
    assert svc.update_intern("nope", {"batch": "x"}).error_code == "NOT_FOUND"
    assert svc.delete_intern("nope").error_code == "NOT_FOUND"


def test_delete_intern_removes_record():
    svc, store, _ = _service([_intern("i1", [])])

    result = svc.delete_intern("i1")

    assert result.ok
    assert result.message == "Intern deleted successfully"
    assert store.inner.records == {}


def test_list_interns_decodes_tasks_and_reports_total_before_paging():
    _, _, store_mod = _service([])
    records = [
        _intern("i1", json.dumps([_task("t1", "open")]), name="Jane Smith"),
        _intern("i2", [json.dumps(_task("t2", "todo"))], name="John Doe"),
        _intern("i3", None, name="Mike Johnson", batch="2025-Fall"),
    ]
    svc, _store, _ = _service(records)

    result = svc.list_interns(store_mod.ListFilters(batch="2025-Summer", limit=1, sort="internName"))

    assert result.ok
    assert result.total == 2
    assert [r["internId"] for r in result.data] == ["i1"]
    assert result.data[0]["tasksAssigned"] == [_task("t1", "open")]


def test_count_and_summary():
    records = [
        _intern("i1", [_task("t1", "open")]),
        _intern("i2", json.dumps([_task("t2", "completed"), _task("t3", "open")])),
    ]
    svc, _store, _ = _service(records)

    count = svc.count_interns()
    assert count.ok
    assert count.data == {"count": 2}
    assert count.total == 2

    summary = svc.task_summary()
    assert summary.ok
    assert summary.data["counts"]["open"] == 2
    assert summary.data["counts"]["completed"] == 1
    assert summary.data["total"] == 3


def test_store_failures_become_error_results():
    svc_mod, _store_mod = _load_modules()
    import task_rules

    class BrokenStore:
        def list_records(self, _filters):
            raise task_rules.StorageError("table unavailable")

    svc = svc_mod.InternService(BrokenStore())
    result = svc.task_summary()

    assert not result.ok
    assert result.error_code == "STORAGE_ERROR"
    assert result.error_message == "table unavailable"


def test_add_task_rejects_existing_task_id_without_write():
    svc, store, _ = _service([_intern("i1", [_task("t1", "open")])])

    result = svc.add_task("i1", {"id": "t1", "title": "Again", "status": "todo"})

    assert result.error_code == "VALIDATION_ERROR"
    assert result.error_message == "duplicate task id: t1"
    assert store.writes() == []


def test_duplicate_task_ids_in_a_list_are_rejected_without_write():
    svc, store, _ = _service([_intern("i1", [_task("t1", "open")])])
    dupes = [
        {"id": "z", "title": "First", "status": "open"},
        {"id": "z", "title": "Second", "status": "todo"},
    ]

    updated = svc.update_intern("i1", {"tasksAssigned": dupes})
    created = svc.create_intern({"internName": "A", "batch": "B", "tasksAssigned": dupes})

    assert updated.error_message == "duplicate task id: z"
    assert created.error_message == "duplicate task id: z"
    assert store.writes() == []
    assert [t["id"] for t in store.inner.records["i1"]["tasksAssigned"]] == ["t1"]


def test_dynamo_record_with_fractional_number_can_be_updated(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    svc_mod, store_mod = _load_modules()
    table = boto3.resource("dynamodb", region_name="us-east-1").Table("Interns")
    svc = svc_mod.InternService(store_mod.DynamoInternStore(table, clock=lambda: T1), clock=lambda: T1)

    def stored_task(status: str) -> dict:
        return {
            "M": {
                "id": {"S": "t1"},
                "title": {"S": "Estimate work"},
                "status": {"S": status},
                "estimateHours": {"N": "1.5"},
            }
        }

    with Stubber(table.meta.client) as stubber:
        stubber.add_response(
            "get_item",
            {"Item": {"internId": {"S": "i1"}, "tasksAssigned": {"L": [stored_task("open")]}}},
        )
        stubber.add_response(
            "update_item",
            {"Attributes": {"internId": {"S": "i1"}, "tasksAssigned": {"L": [stored_task("completed")]}}},
        )

        result = svc.update_task_status("i1", "t1", "completed")

        stubber.assert_no_pending_responses()

    assert result.ok, result.error_message
    task = result.data["tasksAssigned"][0]
    assert task["status"] == "completed"
    assert task["estimateHours"] == 1.5
