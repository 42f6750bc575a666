from __future__ import annotations

import copy
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from intern_ids import new_record_id, now_iso
from task_rules import NotFound, StorageError

KEY_ATTR = "internId"
READ_ONLY_ATTRS = {KEY_ATTR, "createdAt"}


@dataclass(frozen=True)
class ListFilters:
    batch: str = ""
    search: str = ""
    limit: int | None = None
    offset: int = 0
    sort: str = ""
    order: str = "asc"


def _plain(value: Any) -> Any:
    # The DynamoDB resource API hands numbers back as Decimal.
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def _dynamo(value: Any) -> Any:
    # Inverse of _plain for writes; boto3 rejects float.
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, list):
        return [_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: _dynamo(v) for k, v in value.items()}
    return value


def _sort_key(attr: str) -> Callable[[dict[str, Any]], tuple[bool, str]]:
    def key(record: dict[str, Any]) -> tuple[bool, str]:
        val = record.get(attr)
        return (val is None, "" if val is None else str(val))

    return key


def _page(records: list[dict[str, Any]], filters: ListFilters) -> tuple[list[dict[str, Any]], int]:
    total = len(records)
    if filters.sort:
        records = sorted(records, key=_sort_key(filters.sort), reverse=filters.order == "desc")
    start = max(filters.offset, 0)
    if filters.limit is None:
        return records[start:], total
    return records[start : start + max(filters.limit, 0)], total


def _client_error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code") or "")


class DynamoInternStore:
    """Intern records in a DynamoDB table keyed by ``internId``.

    Every write replaces whole attributes; there is no revision check, so
    concurrent read-modify-write cycles on one record can lose updates.
    """

    def __init__(
        self,
        table: Any,
        *,
        new_id: Callable[[], str] = new_record_id,
        clock: Callable[[], str] = now_iso,
    ) -> None:
        self.table = table
        self.new_id = new_id
        self.clock = clock

    def _filter_expression(self, filters: ListFilters) -> Any:
        cond = None
        if filters.batch:
            cond = Attr("batch").eq(filters.batch)
        if filters.search:
            match = Attr("internName").contains(filters.search)
            cond = match if cond is None else cond & match
        return cond

    def list_records(self, filters: ListFilters) -> tuple[list[dict[str, Any]], int]:
        out: list[dict[str, Any]] = []
        start_key: dict[str, Any] | None = None
        cond = self._filter_expression(filters)
        try:
            while True:
                kwargs: dict[str, Any] = {}
                if cond is not None:
                    kwargs["FilterExpression"] = cond
                if start_key:
                    kwargs["ExclusiveStartKey"] = start_key
                page = self.table.scan(**kwargs)
                for item in page.get("Items", []) or []:
                    if isinstance(item, dict):
                        out.append(_plain(item))
                start_key = page.get("LastEvaluatedKey")
                if not start_key:
                    break
        except (ClientError, BotoCoreError) as e:
            raise StorageError(str(e)) from e
        return _page(out, filters)

    def get_record(self, intern_id: str) -> dict[str, Any]:
        try:
            resp = self.table.get_item(Key={KEY_ATTR: intern_id})
        except (ClientError, BotoCoreError) as e:
            raise StorageError(str(e)) from e
        item = resp.get("Item")
        if not item:
            raise NotFound(f"intern not found: {intern_id}")
        return _plain(item)

    def create_record(self, intern_id: str | None, fields: dict[str, Any]) -> dict[str, Any]:
        now = self.clock()
        item = {k: v for k, v in fields.items() if k not in READ_ONLY_ATTRS}
        item[KEY_ATTR] = intern_id or self.new_id()
        item["createdAt"] = now
        item["updatedAt"] = now
        try:
            self.table.put_item(
                Item=_dynamo(item),
                ConditionExpression="attribute_not_exists(#pk)",
                ExpressionAttributeNames={"#pk": KEY_ATTR},
            )
        except ClientError as e:
            if _client_error_code(e) == "ConditionalCheckFailedException":
                raise StorageError(f"intern already exists: {item[KEY_ATTR]}") from e
            raise StorageError(str(e)) from e
        except (BotoCoreError, TypeError) as e:
            raise StorageError(str(e)) from e
        return item

    def update_record(self, intern_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        updates = {k: v for k, v in fields.items() if k not in READ_ONLY_ATTRS}
        updates["updatedAt"] = self.clock()
        names: dict[str, str] = {"#pk": KEY_ATTR}
        values: dict[str, Any] = {}
        clauses: list[str] = []
        for i, (attr, value) in enumerate(updates.items()):
            names[f"#f{i}"] = attr
            values[f":v{i}"] = _dynamo(value)
            clauses.append(f"#f{i} = :v{i}")
        try:
            out = self.table.update_item(
                Key={KEY_ATTR: intern_id},
                UpdateExpression="SET " + ", ".join(clauses),
                ConditionExpression="attribute_exists(#pk)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _client_error_code(e) == "ConditionalCheckFailedException":
                raise NotFound(f"intern not found: {intern_id}") from e
            raise StorageError(str(e)) from e
        except (BotoCoreError, TypeError) as e:
            raise StorageError(str(e)) from e
        return _plain(out.get("Attributes") or {})

    def delete_record(self, intern_id: str) -> None:
        try:
            self.table.delete_item(
                Key={KEY_ATTR: intern_id},
                ConditionExpression="attribute_exists(#pk)",
                ExpressionAttributeNames={"#pk": KEY_ATTR},
            )
        except ClientError as e:
            if _client_error_code(e) == "ConditionalCheckFailedException":
                raise NotFound(f"intern not found: {intern_id}") from e
            raise StorageError(str(e)) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e


class MemoryInternStore:
    """Process-local store with the same contract as ``DynamoInternStore``."""

    def __init__(
        self,
        records: list[dict[str, Any]] | None = None,
        *,
        new_id: Callable[[], str] = new_record_id,
        clock: Callable[[], str] = now_iso,
    ) -> None:
        self.new_id = new_id
        self.clock = clock
        self.records: dict[str, dict[str, Any]] = {}
        for record in records or []:
            self.records[str(record[KEY_ATTR])] = copy.deepcopy(record)

    def _matches(self, record: dict[str, Any], filters: ListFilters) -> bool:
        if filters.batch and record.get("batch") != filters.batch:
            return False
        if filters.search and filters.search not in str(record.get("internName") or ""):
            return False
        return True

    def list_records(self, filters: ListFilters) -> tuple[list[dict[str, Any]], int]:
        matched = [copy.deepcopy(r) for r in self.records.values() if self._matches(r, filters)]
        return _page(matched, filters)

    def get_record(self, intern_id: str) -> dict[str, Any]:
        record = self.records.get(intern_id)
        if record is None:
            raise NotFound(f"intern not found: {intern_id}")
        return copy.deepcopy(record)

    def create_record(self, intern_id: str | None, fields: dict[str, Any]) -> dict[str, Any]:
        record_id = intern_id or self.new_id()
        if record_id in self.records:
            raise StorageError(f"intern already exists: {record_id}")
        now = self.clock()
        record = {k: copy.deepcopy(v) for k, v in fields.items() if k not in READ_ONLY_ATTRS}
        record.update({KEY_ATTR: record_id, "createdAt": now, "updatedAt": now})
        self.records[record_id] = record
        return copy.deepcopy(record)

    def update_record(self, intern_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        record = self.records.get(intern_id)
        if record is None:
            raise NotFound(f"intern not found: {intern_id}")
        for k, v in fields.items():
            if k not in READ_ONLY_ATTRS:
                record[k] = copy.deepcopy(v)
        record["updatedAt"] = self.clock()
        return copy.deepcopy(record)

    def delete_record(self, intern_id: str) -> None:
        if self.records.pop(intern_id, None) is None:
            raise NotFound(f"intern not found: {intern_id}")


def _sample_task(task_id: str, title: str, description: str, status: str, now: str) -> dict[str, Any]:
    return {
        "id": task_id,
        "title": title,
        "description": description,
        "status": status,
        "assignedAt": now,
        "updatedAt": now,
    }


def sample_records(now: str | None = None) -> list[dict[str, Any]]:
    """Demo interns for the local server's in-memory mode."""
    ts = now or now_iso()

    def intern(intern_id: str, name: str, batch: str, roles: list[str], projects: list[str], tasks: list[tuple[str, str, str, str]]) -> dict[str, Any]:
        return {
            KEY_ATTR: intern_id,
            "internName": name,
            "batch": batch,
            "roles": roles,
            "currentProjects": projects,
            "tasksAssigned": [_sample_task(*t, ts) for t in tasks],
            "createdAt": ts,
            "updatedAt": ts,
        }

    return [
        intern(
            "intern-001",
            "John Doe",
            "2025-Summer",
            ["Frontend Developer", "UI/UX Designer"],
            ["E-commerce Platform", "Mobile App"],
            [
                ("task-1", "Create Login Page", "Design and implement user login functionality", "working"),
                ("task-2", "Setup Database Schema", "Design and create database tables", "completed"),
            ],
        ),
        intern(
            "intern-002",
            "Jane Smith",
            "2025-Summer",
            ["Backend Developer", "DevOps Engineer"],
            ["API Development", "Cloud Infrastructure"],
            [("task-3", "API Documentation", "Create comprehensive API documentation", "open")],
        ),
        intern(
            "intern-003",
            "Mike Johnson",
            "2025-Fall",
            ["Full Stack Developer"],
            ["CRM System"],
            [
                ("task-4", "User Authentication", "Implement JWT-based authentication", "todo"),
                ("task-5", "Dashboard Design", "Create responsive dashboard layout", "pending"),
            ],
        ),
        intern(
            "intern-004",
            "Sarah Wilson",
            "2025-Spring",
            ["Mobile Developer", "UI/UX Designer"],
            ["Mobile Shopping App"],
            [("task-6", "Wireframe Creation", "Create wireframes for mobile app", "deferred")],
        ),
        intern(
            "intern-005",
            "Alex Chen",
            "2025-Summer",
            ["Data Scientist", "Backend Developer"],
            ["Analytics Dashboard", "ML Pipeline"],
            [
                ("task-7", "Data Analysis", "Analyze user behavior patterns", "working"),
                ("task-8", "Model Training", "Train recommendation algorithm", "completed"),
            ],
        ),
    ]
