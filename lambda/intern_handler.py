from __future__ import annotations

import base64
import json
import os
import time
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from intern_ids import new_record_id, now_iso
from intern_service import InternService, Result
from intern_store import DynamoInternStore, ListFilters, MemoryInternStore, sample_records


INTERNS_TABLE = os.environ.get("INTERNS_TABLE", "")
INTERNS_STORE = os.environ.get("INTERNS_STORE", "dynamodb").strip().lower()
SCHEMA_VERSION = os.environ.get("INTERNS_SCHEMA_VERSION", "2025-08-01")

ROUTE_ROOT = "interns"
DEFAULT_PAGE_LIMIT = 25
MAX_PAGE_LIMIT = 100

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PATCH, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

_ERROR_STATUS = {
    "VALIDATION_ERROR": 400,
    "NOT_FOUND": 404,
    "STORAGE_ERROR": 500,
}

_store_instance: Any | None = None


def _aws_region() -> str | None:
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")


def _store() -> Any:
    global _store_instance
    if _store_instance is None:
        if INTERNS_STORE == "memory":
            _store_instance = MemoryInternStore(sample_records())
        else:
            table = boto3.resource("dynamodb", region_name=_aws_region()).Table(INTERNS_TABLE)
            _store_instance = DynamoInternStore(table)
    return _store_instance


def _service() -> InternService:
    return InternService(_store())


def _misconfigured() -> bool:
    return INTERNS_STORE != "memory" and not INTERNS_TABLE


def _response(status_code: int, body: dict[str, Any], request_id: str) -> dict[str, Any]:
    payload = dict(body)
    payload.setdefault("requestId", request_id)
    payload.setdefault("schemaVersion", SCHEMA_VERSION)
    return {
        "statusCode": int(status_code),
        "headers": {
            "content-type": "application/json",
            "cache-control": "no-store",
            **CORS_HEADERS,
        },
        "body": json.dumps(payload),
    }


def _error(status_code: int, code: str, message: str, request_id: str) -> dict[str, Any]:
    return _response(
        status_code,
        {"success": False, "errorCode": code, "error": message},
        request_id,
    )


def _preflight() -> dict[str, Any]:
    return {"statusCode": 200, "headers": dict(CORS_HEADERS), "body": ""}


def _result_response(
    result: Result,
    request_id: str,
    *,
    status_code: int = 200,
    payload: dict[str, Any] | None = None,
) -> dict[str, Any]:
    if not result.ok:
        code = result.error_code or "INTERNAL_ERROR"
        return _error(_ERROR_STATUS.get(code, 500), code, result.error_message, request_id)
    if payload is None:
        payload = {}
        if result.data is not None:
            payload["data"] = result.data
        if result.total is not None:
            payload["total"] = result.total
        if result.message:
            payload["message"] = result.message
    return _response(status_code, {"success": True, **payload}, request_id)


def _request_id(event: dict[str, Any]) -> str:
    rc = event.get("requestContext") or {}
    if isinstance(rc, dict):
        rid = str(rc.get("requestId") or "").strip()
        if rid:
            return rid
    return new_record_id()


def _parse_body(event: dict[str, Any]) -> tuple[dict[str, Any] | None, str | None]:
    raw = event.get("body")
    if raw is None:
        return {}, None
    if not isinstance(raw, str):
        return None, "request body must be a JSON object"
    if bool(event.get("isBase64Encoded")):
        try:
            raw = base64.b64decode(raw.encode("utf-8")).decode("utf-8")
        except Exception:
            return None, "request body base64 decode failed"
    if not raw.strip():
        return {}, None
    try:
        parsed = json.loads(raw)
    except Exception:
        return None, "request body must be valid JSON"
    if not isinstance(parsed, dict):
        return None, "request body must be a JSON object"
    return parsed, None


def _route_segments(event: dict[str, Any]) -> list[str]:
    segments = [s for s in str(event.get("path") or "").split("/") if s]
    # Stage or custom-domain prefixes sit before the route root.
    if ROUTE_ROOT in segments:
        return segments[segments.index(ROUTE_ROOT) :]
    # A bare root path maps to the collection.
    return [ROUTE_ROOT] if not segments else segments


def _query_param(event: dict[str, Any], key: str) -> str:
    qs = event.get("queryStringParameters") or {}
    if not isinstance(qs, dict):
        return ""
    val = qs.get(key)
    return str(val).strip() if val is not None else ""


def _page_limit(raw: str) -> int:
    if not raw:
        return DEFAULT_PAGE_LIMIT
    try:
        n = int(raw)
    except Exception:
        return DEFAULT_PAGE_LIMIT
    if n < 1:
        return DEFAULT_PAGE_LIMIT
    return min(n, MAX_PAGE_LIMIT)


def _page_offset(raw: str) -> int:
    try:
        n = int(raw)
    except Exception:
        return 0
    return max(n, 0)


def _list_filters(event: dict[str, Any]) -> ListFilters:
    return ListFilters(
        batch=_query_param(event, "batch"),
        search=_query_param(event, "search"),
        limit=_page_limit(_query_param(event, "limit")),
        offset=_page_offset(_query_param(event, "offset")),
        sort=_query_param(event, "sort"),
        order="desc" if _query_param(event, "order").lower() == "desc" else "asc",
    )


def _list_interns(event: dict[str, Any], request_id: str) -> dict[str, Any]:
    return _result_response(_service().list_interns(_list_filters(event)), request_id)


def _create_intern(event: dict[str, Any], request_id: str) -> dict[str, Any]:
    body, err = _parse_body(event)
    if err:
        return _error(400, "INVALID_BODY", err, request_id)
    return _result_response(_service().create_intern(body), request_id, status_code=201)


def _update_intern(event: dict[str, Any], request_id: str, intern_id: str) -> dict[str, Any]:
    body, err = _parse_body(event)
    if err:
        return _error(400, "INVALID_BODY", err, request_id)
    return _result_response(_service().update_intern(intern_id, body), request_id)


def _count_interns(request_id: str) -> dict[str, Any]:
    result = _service().count_interns()
    if not result.ok:
        return _result_response(result, request_id)
    return _result_response(result, request_id, payload={"count": result.total})


def _task_summary(request_id: str) -> dict[str, Any]:
    result = _service().task_summary()
    if not result.ok:
        return _result_response(result, request_id)
    summary = {**result.data["counts"], "total": result.data["total"]}
    return _result_response(result, request_id, payload={"summary": summary})


def _add_task(event: dict[str, Any], request_id: str, intern_id: str) -> dict[str, Any]:
    body, err = _parse_body(event)
    if err:
        return _error(400, "INVALID_BODY", err, request_id)
    return _result_response(_service().add_task(intern_id, body), request_id, status_code=201)


def _update_task_status(event: dict[str, Any], request_id: str, intern_id: str, task_id: str) -> dict[str, Any]:
    body, err = _parse_body(event)
    if err:
        return _error(400, "INVALID_BODY", err, request_id)
    assert body is not None
    result = _service().update_task_status(intern_id, task_id, body.get("status"))
    return _result_response(result, request_id)


def _method_not_allowed(method: str, request_id: str) -> dict[str, Any]:
    return _error(405, "METHOD_NOT_ALLOWED", f"method not allowed: {method}", request_id)


def _dispatch(event: dict[str, Any], request_id: str, method: str, wide_event: dict[str, Any]) -> dict[str, Any]:
    segments = _route_segments(event)
    n = len(segments)

    if segments[0] != ROUTE_ROOT:
        return _error(404, "NOT_FOUND", f"route not found: {method} {event.get('path') or ''}", request_id)

    # /interns
    if n == 1:
        wide_event["route"] = "/interns"
        if method == "GET":
            return _list_interns(event, request_id)
        if method == "POST":
            return _create_intern(event, request_id)
        return _method_not_allowed(method, request_id)

    # /interns/count
    if n == 2 and segments[1] == "count":
        wide_event["route"] = "/interns/count"
        if method == "GET":
            return _count_interns(request_id)
        return _method_not_allowed(method, request_id)

    # /interns/tasks/summary
    if n == 3 and segments[1:] == ["tasks", "summary"]:
        wide_event["route"] = "/interns/tasks/summary"
        if method == "GET":
            return _task_summary(request_id)
        return _method_not_allowed(method, request_id)

    # /interns/{internId}
    if n == 2:
        wide_event["route"] = "/interns/{internId}"
        intern_id = segments[1]
        wide_event["intern_id"] = intern_id
        if method == "GET":
            return _result_response(_service().get_intern(intern_id), request_id)
        if method == "PATCH":
            return _update_intern(event, request_id, intern_id)
        if method == "DELETE":
            return _result_response(_service().delete_intern(intern_id), request_id)
        return _method_not_allowed(method, request_id)

    # /interns/{internId}/tasks
    if n == 3 and segments[2] == "tasks":
        wide_event["route"] = "/interns/{internId}/tasks"
        wide_event["intern_id"] = segments[1]
        if method == "POST":
            return _add_task(event, request_id, segments[1])
        return _method_not_allowed(method, request_id)

    # /interns/{internId}/tasks/{taskId}/status
    if n == 5 and segments[2] == "tasks" and segments[4] == "status":
        wide_event["route"] = "/interns/{internId}/tasks/{taskId}/status"
        wide_event["intern_id"] = segments[1]
        wide_event["task_id"] = segments[3]
        if method == "PATCH":
            return _update_task_status(event, request_id, segments[1], segments[3])
        return _method_not_allowed(method, request_id)

    return _error(404, "NOT_FOUND", f"route not found: {method} {event.get('path') or ''}", request_id)


def _error_body(response: dict[str, Any]) -> dict[str, Any] | None:
    if 200 <= int(response.get("statusCode") or 0) < 300:
        return None
    try:
        body = json.loads(response.get("body") or "{}")
    except Exception:
        return {}
    return body if isinstance(body, dict) else {}


def handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    start = time.time()
    request_id = _request_id(event)
    method = str(event.get("httpMethod") or "").upper()

    wide_event: dict[str, Any] = {
        "event": "interns_api_request",
        "schema_version": SCHEMA_VERSION,
        "request_id": request_id,
        "ts": now_iso(),
        "method": method,
        "path": str(event.get("path") or ""),
    }

    try:
        if method == "OPTIONS":
            response = _preflight()
        elif _misconfigured():
            response = _error(500, "MISCONFIGURED", "INTERNS_TABLE env var is required", request_id)
        else:
            response = _dispatch(event, request_id, method, wide_event)
    except (ClientError, BotoCoreError) as e:
        wide_event["error"] = {"type": type(e).__name__, "message": str(e)}
        response = _error(500, "STORAGE_ERROR", str(e), request_id)
    except Exception as e:
        wide_event["error"] = {"type": type(e).__name__, "message": str(e)}
        response = _error(500, "INTERNAL_ERROR", str(e), request_id)

    wide_event["status_code"] = response["statusCode"]
    failure = _error_body(response)
    if failure is None:
        wide_event["outcome"] = "success"
    else:
        code = str(failure.get("errorCode") or "error")
        wide_event["outcome"] = code.lower()
        wide_event.setdefault("error", {"type": code, "message": str(failure.get("error") or "")})
    wide_event["duration_ms"] = int((time.time() - start) * 1000)
    print(json.dumps(wide_event, separators=(",", ":"), sort_keys=True))
    return response
