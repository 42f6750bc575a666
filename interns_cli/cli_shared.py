from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen


class InternsCliError(Exception):
    pass


class UsageError(InternsCliError):
    pass


class OpError(InternsCliError):
    pass


INTERNS_API_ENDPOINT = "INTERNS_API_ENDPOINT"


@dataclass(frozen=True)
class GlobalOpts:
    endpoint: str
    pretty: bool
    json_output: bool


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _require_str(val: str | None, name: str, *, hint: str) -> str:
    v = (val or "").strip()
    if not v:
        raise UsageError(f"missing {name} ({hint})")
    return v


def _print_json(obj: Any, *, pretty: bool) -> None:
    if pretty:
        sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True) + "\n")
    else:
        sys.stdout.write(json.dumps(obj, separators=(",", ":"), sort_keys=True) + "\n")


def _load_json_array(*, raw: str, label: str) -> list[Any]:
    try:
        val = json.loads(raw)
    except Exception as e:
        raise UsageError(f"invalid {label}: {e}") from e
    if not isinstance(val, list):
        raise UsageError(f"invalid {label}: expected JSON array")
    return val


def _path_segment(value: str) -> str:
    return quote(str(value), safe="")


def _http_request(
    *,
    method: str,
    url: str,
    headers: dict[str, str],
    body: bytes | None = None,
    timeout_seconds: int = 30,
) -> tuple[int, bytes]:
    req = Request(url, data=body, method=str(method).upper())
    for k, v in headers.items():
        req.add_header(k, v)
    try:
        with urlopen(req, timeout=timeout_seconds) as resp:
            return int(getattr(resp, "status", 200)), resp.read()
    except HTTPError as e:
        data = e.read() if hasattr(e, "read") else b""
        return int(getattr(e, "code", 0) or 0), data
    except URLError as e:
        raise OpError(f"http request failed: {e}") from e


def api_request(
    *,
    method: str,
    endpoint: str,
    path: str,
    query: dict[str, Any] | None = None,
    body_obj: dict[str, Any] | None = None,
) -> dict[str, Any]:
    ep = endpoint.rstrip("/")
    # Accept the collection URL as well as the stage root.
    if ep.endswith("/interns"):
        ep = ep[: -len("/interns")]
    p = path if path.startswith("/") else f"/{path}"
    query_clean = {
        k: str(v)
        for k, v in (query or {}).items()
        if v is not None and str(v).strip() != ""
    }
    url = f"{ep}{p}"
    if query_clean:
        url += f"?{urlencode(query_clean)}"

    body_bytes = None
    headers = {"accept": "application/json"}
    if body_obj is not None:
        body_bytes = json.dumps(body_obj, separators=(",", ":")).encode("utf-8")
        headers["content-type"] = "application/json"

    status, data = _http_request(method=method, url=url, headers=headers, body=body_bytes)
    text = data.decode("utf-8", errors="replace")
    parsed: Any
    try:
        parsed = json.loads(text) if text else {}
    except Exception:
        parsed = {"raw": text}

    if status < 200 or status >= 300 or (isinstance(parsed, dict) and parsed.get("success") is False):
        if isinstance(parsed, dict):
            msg = str(parsed.get("error") or parsed.get("message") or text).strip()
            code = str(parsed.get("errorCode") or "").strip()
        else:
            msg, code = str(parsed), ""
        detail = f"code={code} " if code else ""
        raise OpError(f"interns request failed: status={status} method={method} path={p} {detail}message={msg}")

    if isinstance(parsed, dict):
        return parsed
    return {"result": parsed}
