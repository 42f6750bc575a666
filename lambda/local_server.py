#!/usr/bin/env python3
"""Serve the interns API over plain HTTP for local development.

Requests are turned into API Gateway proxy events and passed to
``intern_handler.handler``, so routing and responses match the deployed API.
"""

from __future__ import annotations

import argparse
import os
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable
from urllib.parse import parse_qsl, unquote, urlsplit

from intern_ids import new_record_id


def build_event(*, method: str, raw_path: str, body: str | None) -> dict[str, Any]:
    parsed = urlsplit(raw_path)
    query = dict(parse_qsl(parsed.query))
    return {
        "httpMethod": method.upper(),
        "path": unquote(parsed.path),
        "queryStringParameters": query or None,
        "body": body,
        "isBase64Encoded": False,
        "requestContext": {"requestId": new_record_id()},
    }


class InternApiRequestHandler(BaseHTTPRequestHandler):
    invoke: Callable[[dict[str, Any], Any], dict[str, Any]] | None = None

    def _proxy(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length).decode("utf-8") if length else None
        event = build_event(method=self.command, raw_path=self.path, body=body)
        assert self.invoke is not None
        response = type(self).invoke(event, None)

        payload = str(response.get("body") or "").encode("utf-8")
        self.send_response(int(response.get("statusCode") or 500))
        for key, value in (response.get("headers") or {}).items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        if payload:
            self.wfile.write(payload)

    do_GET = _proxy
    do_POST = _proxy
    do_PATCH = _proxy
    do_DELETE = _proxy
    do_OPTIONS = _proxy

    def log_message(self, format: str, *args: Any) -> None:
        # The handler prints one wide event per request.
        return None


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the interns API locally")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT") or 3000),
        help="Listen port (env: PORT)",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use the seeded in-memory store instead of DynamoDB",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    if args.memory:
        os.environ["INTERNS_STORE"] = "memory"
    # Imported late: the handler reads its store config at import time.
    import intern_handler

    InternApiRequestHandler.invoke = staticmethod(intern_handler.handler)
    server = ThreadingHTTPServer((args.host, args.port), InternApiRequestHandler)
    print(f"interns api listening on http://{args.host}:{args.port}/interns")
    print("  GET    /interns")
    print("  POST   /interns")
    print("  GET    /interns/count")
    print("  GET    /interns/tasks/summary")
    print("  GET    /interns/{internId}")
    print("  PATCH  /interns/{internId}")
    print("  DELETE /interns/{internId}")
    print("  POST   /interns/{internId}/tasks")
    print("  PATCH  /interns/{internId}/tasks/{taskId}/status")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
