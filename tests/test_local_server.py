import importlib
import json
import sys
import threading
from http.server import ThreadingHTTPServer
from pathlib import Path
from urllib.request import Request, urlopen

LAMBDA_DIR = str(Path(__file__).resolve().parents[1] / "lambda")


def _load_module():
    if LAMBDA_DIR not in sys.path:
        sys.path.insert(0, LAMBDA_DIR)
    import local_server as mod

    return importlib.reload(mod)


def test_build_event_splits_path_and_query():
    m = _load_module()

    event = m.build_event(method="get", raw_path="/interns?batch=2025-Summer&search=Jane%20S", body=None)

    assert event["httpMethod"] == "GET"
    assert event["path"] == "/interns"
    assert event["queryStringParameters"] == {"batch": "2025-Summer", "search": "Jane S"}
    assert event["body"] is None
    assert event["requestContext"]["requestId"]


def test_build_event_unquotes_path_and_omits_empty_query():
    m = _load_module()

    event = m.build_event(method="PATCH", raw_path="/interns/intern%20one/tasks/t1/status", body='{"status":"todo"}')

    assert event["path"] == "/interns/intern one/tasks/t1/status"
    assert event["queryStringParameters"] is None
    assert event["body"] == '{"status":"todo"}'


def test_request_handler_proxies_to_invoke(monkeypatch):
    m = _load_module()
    seen: list[dict] = []

    def fake_invoke(event, _context):
        seen.append(event)
        return {
            "statusCode": 201,
            "headers": {"content-type": "application/json"},
            "body": json.dumps({"success": True}),
        }

    monkeypatch.setattr(m.InternApiRequestHandler, "invoke", staticmethod(fake_invoke))
    server = ThreadingHTTPServer(("127.0.0.1", 0), m.InternApiRequestHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        port = server.server_address[1]
        req = Request(
            f"http://127.0.0.1:{port}/interns",
            data=b'{"internName":"A","batch":"B"}',
            method="POST",
            headers={"content-type": "application/json"},
        )
        with urlopen(req, timeout=5) as resp:
            assert resp.status == 201
            assert json.loads(resp.read()) == {"success": True}
    finally:
        server.shutdown()
        server.server_close()

    assert seen[0]["httpMethod"] == "POST"
    assert json.loads(seen[0]["body"]) == {"internName": "A", "batch": "B"}
