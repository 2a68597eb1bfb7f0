import pytest


@pytest.mark.parametrize("path", ["/healthz", "/api/v1/health"])
def test_health_endpoints_return_envelope(client, path):
    resp = client.get(path, headers={"x-trace-id": "trace_health"})
    assert resp.status_code == 200
    assert resp.headers["x-trace-id"] == "trace_health"
    assert resp.headers.get("x-request-id")
    body = resp.json()
    assert body["success"] is True
    assert body["data"] == {"status": "ok"}
    assert body["meta"]["trace_id"] == "trace_health"


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/route-not-exists")
    assert resp.status_code == 404
    assert resp.headers.get("x-request-id")
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "REQ_NOT_FOUND"
    assert set(body["error"].keys()) >= {"code", "message", "retryable", "class"}
    assert body["meta"]["trace_id"]
