"""Health endpoints and app-level error handling."""


def test_ready(client):
    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_live_reports_database(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "ok"
    assert body["checks"]["app"]["record_store"] == "sql"
    assert body["checks"]["app"]["testing"] is True


def test_unknown_route_json_404(client):
    res = client.get("/api/v1/nowhere")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_method_not_allowed(client):
    res = client.put("/api/v1/health/ready", json={})
    assert res.status_code == 405


def test_response_time_header(client):
    res = client.get("/api/v1/health/ready")
    assert "X-Request-Duration-Ms" in res.headers
    assert res.headers["X-Request-ID"]
