"""
Health endpoints and response middleware.
"""


def test_ping(client):
    resp = client.get("/ping")
    assert resp.status_code == 200
    assert resp.json() == {"pong": True}


def test_health_reports_database(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_security_and_timing_headers(client):
    resp = client.get("/ping")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert float(resp.headers["X-Process-Time"]) >= 0


def test_api_errors_carry_error_code(auth_client):
    resp = auth_client.get("/api/projects/not-a-uuid")
    assert resp.status_code == 422

    resp = auth_client.get("/api/projects/00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "NOT_FOUND"
