from fastapi.testclient import TestClient

from smarttask.services.health_service import HealthService


def test_health(client: TestClient):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "environment": "test"}


def test_plain_text_endpoints(client: TestClient):
    resp = client.get("/hello")
    assert resp.status_code == 200
    assert resp.text == "Hello from SmartTask API"

    resp = client.get("/SmartTask-AI")
    assert resp.status_code == 200
    assert resp.text == "SmartTask AI is running"


def test_health_service_is_public(client: TestClient):
    resp = client.post("/api/services/HealthService/GetHealthStatusAsync")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "Healthy"
    assert data["database"] == "Connected"
    assert data["environment"] == "test"
    assert data["timestamp"]


def test_health_service_reports_unavailable_database(settings):
    def broken_factory():
        raise RuntimeError("connection refused")

    status = HealthService(broken_factory, settings).get_health_status()
    assert status["status"] == "Degraded"
    assert status["database"] == "Unavailable"


def test_cors_headers_on_service_errors(client: TestClient):
    resp = client.post(
        "/api/services/TaskService/GetTasksAsync",
        headers={"Origin": "http://localhost:5173"},
    )
    assert resp.status_code == 401
    assert resp.headers["access-control-allow-origin"] in ("*", "http://localhost:5173")
