"""tests for health check and root endpoints"""

from maintenance_gate.core.config import settings


def test_root_endpoint(client):
    """test root endpoint => returns OK"""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "OK"}


def test_health_check(client):
    """test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["project_name"] == settings.PROJECT_NAME
    assert data["version"] == "1.0.0"


def test_health_reports_cached_maintenance_flag(client, maintenance_url):
    """test health check reports the gate state once it has been cached"""
    client.get("/")
    assert client.get("/health").json()["maintenance_enabled"] is False

    client.put(maintenance_url, json={"enabled": True})
    assert client.get("/health").json()["maintenance_enabled"] is True


def test_security_headers(client):
    """test security headers are set on responses"""
    response = client.get("/")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
