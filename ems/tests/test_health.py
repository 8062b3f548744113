"""
Tests for health and version endpoints
"""
from fastapi import status


def test_health_check(client):
    response = client.get("/api/v1/health")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "ems-backend"
    assert data["audit_pending"] >= 0


def test_version(client):
    response = client.get("/api/v1/version")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["service"] == "ems-backend"
    assert data["env"] == "local"
    assert "version" in data
