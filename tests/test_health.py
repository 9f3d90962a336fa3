"""
tests/test_health.py -- Integration tests for GET /api/v1/health and GET /.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports the store's state
  - No authentication required
"""

from __future__ import annotations


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_reports_database_error(api_client, monkeypatch):
    """A failing store shows up as components.database == 'error', not a 500."""
    monkeypatch.setattr(api_client.app.state.user_store, "ping", lambda: False)
    data = api_client.get("/api/v1/health").json()
    assert data["components"]["database"] == "error"


def test_root_is_public(api_client):
    resp = api_client.get("/", headers={})
    assert resp.status_code == 200
    assert resp.json()["message"] == "AuthGate API"
