"""
Tests for /health and /ready endpoints.
"""
from __future__ import annotations

from unittest.mock import patch


def test_ready_ok(app_client):
    """Test /ready returns ok when all services are healthy."""
    _app, client = app_client

    with patch("app.routes.core._ping_redis", return_value=True):
        res = client.get("/ready")
        assert res.status_code == 200

        body = res.get_json()
        assert body["status"] == "ok"
        assert body["checks"]["db"] == "ok"
        assert body["checks"]["redis"] == "ok"
        assert body["checks"]["uploads"] == "ok"


def test_ready_redis_down(app_client):
    """Test /ready returns degraded when Redis is down."""
    _app, client = app_client

    with patch("app.routes.core._ping_redis", return_value=False):
        res = client.get("/ready")
        assert res.status_code == 503
        body = res.get_json()
        assert body["status"] == "degraded"
        assert body["checks"]["redis"] == "error"


def test_health_reports_pool_and_cache(app_client):
    _app, client = app_client

    res = client.get("/health")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "ok"
    assert body["db_pool"]["initialized"] is True
    assert "hits" in body["cache"]


def test_unknown_endpoint_uses_envelope(app_client):
    _app, client = app_client

    res = client.get("/api/does-not-exist")
    assert res.status_code == 404
    body = res.get_json()
    assert body["ok"] is False
    assert body["error"]["code"] == "NOT_FOUND"
