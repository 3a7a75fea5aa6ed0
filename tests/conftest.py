from __future__ import annotations

import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture()
def app_env(tmp_path, monkeypatch):
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'hrms_test.db'}")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("APP_TIMEZONE", "Asia/Manila")
    monkeypatch.setenv("ENABLE_SCHEDULER", "0")
    monkeypatch.setenv("REDIS_URL", "")
    monkeypatch.setenv("INTERNAL_CRON_TOKEN", "test-internal-token")
    monkeypatch.setenv("BOOTSTRAP_MIS_EMAIL", "")
    monkeypatch.setenv("BOOTSTRAP_MIS_PASSWORD", "")
    monkeypatch.setenv("RATE_LIMIT_LOGIN", "1000/60")
    monkeypatch.setenv("RATE_LIMIT_GLOBAL", "10000/60")
    monkeypatch.delenv("PROXY_FIX_X_FOR", raising=False)
    return monkeypatch


@pytest.fixture()
def app_client(app_env):
    from cache_layer import cache_clear
    from app import create_app

    cache_clear()
    app = create_app()
    app.config["TESTING"] = True

    with app.test_client() as client:
        yield app, client

    cache_clear()
