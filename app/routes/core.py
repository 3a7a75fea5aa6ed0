from __future__ import annotations

import os

import redis
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from cache_layer import cache_stats
from db import SessionLocal, get_pool_stats
from utils import iso_utc_now, ok

core_bp = Blueprint("core", __name__)


def _ping_redis(redis_url: str) -> bool:
    if not redis_url:
        return True  # no broker configured; the in-process scheduler runs alone
    try:
        redis.from_url(redis_url, socket_connect_timeout=2).ping()
        return True
    except redis.exceptions.RedisError:
        return False


def _ping_db() -> bool:
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def _uploads_writable(upload_dir: str) -> bool:
    try:
        os.makedirs(upload_dir, exist_ok=True)
    except OSError:
        return False
    return os.access(upload_dir, os.W_OK)


@core_bp.get("/")
def index():
    return ok(
        {
            "status": "ok",
            "message": "HRMS backend is running. Use /health for a quick check and /api/... for the REST API.",
            "endpoints": {"health": "/health", "ready": "/ready", "version": "/version", "api": "/api"},
        }
    )


@core_bp.get("/health")
def health():
    """Process is alive; no dependency checks."""
    cfg = current_app.config["CFG"]
    return jsonify(
        {
            "status": "ok",
            "time": iso_utc_now(),
            "version": cfg.APP_VERSION,
            "db_pool": get_pool_stats(),
            "cache": cache_stats(),
        }
    )


@core_bp.get("/ready")
def ready():
    """
    Readiness for load balancers: database, Redis (when configured) and the
    upload directory. Any failure answers 503 with status "degraded".
    """
    cfg = current_app.config["CFG"]
    checks = {
        "db": _ping_db(),
        "redis": _ping_redis(cfg.REDIS_URL),
        "uploads": _uploads_writable(cfg.UPLOAD_DIR),
    }
    all_ok = all(checks.values())

    body = {
        "status": "ok" if all_ok else "degraded",
        "time": iso_utc_now(),
        "version": cfg.APP_VERSION,
        "checks": {k: "ok" if v else "error" for k, v in checks.items()},
    }
    return jsonify(body), 200 if all_ok else 503


@core_bp.get("/version")
def version():
    cfg = current_app.config["CFG"]
    return jsonify({"version": cfg.APP_VERSION, "env": cfg.ENV, "time": iso_utc_now()})
