"""
Celery configuration for the HR maintenance jobs.

Usage:
    celery -A app.tasks.celery_app worker --loglevel=INFO
    celery -A app.tasks.celery_app beat --loglevel=INFO
"""
from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab


def make_celery() -> Celery:
    """
    Create and configure Celery app with Redis broker.

    Environment variables:
        REDIS_URL: Redis connection URL (default: redis://localhost:6379/0)
        CELERY_RESULT_BACKEND: Optional separate result backend
        APP_TIMEZONE: zone used for the midnight beat schedule
    """
    redis_url = os.getenv("REDIS_URL", "") or "redis://localhost:6379/0"
    result_backend = os.getenv("CELERY_RESULT_BACKEND", redis_url)

    app = Celery(
        "hrms",
        broker=redis_url,
        backend=result_backend,
        include=["app.tasks.maintenance"],
    )

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone=os.getenv("APP_TIMEZONE", "Asia/Manila"),
        enable_utc=True,
        result_expires=int(os.getenv("CELERY_RESULT_EXPIRES", "86400")),
        # Both tasks are idempotent.
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        worker_concurrency=int(os.getenv("CELERY_CONCURRENCY", "2")),
        task_annotations={
            "leave_credits.rollover": {"time_limit": 15 * 60, "soft_time_limit": 10 * 60},
            "contracts.sweep_expired": {"time_limit": 5 * 60},
        },
        beat_schedule={
            "contracts-sweep-expired-midnight": {
                "task": "contracts.sweep_expired",
                "schedule": crontab(hour=0, minute=0),
            },
        },
    )

    return app


celery_app = make_celery()
