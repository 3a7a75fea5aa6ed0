"""
Maintenance tasks: the contract expiration sweep and the school-year credit rollover.

Both run the same action handlers as the REST routes, as the SYSTEM actor, each in
its own session and transaction.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from dotenv import load_dotenv
from sqlalchemy.exc import OperationalError

from app.tasks import celery_app


_log = logging.getLogger("tasks")


def _run_action(action: str, data: dict[str, Any]) -> dict[str, Any]:
    from actions import dispatch
    from auth import system_context
    from config import Config
    from db import SessionLocal, get_engine, init_engine

    load_dotenv()
    cfg = Config()
    if get_engine() is None:
        init_engine(cfg.DATABASE_URL)

    db = SessionLocal()
    try:
        out = dispatch(action, data, system_context(), db, cfg)
        db.commit()
        return out
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@celery_app.task(name="contracts.sweep_expired", bind=True, autoretry_for=(OperationalError,), max_retries=3, default_retry_delay=60)
def sweep_expired_contracts(self):
    started = datetime.now(timezone.utc)
    result = _run_action("CONTRACTS_SWEEP_EXPIRED", {})
    _log.info("contracts.sweep_expired task=%s expired=%s", self.request.id, result.get("expiredCount"))
    return {
        "taskId": self.request.id,
        "startedAt": started.isoformat(),
        "completedAt": datetime.now(timezone.utc).isoformat(),
        "expiredCount": result.get("expiredCount", 0),
        "message": result.get("message", ""),
    }


@celery_app.task(name="leave_credits.rollover", bind=True, autoretry_for=(OperationalError,), max_retries=3, default_retry_delay=60)
def rollover_leave_credits(self, school_year: str):
    result = _run_action("LEAVE_CREDITS_RESET", {"schoolYear": school_year})
    _log.info(
        "leave_credits.rollover task=%s schoolYear=%s processed=%s",
        self.request.id,
        school_year,
        result.get("employeesProcessed"),
    )
    return result
