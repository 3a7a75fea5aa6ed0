from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import redis

from config import Config


_log = logging.getLogger("scheduler")

SWEEP_LOCK_KEY = "lock:contracts:sweep"


@contextmanager
def _sweep_lock(cfg: Config):
    """Yields False when another instance holds the lock; no Redis means no coordination."""
    if not cfg.REDIS_URL:
        yield True
        return

    client = redis.from_url(cfg.REDIS_URL, socket_connect_timeout=2)
    lock = client.lock(SWEEP_LOCK_KEY, timeout=cfg.SWEEP_LOCK_TIMEOUT_SECONDS, blocking=False)
    acquired = lock.acquire()
    try:
        yield bool(acquired)
    finally:
        if acquired:
            try:
                lock.release()
            except redis.exceptions.LockError:
                _log.warning("sweep lock expired before release")


def run_sweep_once(cfg: Config) -> dict | None:
    """One sweep in its own session. Returns None when skipped or failed."""
    from actions import dispatch
    from auth import system_context
    from db import SessionLocal

    db = None
    try:
        with _sweep_lock(cfg) as acquired:
            if not acquired:
                _log.info("CONTRACTS_SWEEP_EXPIRED skipped: lock held by another instance")
                return None
            db = SessionLocal()
            out = dispatch("CONTRACTS_SWEEP_EXPIRED", {}, system_context(), db, cfg)
            db.commit()
            _log.info("CONTRACTS_SWEEP_EXPIRED ok expired=%s", out.get("expiredCount"))
            return out
    except Exception:
        if db is not None:
            db.rollback()
        _log.exception("CONTRACTS_SWEEP_EXPIRED failed")
        return None
    finally:
        if db is not None:
            db.close()


def seconds_until_next_run(now_local: datetime, hour: int, minute: int) -> float:
    next_run = now_local.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if next_run <= now_local:
        next_run = next_run + timedelta(days=1)
    return max(1.0, (next_run - now_local).total_seconds())


def maybe_start_scheduler(cfg: Config, stop: threading.Event | None = None) -> threading.Thread | None:
    """
    Daily contract expiration sweep, in-process.

    On by default; with REDIS_URL set, the sweep lock keeps concurrent workers from
    sweeping twice. Setting `stop` ends the loop.

    Alternatives: Celery beat (`contracts.sweep_expired`) or a cron
    calling `POST /api/jobs/contracts/sweep-expired` with `X-Internal-Token`.

    Settings:
    - ENABLE_SCHEDULER=0 disables the thread
    - SWEEP_ON_STARTUP=1 (default) sweeps once right away
    - SCHEDULER_SWEEP_HOUR / SCHEDULER_SWEEP_MINUTE (default local midnight)
    """

    if not cfg.ENABLE_SCHEDULER:
        return None
    if stop is None:
        stop = threading.Event()

    try:
        tz = ZoneInfo(cfg.APP_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        tz = timezone.utc

    def _loop():
        if cfg.SWEEP_ON_STARTUP:
            run_sweep_once(cfg)
        while True:
            delay = seconds_until_next_run(datetime.now(tz), cfg.SCHEDULER_SWEEP_HOUR, cfg.SCHEDULER_SWEEP_MINUTE)
            if stop.wait(delay):
                return
            run_sweep_once(cfg)

    t = threading.Thread(target=_loop, name="scheduler", daemon=True)
    t.start()
    return t
