from __future__ import annotations

import os
from zoneinfo import ZoneInfo


def _env(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or default).strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(_env(name, str(default)) or default)
    except Exception:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env(name, "").lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_csv(name: str) -> list[str]:
    return [s.strip() for s in _env(name, "").split(",") if s.strip()]


class Config:
    def __init__(self):
        self.ENV = _env("APP_ENV", "development").lower()
        self.IS_PRODUCTION = self.ENV in {"prod", "production"}
        self.APP_VERSION = _env("APP_VERSION", "1.0.0")
        self.LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()

        self.HOST = _env("HOST", "0.0.0.0")
        self.PORT = _env_int("PORT", 5000)

        self.DATABASE_URL = _env("DATABASE_URL", "sqlite:///./hrms.db")
        self.ALLOWED_ORIGINS = _env_csv("ALLOWED_ORIGINS") or ([] if self.IS_PRODUCTION else ["*"])

        # School years start in June; local midnight is computed in this zone.
        self.APP_TIMEZONE = _env("APP_TIMEZONE", "Asia/Manila")

        self.SESSION_TTL_MINUTES = _env_int("SESSION_TTL_MINUTES", 480)
        self.PASSWORD_MIN_LENGTH = _env_int("PASSWORD_MIN_LENGTH", 8)

        self.UPLOAD_DIR = _env("UPLOAD_DIR", "./uploads")
        self.MAX_UPLOAD_MB = _env_int("MAX_UPLOAD_MB", 10)

        self.INTERNAL_CRON_TOKEN = _env("INTERNAL_CRON_TOKEN", "")
        self.ENABLE_SCHEDULER = _env_bool("ENABLE_SCHEDULER", True)
        self.SWEEP_ON_STARTUP = _env_bool("SWEEP_ON_STARTUP", True)
        self.SCHEDULER_SWEEP_HOUR = max(0, min(23, _env_int("SCHEDULER_SWEEP_HOUR", 0)))
        self.SCHEDULER_SWEEP_MINUTE = max(0, min(59, _env_int("SCHEDULER_SWEEP_MINUTE", 0)))
        self.SWEEP_LOCK_TIMEOUT_SECONDS = _env_int("SWEEP_LOCK_TIMEOUT_SECONDS", 600)

        self.REDIS_URL = _env("REDIS_URL", "")

        # "<count>/<seconds>"
        self.RATE_LIMIT_LOGIN = _env("RATE_LIMIT_LOGIN", "10/60")
        self.RATE_LIMIT_GLOBAL = _env("RATE_LIMIT_GLOBAL", "600/60")
        self.RATE_LIMIT_MAX_KEYS = _env_int("RATE_LIMIT_MAX_KEYS", 10000)

        # Trusted reverse proxies in front of the app; 0 means clients connect directly.
        self.PROXY_FIX_X_FOR = max(0, _env_int("PROXY_FIX_X_FOR", 0))

        self.BOOTSTRAP_MIS_EMAIL = _env("BOOTSTRAP_MIS_EMAIL", "").lower()
        self.BOOTSTRAP_MIS_PASSWORD = _env("BOOTSTRAP_MIS_PASSWORD", "")

    def validate(self) -> None:
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        try:
            ZoneInfo(self.APP_TIMEZONE)
        except Exception:
            raise ValueError(f"Unknown APP_TIMEZONE: {self.APP_TIMEZONE}")
        if self.SESSION_TTL_MINUTES <= 0:
            raise ValueError("SESSION_TTL_MINUTES must be positive")
        if self.MAX_UPLOAD_MB <= 0:
            raise ValueError("MAX_UPLOAD_MB must be positive")
        if self.IS_PRODUCTION and not self.ALLOWED_ORIGINS:
            raise ValueError("ALLOWED_ORIGINS is required in production")
        if bool(self.BOOTSTRAP_MIS_EMAIL) != bool(self.BOOTSTRAP_MIS_PASSWORD):
            raise ValueError("BOOTSTRAP_MIS_EMAIL and BOOTSTRAP_MIS_PASSWORD must be set together")
