from __future__ import annotations

import hashlib
import json
import re
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from cachetools import TTLCache
from flask import jsonify


_STATUS_BY_CODE = {
    "BAD_REQUEST": 400,
    "STATE_CONFLICT": 400,
    "AUTH_INVALID": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "PAYLOAD_TOO_LARGE": 413,
    "RATE_LIMITED": 429,
    "INTERNAL": 500,
}


class ApiError(Exception):
    def __init__(self, code: str, message: str, http_status: int | None = None):
        super().__init__(message)
        self.code = str(code or "INTERNAL").upper()
        self.message = str(message or "")
        self.http_status = int(http_status or _STATUS_BY_CODE.get(self.code, 400))


@dataclass
class AuthContext:
    valid: bool
    userId: str
    email: str
    role: str
    expiresAt: str


def ok(data: Any = None, http_status: int = 200):
    return jsonify({"ok": True, "data": data, "error": None}), http_status


def err(code: str, message: str, http_status: int | None = None):
    status = int(http_status or _STATUS_BY_CODE.get(str(code or "").upper(), 400))
    return jsonify({"ok": False, "data": None, "error": {"code": code, "message": message}}), status


def iso_utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_uuid() -> str:
    return str(uuid.uuid4())


def sha256_hex(value: str) -> str:
    return hashlib.sha256(str(value or "").encode("utf-8")).hexdigest()


def now_monotonic() -> float:
    return time.monotonic()


def normalize_role(role: Any) -> Optional[str]:
    s = str(role or "").strip().upper()
    if not s:
        return None
    return s


def parse_roles_csv(value: str) -> list[str]:
    out: list[str] = []
    for part in str(value or "").split(","):
        r = normalize_role(part)
        if r and r not in out:
            out.append(r)
    return out


def parse_json_body(raw: str) -> dict[str, Any]:
    s = str(raw or "").strip()
    if not s:
        raise ApiError("BAD_REQUEST", "Empty body")
    try:
        body = json.loads(s)
    except Exception:
        raise ApiError("BAD_REQUEST", "Invalid JSON")
    if not isinstance(body, dict):
        raise ApiError("BAD_REQUEST", "Invalid JSON body")
    return body


_REDACT_KEYS = {"password", "currentpassword", "newpassword", "defaultpassword", "token", "sessiontoken"}


def redact_for_audit(value: Any) -> Any:
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if str(k).lower() in _REDACT_KEYS:
                out[k] = "***"
            else:
                out[k] = redact_for_audit(v)
        return out
    if isinstance(value, list):
        return [redact_for_audit(v) for v in value[:50]]
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def safe_json_string(value: Any, default: str = "{}") -> str:
    try:
        return json.dumps(value, default=str)
    except Exception:
        return default


def parse_json_maybe(raw: Any, default: Any = None) -> Any:
    if raw is None:
        return default
    if isinstance(raw, (dict, list)):
        return raw
    s = str(raw or "").strip()
    if not s:
        return default
    try:
        return json.loads(s)
    except Exception:
        return default


_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(name: str) -> str:
    base = str(name or "").replace("\\", "/").split("/")[-1].strip()
    base = _SAFE_NAME_RE.sub("_", base).strip("._")
    return (base or "file")[:120]


def parse_date_maybe(value: Any) -> Optional[date]:
    """Accepts a date, a datetime or an ISO string (date part is used)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def date_iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def to_decimal(value: Any, default: Decimal | None = None) -> Optional[Decimal]:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps 0.5 exact instead of the binary expansion of the float.
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default


def decimal_to_json(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


class SimpleRateLimiter:
    """
    Sliding-window limiter, in-process only. Limits are "<count>/<seconds>".

    Windows live in a TTLCache so idle keys age out and the key count is bounded;
    when full, the least recently touched keys are evicted first.
    """

    def __init__(self, max_keys: int = 10000, ttl_seconds: int = 3600):
        self._hits: TTLCache = TTLCache(maxsize=max(100, max_keys), ttl=max(1, ttl_seconds))
        self._lock = threading.Lock()

    @staticmethod
    def _parse(spec: str) -> tuple[int, float]:
        try:
            count_s, window_s = str(spec or "").split("/", 1)
            return max(1, int(count_s)), max(1.0, float(window_s))
        except Exception:
            return 60, 60.0

    def check(self, key: str, spec: str) -> None:
        limit, window = self._parse(spec)
        now = now_monotonic()
        with self._lock:
            q = self._hits.get(key) or deque()
            while q and now - q[0] > window:
                q.popleft()
            if len(q) >= limit:
                self._hits[key] = q
                raise ApiError("RATE_LIMITED", "Too many requests. Please try again later.")
            q.append(now)
            # Reassigning refreshes the entry's expiry.
            self._hits[key] = q

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
