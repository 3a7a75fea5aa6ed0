from __future__ import annotations

import json
import os
from typing import Any, Optional

from flask import g, has_request_context

from models import AuditLog, Employee
from utils import ApiError, AuthContext, iso_utc_now, redact_for_audit, safe_json_string


def _correlation_id() -> str:
    if has_request_context():
        return str(getattr(g, "request_id", "") or "")
    return ""


def append_audit(
    db,
    *,
    entityType: str,
    entityId: str,
    action: str,
    stageTag: str = "",
    fromState: str = "",
    toState: str = "",
    remark: str = "",
    actor: Optional[AuthContext] = None,
    at: str = "",
    before: Any = None,
    after: Any = None,
    meta: Any = None,
) -> None:
    db.add(
        AuditLog(
            logId=f"LOG-{os.urandom(16).hex()}",
            entityType=str(entityType or ""),
            entityId=str(entityId or ""),
            action=str(action or "").upper(),
            fromState=str(fromState or ""),
            toState=str(toState or ""),
            stageTag=str(stageTag or ""),
            remark=str(remark or ""),
            actorUserId=str(actor.userId) if actor else "SYSTEM",
            actorRole=str(actor.role) if actor else "SYSTEM",
            actorEmail=str(actor.email or "") if actor else "",
            at=at or iso_utc_now(),
            correlationId=_correlation_id(),
            beforeJson=safe_json_string(redact_for_audit(before), "") if before is not None else "",
            afterJson=safe_json_string(redact_for_audit(after), "") if after is not None else "",
            metaJson=safe_json_string(redact_for_audit(meta), "") if meta is not None else "",
        )
    )


def actor_id(auth: Optional[AuthContext]) -> Optional[int]:
    """Employee primary key of the caller; None for SYSTEM/internal calls."""
    if not auth or not auth.valid:
        return None
    try:
        return int(auth.userId)
    except (TypeError, ValueError):
        return None


def actor_label(auth: Optional[AuthContext]) -> str:
    if not auth:
        return "SYSTEM"
    return str(auth.userId or auth.email or "SYSTEM")


def require_login(auth: Optional[AuthContext]) -> AuthContext:
    if not auth or not auth.valid:
        raise ApiError("AUTH_INVALID", "Login required")
    return auth


def current_employee(db, auth: Optional[AuthContext]) -> Employee:
    emp_id = actor_id(require_login(auth))
    emp = db.get(Employee, emp_id) if emp_id is not None else None
    if not emp:
        raise ApiError("NOT_FOUND", "Employee not found")
    return emp


def parse_id(value: Any, what: str = "Record") -> int:
    try:
        out = int(str(value).strip())
    except (TypeError, ValueError):
        raise ApiError("NOT_FOUND", f"{what} not found")
    if out <= 0:
        raise ApiError("NOT_FOUND", f"{what} not found")
    return out


def get_or_404(db, model, value: Any, what: str):
    row = db.get(model, parse_id(value, what))
    if not row:
        raise ApiError("NOT_FOUND", f"{what} not found")
    return row


def str_field(data: Any, key: str) -> str:
    return str((data or {}).get(key) or "").strip()


def bool_field(data: Any, key: str) -> bool:
    """Form posts send "true"/"false" strings."""
    raw = (data or {}).get(key)
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().lower() in {"1", "true", "yes"}


def int_field(data: Any, key: str, default: int) -> int:
    raw = (data or {}).get(key)
    if raw in (None, ""):
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ApiError("BAD_REQUEST", f"Invalid {key}")


def json_list(raw: Any) -> list[Any]:
    if isinstance(raw, list):
        return raw
    try:
        v = json.loads(str(raw or "[]"))
    except ValueError:
        return []
    return v if isinstance(v, list) else []


def json_dict(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        v = json.loads(str(raw or "{}"))
    except ValueError:
        return {}
    return v if isinstance(v, dict) else {}
