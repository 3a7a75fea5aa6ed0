from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select

from cache_layer import cache_get, cache_set
from models import Employee, Permission, Role, Session as DbSession
from utils import ApiError, AuthContext, iso_utc_now, new_uuid, normalize_role, parse_roles_csv, sha256_hex


ROLES = ("EMPLOYEE", "HR", "MIS")

_ALL = ["EMPLOYEE", "HR", "MIS"]
_HR = ["HR", "MIS"]
_MIS = ["MIS"]
_EMP = ["EMPLOYEE"]

PUBLIC_ACTIONS = {
    "AUTH_LOGIN",
    "AUTH_REGISTER",
}

# Actions every active role may call, regardless of dynamic overrides.
SESSION_ACTIONS = {"GET_ME", "AUTH_LOGOUT", "MY_PERMISSIONS_GET"}


STATIC_RBAC_PERMISSIONS: dict[str, list[str]] = {
    "AUTH_LOGIN": ["PUBLIC"],
    "AUTH_REGISTER": ["PUBLIC"],
    "AUTH_LOGOUT": _ALL,
    "AUTH_CHANGE_PASSWORD": _ALL,
    "GET_ME": _ALL,
    "MY_PERMISSIONS_GET": _ALL,
    # Employee self-service
    "EMP_PROFILE_GET": _ALL,
    "EMP_PROFILE_UPDATE": _EMP,
    "EMP_PROFILE_IMAGE_UPLOAD": _EMP,
    "EMP_PROFILE_IMAGE_GET": _ALL,
    "EMP_PROFILE_CHANGE_REQUEST": _EMP,
    "EMP_PROFILE_CHANGE_LIST": _EMP,
    "EMP_DOCUMENTS_LIST": _EMP,
    "EMP_DOCUMENT_UPLOAD": _EMP,
    "EMP_LEAVE_REQUEST": _EMP,
    "EMP_LEAVES_LIST": _EMP,
    "EMP_LEAVE_CREDITS_GET": _EMP,
    "EMP_CONTRACT_CURRENT": _EMP,
    "EMP_CONTRACTS_PAST": _EMP,
    "EMP_CONTRACTS_LIST": _EMP,
    "EMP_CONTRACT_DOWNLOAD": _EMP,
    "EMP_CERTIFICATE_REQUEST": _EMP,
    "EMP_CERTIFICATES_LIST": _EMP,
    "EMP_CERTIFICATE_DOWNLOAD": _EMP,
    # HR: employees + dashboard
    "HR_DASHBOARD_STATS": _HR,
    "HR_EMPLOYEES_LIST": _HR,
    "HR_EMPLOYEE_CREATE": _HR,
    "HR_EMPLOYEE_GET": _HR,
    "HR_EMPLOYEE_UPDATE": _HR,
    "HR_EMPLOYEES_BULK_PREVIEW": _HR,
    "HR_EMPLOYEES_BULK_CONFIRM": _HR,
    "HR_EMPLOYEES_TEMPLATE": _HR,
    # Contracts
    "CONTRACTS_LIST": _HR,
    "CONTRACT_CREATE": _HR,
    "CONTRACT_UPDATE": _HR,
    "CONTRACT_RENEW": _HR,
    "CONTRACT_TERMINATE": _HR,
    "CONTRACTS_EXPIRING": _HR,
    "CONTRACTS_SWEEP_EXPIRED": _MIS,
    "CONTRACT_FILE_UPLOAD": _HR,
    # Reports
    "REPORT_CONTRACTS": _HR,
    "REPORT_LEAVES": _HR,
    "REPORT_DOCUMENTS": _HR,
    # Profile change requests
    "PROFILE_REQUESTS_LIST": _HR,
    "PROFILE_REQUEST_GET": _HR,
    "PROFILE_REQUEST_APPROVE": _HR,
    "PROFILE_REQUEST_REJECT": _HR,
    # Certificates
    "CERTIFICATE_REQUESTS_LIST": _HR,
    "CERTIFICATE_APPROVE": _HR,
    "CERTIFICATE_REJECT": _HR,
    "CERTIFICATE_UPLOAD": _HR,
    # Documents
    "DOCUMENTS_LIST": _HR,
    "DOCUMENT_VIEW": _HR,
    "DOCUMENT_APPROVE": _HR,
    "DOCUMENT_REJECT": _HR,
    "DOCUMENT_REQUEST": _HR,
    # Leaves
    "LEAVES_LIST": _HR,
    "LEAVES_CALENDAR": _HR,
    "LEAVE_CREATE": _HR,
    "LEAVE_APPROVE": _HR,
    "LEAVE_REJECT": _HR,
    "LEAVE_DELETE": _HR,
    # Leave credits
    "LEAVE_CREDITS_LIST": _HR,
    "LEAVE_CREDITS_SUMMARY": _HR,
    "LEAVE_CREDITS_GET": _HR,
    "LEAVE_CREDITS_RESET": _MIS,
    "LEAVE_CREDITS_UPDATE": _MIS,
    "LEAVE_CREDITS_ROLLOVER_ENQUEUE": _MIS,
    "JOB_STATUS_GET": _MIS,
    # Departments / designations
    "DEPARTMENTS_LIST": _HR,
    "DEPARTMENT_GET": _HR,
    "DEPARTMENT_CREATE": _HR,
    "DEPARTMENT_UPDATE": _HR,
    "DEPARTMENT_ARCHIVE": _HR,
    "DEPARTMENT_UNARCHIVE": _HR,
    "DESIGNATIONS_LIST": _HR,
    "DESIGNATION_GET": _HR,
    "DESIGNATION_CREATE": _HR,
    "DESIGNATION_UPDATE": _HR,
    "DESIGNATION_ARCHIVE": _HR,
    "DESIGNATION_UNARCHIVE": _HR,
    # HR -> MIS configuration requests
    "HR_REQUEST_CREATE": ["HR"],
    "HR_REQUESTS_MINE": ["HR"],
    "HR_REQUESTS_MY_STATS": ["HR"],
    "HR_REQUEST_GET": _HR,
    "HR_REQUESTS_ALL": _MIS,
    "HR_REQUESTS_QUEUE_STATS": _MIS,
    "HR_REQUEST_ASSIGN": _MIS,
    "HR_REQUEST_APPROVE": _MIS,
    "HR_REQUEST_REJECT": _MIS,
    # MIS administration
    "AUDIT_LOGS_LIST": _MIS,
    "ACCOUNTS_LIST": _MIS,
    "ACCOUNT_UPDATE": _MIS,
    "ACCOUNT_DISABLE": _MIS,
    "ACCOUNT_REACTIVATE": _MIS,
    "ACCOUNT_RESET_PASSWORD": _MIS,
    "SYSTEM_REPORT": _MIS,
    "SYSTEM_NOTIFICATIONS_LIST": _MIS,
    "SYSTEM_NOTIFICATION_CREATE": _MIS,
    "SYSTEM_NOTIFICATION_READ": _MIS,
    "SYSTEM_NOTIFICATION_DELETE": _MIS,
    # Own notifications
    "NOTIFICATIONS_MINE": _ALL,
    "NOTIFICATION_READ": _ALL,
    "NOTIFICATION_ARCHIVE": _ALL,
    "NOTIFICATION_RESTORE": _ALL,
    "NOTIFICATION_DELETE": _ALL,
}


_RBAC_CACHE_PREFIX = "RBAC:"
_RBAC_ROLES_INDEX_KEY = f"{_RBAC_CACHE_PREFIX}ROLES_INDEX"
_RBAC_RULE_PREFIX = f"{_RBAC_CACHE_PREFIX}RULE:"
_RBAC_PERMS_FOR_ROLE_PREFIX = f"{_RBAC_CACHE_PREFIX}PERMS_FOR_ROLE:"

DISABLED_ACCOUNT_MESSAGE = "Your account has been disabled. Please contact the administrator."

_INVALID = AuthContext(valid=False, userId="", email="", role="", expiresAt="")


def is_public_action(action: str) -> bool:
    return str(action or "").upper() in PUBLIC_ACTIONS


def system_context() -> AuthContext:
    return AuthContext(valid=True, userId="SYSTEM", email="SYSTEM", role="MIS", expiresAt="")


def _parse_iso_utc_maybe(value: str) -> Optional[datetime]:
    s = str(value or "").strip()
    if not s:
        return None
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None


def issue_session_token(
    db,
    *,
    user_id: str,
    email: str,
    role: str,
    auth_version: int = 0,
    session_ttl_minutes: int,
) -> dict[str, str]:
    token = "ST-" + new_uuid().replace("-", "") + new_uuid().replace("-", "")
    now = datetime.now(timezone.utc)
    expires = now + timedelta(minutes=session_ttl_minutes)

    issued_at = iso_utc_now()
    expires_at = expires.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    db.add(
        DbSession(
            sessionId="SES-" + new_uuid(),
            tokenHash=sha256_hex(token),
            tokenPrefix=token[:12],
            userId=str(user_id or ""),
            email=str(email or ""),
            role=str(normalize_role(role) or ""),
            authVersion=int(auth_version or 0),
            issuedAt=issued_at,
            expiresAt=expires_at,
            lastSeenAt=issued_at,
            revokedAt="",
            revokedBy="",
        )
    )
    return {"sessionToken": token, "expiresAt": expires_at}


def revoke_user_sessions(db, *, user_id: str, revoked_by: str) -> int:
    """Revoke every live session of a user (logout-everywhere, disable, password reset)."""
    uid = str(user_id or "").strip()
    if not uid:
        return 0

    now = iso_utc_now()
    rows = db.execute(select(DbSession).where(DbSession.userId == uid).where(DbSession.revokedAt == "")).scalars().all()
    for s in rows:
        s.revokedAt = now
        s.revokedBy = str(revoked_by or "")
    return len(rows)


def revoke_session_token(db, token: str, *, revoked_by: str) -> bool:
    ses = db.execute(select(DbSession).where(DbSession.tokenHash == sha256_hex(token or ""))).scalar_one_or_none()
    if not ses or ses.revokedAt:
        return False
    ses.revokedAt = iso_utc_now()
    ses.revokedBy = str(revoked_by or "")
    return True


def validate_session_token(db, token: Any) -> AuthContext:
    if not token or not isinstance(token, str):
        return _INVALID

    ses = db.execute(select(DbSession).where(DbSession.tokenHash == sha256_hex(token))).scalar_one_or_none()
    if not ses or ses.revokedAt:
        return _INVALID

    exp_dt = _parse_iso_utc_maybe(ses.expiresAt)
    if exp_dt and exp_dt < datetime.now(timezone.utc):
        return _INVALID

    try:
        emp = db.get(Employee, int(ses.userId))
    except (TypeError, ValueError):
        emp = None
    if not emp:
        return _INVALID
    if emp.isSuspended:
        raise ApiError("FORBIDDEN", DISABLED_ACCOUNT_MESSAGE)
    if int(emp.authVersion or 0) != int(ses.authVersion or 0):
        return _INVALID

    role_u = normalize_role(emp.role) or ""
    if role_u != normalize_role(ses.role):
        return _INVALID

    # Avoid writing on every request: update lastSeenAt at most once per interval.
    try:
        interval_s = int(str(os.getenv("SESSION_LAST_SEEN_UPDATE_SECONDS", "300") or "300"))
    except ValueError:
        interval_s = 300
    last_dt = _parse_iso_utc_maybe(ses.lastSeenAt)
    if interval_s <= 0 or not last_dt or (datetime.now(timezone.utc) - last_dt).total_seconds() >= interval_s:
        ses.lastSeenAt = iso_utc_now()

    return AuthContext(valid=True, userId=str(emp.id), email=emp.email, role=role_u, expiresAt=ses.expiresAt)


def get_permission_rule(db, perm_type: str, perm_key: str) -> Optional[dict[str, Any]]:
    perm_type_u = str(perm_type or "").upper().strip()
    perm_key_u = str(perm_key or "").upper().strip()
    if not perm_type_u or not perm_key_u:
        return None

    cache_key = f"{_RBAC_RULE_PREFIX}{perm_type_u}:{perm_key_u}"
    cached = cache_get(cache_key)
    if cached is False:
        return None
    if isinstance(cached, dict):
        return cached

    row = (
        db.execute(select(Permission).where(Permission.permType == perm_type_u).where(Permission.permKey == perm_key_u))
        .scalars()
        .first()
    )
    if not row:
        cache_set(cache_key, False)
        return None
    out = {"enabled": bool(row.enabled), "roles": parse_roles_csv(row.rolesCsv or ""), "rolesCsv": row.rolesCsv or ""}
    cache_set(cache_key, out)
    return out


def _roles_index(db) -> dict[str, dict[str, Any]]:
    cached = cache_get(_RBAC_ROLES_INDEX_KEY)
    if isinstance(cached, dict):
        return cached

    rows = db.execute(select(Role)).scalars().all()
    out: dict[str, dict[str, Any]] = {}
    if not rows:
        for rc in ROLES:
            out[rc] = {"roleCode": rc, "roleName": rc, "status": "ACTIVE"}
    for r in rows:
        code = normalize_role(r.roleCode)
        if code:
            out[code] = {"roleCode": code, "roleName": str(r.roleName or code), "status": str(r.status or "ACTIVE").upper()}
    cache_set(_RBAC_ROLES_INDEX_KEY, out)
    return out


def is_role_active(db, role: str) -> bool:
    r = normalize_role(role)
    if not r:
        return False
    it = _roles_index(db).get(r)
    return bool(it) and str(it.get("status", "")).upper() == "ACTIVE"


def assert_permission(db, role: str, action: str) -> None:
    role_u = normalize_role(role) or ""
    action_u = str(action or "").upper().strip()

    if is_public_action(action_u):
        return

    allowed_static = STATIC_RBAC_PERMISSIONS.get(action_u)
    rule = get_permission_rule(db, "ACTION", action_u)
    has_dyn = bool(rule and rule.get("enabled") is True)

    if not allowed_static and not has_dyn:
        raise ApiError("BAD_REQUEST", f"Unknown action: {action_u}")

    if not role_u or role_u == "PUBLIC":
        raise ApiError("AUTH_INVALID", "Login required")
    if not is_role_active(db, role_u):
        raise ApiError("FORBIDDEN", f"Inactive or unknown role: {role_u}")

    if action_u in SESSION_ACTIONS:
        return

    if has_dyn:
        roles = rule.get("roles") or []
        allowed = "PUBLIC" in roles or role_u in roles
    else:
        allowed = role_u in (allowed_static or [])

    if not allowed:
        raise ApiError("FORBIDDEN", "Access denied. Insufficient permissions.")


def permissions_for_role(db, role: str) -> dict[str, Any]:
    role_u = normalize_role(role)
    if not role_u:
        raise ApiError("AUTH_INVALID", "Login required")

    cache_key = f"{_RBAC_PERMS_FOR_ROLE_PREFIX}{role_u}"
    cached = cache_get(cache_key)
    if isinstance(cached, dict):
        return cached

    action_keys: set[str] = set()
    overridden: set[str] = set()
    rows = db.execute(select(Permission).where(Permission.permType == "ACTION")).scalars().all()
    for row in rows:
        key = str(row.permKey or "").upper().strip()
        if not key or not row.enabled:
            continue
        overridden.add(key)
        roles = parse_roles_csv(row.rolesCsv or "")
        if role_u in roles or "PUBLIC" in roles:
            action_keys.add(key)

    for key, roles in STATIC_RBAC_PERMISSIONS.items():
        if key in overridden:
            continue
        if role_u in roles or "PUBLIC" in roles:
            action_keys.add(key)

    out = {"role": role_u, "actionKeys": sorted(action_keys)}
    cache_set(cache_key, out)
    return out


def role_or_public(auth: Optional[AuthContext]) -> str:
    if not auth or not auth.valid:
        return "PUBLIC"
    return normalize_role(auth.role) or "PUBLIC"
