from __future__ import annotations

import time

from sqlalchemy import func, select

from actions.helpers import append_audit, current_employee, str_field
from auth import DISABLED_ACCOUNT_MESSAGE, issue_session_token, permissions_for_role, revoke_session_token, revoke_user_sessions
from models import Employee
from passwords import hash_password, verify_password
from utils import ApiError, AuthContext, iso_utc_now, normalize_role


def _find_by_email(db, email: str):
    email_lc = str(email or "").strip().lower()
    if not email_lc:
        return None
    return db.execute(select(Employee).where(func.lower(Employee.email) == email_lc)).scalars().first()


def serialize_user(emp: Employee) -> dict:
    return {
        "id": emp.id,
        "employeeId": emp.employeeId,
        "role": str(emp.role or "").lower(),
        "email": emp.email,
        "fullName": emp.fullName or "",
        "profileImage": emp.profileImage or "",
    }


def _session_for(db, cfg, emp: Employee) -> dict:
    return issue_session_token(
        db,
        user_id=str(emp.id),
        email=emp.email,
        role=emp.role,
        auth_version=int(emp.authVersion or 0),
        session_ttl_minutes=cfg.SESSION_TTL_MINUTES,
    )


def _ctx(emp: Employee, expires_at: str) -> AuthContext:
    return AuthContext(valid=True, userId=str(emp.id), email=emp.email, role=normalize_role(emp.role) or "", expiresAt=expires_at)


def login(data, auth: AuthContext | None, db, cfg):
    email = str_field(data, "email")
    password = str((data or {}).get("password") or "")
    if not email or not password:
        raise ApiError("BAD_REQUEST", "Email and password are required")

    emp = _find_by_email(db, email)
    if not emp:
        raise ApiError("AUTH_INVALID", "Invalid credentials")
    if emp.isSuspended:
        raise ApiError("FORBIDDEN", DISABLED_ACCOUNT_MESSAGE)
    if not verify_password(password, emp.password):
        raise ApiError("AUTH_INVALID", "Invalid credentials")

    emp.lastLoginAt = iso_utc_now()
    ses = _session_for(db, cfg, emp)

    append_audit(
        db,
        entityType="AUTH",
        entityId=str(emp.id),
        action="AUTH_LOGIN",
        stageTag="AUTH_LOGIN",
        remark=f"User logged in: {emp.email}",
        actor=_ctx(emp, ses["expiresAt"]),
    )
    return {"sessionToken": ses["sessionToken"], "expiresAt": ses["expiresAt"], "user": serialize_user(emp)}


def register(data, auth: AuthContext | None, db, cfg):
    name = str_field(data, "name") or str_field(data, "fullName")
    email = str_field(data, "email").lower()
    password = str((data or {}).get("password") or "")
    if not name:
        raise ApiError("BAD_REQUEST", "Name is required")
    if not email or "@" not in email:
        raise ApiError("BAD_REQUEST", "A valid email is required")

    if _find_by_email(db, email):
        raise ApiError("BAD_REQUEST", "An account with this email already exists.")

    now = iso_utc_now()
    emp = Employee(
        employeeId=f"EMP{int(time.time() * 1000)}",
        fullName=name,
        email=email,
        password=hash_password(password, min_length=cfg.PASSWORD_MIN_LENGTH),
        role="employee",
        status="Active",
        isSuspended=False,
        createdAt=now,
        createdBy="SELF_REGISTER",
        updatedAt=now,
        updatedBy="SELF_REGISTER",
    )
    db.add(emp)
    db.flush()

    ses = _session_for(db, cfg, emp)
    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=str(emp.id),
        action="AUTH_REGISTER",
        stageTag="AUTH_REGISTER",
        remark=f"New user registered: {emp.email}",
        actor=_ctx(emp, ses["expiresAt"]),
    )
    return {"sessionToken": ses["sessionToken"], "expiresAt": ses["expiresAt"], "user": serialize_user(emp)}


def logout(data, auth: AuthContext | None, db, cfg):
    token = str_field(data, "token")
    revoked = revoke_session_token(db, token, revoked_by=str(auth.userId if auth else "")) if token else False
    return {"loggedOut": True, "revoked": revoked}


def get_me(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    return {"user": serialize_user(emp), "expiresAt": auth.expiresAt if auth else ""}


def my_permissions(data, auth: AuthContext | None, db, cfg):
    return permissions_for_role(db, auth.role if auth else "")


def change_password(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    current = str((data or {}).get("currentPassword") or "")
    new = str((data or {}).get("newPassword") or "")
    if not verify_password(current, emp.password):
        raise ApiError("BAD_REQUEST", "Current password is incorrect")
    if current == new:
        raise ApiError("BAD_REQUEST", "New password must be different from the current password")

    emp.password = hash_password(new, min_length=cfg.PASSWORD_MIN_LENGTH)
    emp.authVersion = int(emp.authVersion or 0) + 1
    emp.updatedAt = iso_utc_now()
    emp.updatedBy = str(emp.id)
    revoke_user_sessions(db, user_id=str(emp.id), revoked_by=str(emp.id))

    ses = _session_for(db, cfg, emp)
    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=str(emp.id),
        action="AUTH_CHANGE_PASSWORD",
        stageTag="AUTH_PASSWORD",
        actor=auth,
    )
    return {"message": "Password changed successfully", "sessionToken": ses["sessionToken"], "expiresAt": ses["expiresAt"]}
