from __future__ import annotations

from typing import Any

from sqlalchemy import func, select

from actions.employees import EMPLOYEE_ROLES, EMPLOYEE_STATUSES
from actions.helpers import actor_id, actor_label, append_audit, get_or_404, int_field, json_dict, str_field
from auth import revoke_user_sessions
from db import get_pool_stats
from models import AuditLog, Certificate, Contract, Document, Employee, Leave, Session
from passwords import hash_password
from services.notifications import notify
from utils import ApiError, AuthContext, iso_utc_now


def account_status(emp: Employee) -> str:
    if emp.isSuspended:
        return "DEACTIVATED"
    return "ACTIVE" if str(emp.status or "").lower() == "active" else "SUSPENDED"


def serialize_account(emp: Employee) -> dict[str, Any]:
    return {
        "id": emp.id,
        "employeeId": emp.employeeId,
        "fullName": emp.fullName or "",
        "email": emp.email,
        "role": emp.role,
        "status": emp.status,
        "isSuspended": bool(emp.isSuspended),
        "lastLoginAt": emp.lastLoginAt or "",
        "createdAt": emp.createdAt or "",
        "accountStatus": account_status(emp),
    }


def _invalidate_sessions(db, emp: Employee, auth: AuthContext | None) -> int:
    emp.authVersion = int(emp.authVersion or 0) + 1
    return revoke_user_sessions(db, user_id=str(emp.id), revoked_by=actor_label(auth))


def _not_self(emp: Employee, auth: AuthContext | None, what: str) -> None:
    if emp.id == actor_id(auth):
        raise ApiError("BAD_REQUEST", f"You cannot {what} your own account")


def audit_logs(data, auth: AuthContext | None, db, cfg):
    limit = max(1, min(int_field(data, "limit", 200), 1000))
    q = select(AuditLog)
    if str_field(data, "entityType"):
        q = q.where(AuditLog.entityType == str_field(data, "entityType").upper())
    if str_field(data, "action"):
        q = q.where(AuditLog.action == str_field(data, "action").upper())
    rows = db.execute(q.order_by(AuditLog.at.desc()).limit(limit)).scalars().all()
    return {
        "items": [
            {
                "logId": r.logId,
                "entityType": r.entityType,
                "entityId": r.entityId,
                "action": r.action,
                "fromState": r.fromState,
                "toState": r.toState,
                "stageTag": r.stageTag,
                "remark": r.remark,
                "actorUserId": r.actorUserId,
                "actorRole": r.actorRole,
                "actorEmail": r.actorEmail,
                "at": r.at,
                "correlationId": r.correlationId,
                "meta": json_dict(r.metaJson),
            }
            for r in rows
        ]
    }


def list_accounts(data, auth: AuthContext | None, db, cfg):
    rows = db.execute(select(Employee).order_by(Employee.createdAt.desc(), Employee.id.desc())).scalars().all()
    return {"items": [serialize_account(e) for e in rows]}


def update_account(data, auth: AuthContext | None, db, cfg):
    emp = get_or_404(db, Employee, (data or {}).get("id"), "Employee")
    status = str_field(data, "status")
    role = str_field(data, "role").lower()
    if status and status not in EMPLOYEE_STATUSES:
        raise ApiError("BAD_REQUEST", "Invalid employee status")
    if role and role not in EMPLOYEE_ROLES:
        raise ApiError("BAD_REQUEST", "Invalid role")

    changes = []
    if status and status != emp.status:
        changes.append(f"status from {emp.status} to {status}")
        emp.status = status
    if role and role != emp.role:
        _not_self(emp, auth, "change the role of")
        changes.append(f"role from {emp.role} to {role}")
        emp.role = role
        _invalidate_sessions(db, emp, auth)
    emp.updatedAt = iso_utc_now()
    emp.updatedBy = actor_label(auth)
    db.flush()

    append_audit(
        db,
        entityType="ACCOUNT",
        entityId=str(emp.id),
        action="ACCOUNT_UPDATE",
        stageTag="MIS_ACCOUNT",
        remark=f"Updated account for {emp.fullName} ({emp.employeeId}): {', '.join(changes) or 'no changes'}",
        actor=auth,
    )
    return {"message": "Account updated successfully", "account": serialize_account(emp)}


def disable_account(data, auth: AuthContext | None, db, cfg):
    emp = get_or_404(db, Employee, (data or {}).get("id"), "Account")
    _not_self(emp, auth, "disable")
    prev = account_status(emp)
    emp.isSuspended = True
    emp.status = "Terminated"
    emp.updatedAt = iso_utc_now()
    emp.updatedBy = actor_label(auth)
    revoked = _invalidate_sessions(db, emp, auth)
    db.flush()

    append_audit(
        db,
        entityType="ACCOUNT",
        entityId=str(emp.id),
        action="ACCOUNT_DISABLE",
        stageTag="MIS_ACCOUNT",
        fromState=prev,
        toState="DEACTIVATED",
        remark=f"Disabled account for {emp.fullName} ({emp.employeeId})",
        actor=auth,
        meta={"sessionsRevoked": revoked},
    )
    return {"message": "Account disabled successfully", "account": serialize_account(emp)}


def reactivate_account(data, auth: AuthContext | None, db, cfg):
    emp = get_or_404(db, Employee, (data or {}).get("id"), "Account")
    prev = account_status(emp)
    emp.isSuspended = False
    emp.status = "Active"
    emp.updatedAt = iso_utc_now()
    emp.updatedBy = actor_label(auth)
    db.flush()

    append_audit(
        db,
        entityType="ACCOUNT",
        entityId=str(emp.id),
        action="ACCOUNT_REACTIVATE",
        stageTag="MIS_ACCOUNT",
        fromState=prev,
        toState="ACTIVE",
        remark=f"Reactivated account for {emp.fullName} ({emp.employeeId})",
        actor=auth,
    )
    return {"message": "Account reactivated successfully", "account": serialize_account(emp)}


def reset_password(data, auth: AuthContext | None, db, cfg):
    new_password = str((data or {}).get("newPassword") or "")
    if not new_password:
        raise ApiError("BAD_REQUEST", "New password is required")
    emp = get_or_404(db, Employee, (data or {}).get("id"), "Account")

    emp.password = hash_password(new_password, min_length=cfg.PASSWORD_MIN_LENGTH)
    emp.updatedAt = iso_utc_now()
    emp.updatedBy = actor_label(auth)
    revoked = _invalidate_sessions(db, emp, auth)
    db.flush()

    notify(
        db,
        emp.id,
        "Your password was changed by MIS Administrator. If you did not request this change, please contact the administrator immediately.",
    )
    append_audit(
        db,
        entityType="ACCOUNT",
        entityId=str(emp.id),
        action="ACCOUNT_RESET_PASSWORD",
        stageTag="MIS_ACCOUNT",
        remark=f"Reset password for {emp.fullName} ({emp.employeeId})",
        actor=auth,
        meta={"sessionsRevoked": revoked},
    )
    return {"message": "Password reset successfully", "account": serialize_account(emp)}


def _count(db, model, *where) -> int:
    q = select(func.count()).select_from(model)
    for w in where:
        q = q.where(w)
    return int(db.execute(q).scalar_one() or 0)


def system_report(data, auth: AuthContext | None, db, cfg):
    by_role = {
        str(role or "").lower(): int(n)
        for role, n in db.execute(select(Employee.role, func.count(Employee.id)).group_by(Employee.role)).all()
    }
    return {
        "totalEmployees": _count(db, Employee),
        "activeEmployees": _count(db, Employee, func.lower(Employee.status) == "active"),
        "suspendedAccounts": _count(db, Employee, Employee.isSuspended == True),  # noqa: E712
        "accountsByRole": by_role,
        "activeContracts": _count(db, Contract, Contract.status == "Active"),
        "pendingLeaves": _count(db, Leave, Leave.status == "Pending"),
        "pendingDocuments": _count(db, Document, Document.status == "Pending"),
        "pendingCertificates": _count(db, Certificate, Certificate.status == "Pending"),
        "activeSessions": _count(db, Session, Session.revokedAt == "", Session.expiresAt > iso_utc_now()),
        "auditLogEntries": _count(db, AuditLog),
        "dbPool": get_pool_stats(),
    }
