from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Any

from sqlalchemy import select

from actions.helpers import actor_id, append_audit, current_employee, get_or_404, int_field, parse_id, str_field
from models import Employee, Leave
from services import leave_credits as ledger
from services.notifications import notify, notify_roles
from services.school_year import local_today, parse_school_year, school_year
from utils import ApiError, AuthContext, date_iso, decimal_to_json, iso_utc_now, parse_date_maybe, to_decimal


_log = logging.getLogger("leave_credits")


def serialize_leave(leave: Leave, emp: Employee | None = None) -> dict[str, Any]:
    out = {
        "id": leave.id,
        "employeeId": leave.employeeId,
        "type": leave.type,
        "startDate": date_iso(leave.startDate),
        "endDate": date_iso(leave.endDate),
        "reason": leave.reason or "",
        "status": leave.status,
        "rejectionReason": leave.rejectionReason or "",
        "schoolYear": leave.schoolYear,
        "daysCount": decimal_to_json(leave.daysCount) if leave.daysCount is not None else None,
        "reviewedBy": leave.reviewedBy,
        "reviewedAt": leave.reviewedAt or "",
        "createdAt": leave.createdAt or "",
    }
    if emp is not None:
        out["employee"] = {
            "id": emp.id,
            "employeeId": emp.employeeId,
            "fullName": emp.fullName or "",
            "email": emp.email,
            "contactNumber": emp.contactNumber or "",
        }
    return out


def with_employees(db, rows: list[Leave]) -> list[dict[str, Any]]:
    ids = {r.employeeId for r in rows}
    emps = {}
    if ids:
        emps = {e.id: e for e in db.execute(select(Employee).where(Employee.id.in_(ids))).scalars().all()}
    return [serialize_leave(r, emps.get(r.employeeId)) for r in rows]


def _parse_range(data) -> tuple[str, date, date]:
    leave_type = str_field(data, "type")
    start = parse_date_maybe((data or {}).get("startDate"))
    end = parse_date_maybe((data or {}).get("endDate"))
    if not leave_type or not start or not end:
        raise ApiError("BAD_REQUEST", "Missing required fields")
    if end < start:
        raise ApiError("BAD_REQUEST", "End date cannot be before start date")
    return leave_type, start, end


def _days_for(data, start: date, end: date):
    span = ledger.inclusive_days(start, end)
    raw = (data or {}).get("daysCount")
    if raw in (None, ""):
        return span
    days = to_decimal(raw)
    if days is None or days <= 0 or days > span:
        raise ApiError("BAD_REQUEST", "Invalid daysCount")
    return days


def _apply_usage_best_effort(db, leave: Leave) -> bool:
    savepoint = db.begin_nested()
    try:
        ledger.apply_leave_usage(db, leave.id)
        savepoint.commit()
        return True
    except Exception:
        savepoint.rollback()
        _log.exception("leave credit update failed leave=%s employee=%s", leave.id, leave.employeeId)
        return False


# Employee self-service


def request_leave(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    leave_type, start, end = _parse_range(data)
    days = _days_for(data, start, end)

    now = iso_utc_now()
    leave = Leave(
        employeeId=emp.id,
        type=leave_type,
        startDate=start,
        endDate=end,
        reason=str_field(data, "reason"),
        status="Pending",
        schoolYear=school_year(start),
        daysCount=days,
        createdAt=now,
        updatedAt=now,
    )
    db.add(leave)
    db.flush()

    notify_roles(
        db,
        ["hr"],
        f"New leave request from {emp.fullName} ({leave_type}) for {decimal_to_json(days):g} day(s) from {start.isoformat()} to {end.isoformat()}.",
    )
    append_audit(
        db,
        entityType="LEAVE",
        entityId=str(leave.id),
        action="LEAVE_REQUEST",
        stageTag="LEAVE",
        toState="Pending",
        actor=auth,
        after=serialize_leave(leave),
    )
    return {"message": "Leave requested successfully", "leave": serialize_leave(leave)}


def my_leaves(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    rows = db.execute(select(Leave).where(Leave.employeeId == emp.id).order_by(Leave.startDate.desc(), Leave.id.desc())).scalars().all()
    return {"items": [serialize_leave(r) for r in rows]}


# HR


def list_leaves(data, auth: AuthContext | None, db, cfg):
    q = select(Leave)
    status = str_field(data, "status")
    leave_type = str_field(data, "type")
    if status:
        q = q.where(Leave.status == status)
    if leave_type:
        q = q.where(Leave.type == leave_type)
    if str_field(data, "employeeId"):
        q = q.where(Leave.employeeId == parse_id(data.get("employeeId"), "Employee"))
    start = parse_date_maybe((data or {}).get("startDate"))
    end = parse_date_maybe((data or {}).get("endDate"))
    if start:
        q = q.where(Leave.startDate >= start)
    if end:
        q = q.where(Leave.startDate <= end)
    rows = db.execute(q.order_by(Leave.startDate.desc(), Leave.id.desc())).scalars().all()
    return {"items": with_employees(db, rows)}


def leave_calendar(data, auth: AuthContext | None, db, cfg):
    today = local_today(getattr(cfg, "APP_TIMEZONE", ""))
    year = int_field(data, "year", today.year)
    month = int_field(data, "month", today.month)
    if not 1 <= month <= 12 or not 1900 <= year <= 9999:
        raise ApiError("BAD_REQUEST", "Invalid month or year")

    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    rows = (
        db.execute(
            select(Leave)
            .where(Leave.startDate <= last)
            .where(Leave.endDate >= first)
            .order_by(Leave.startDate.asc(), Leave.id.asc())
        )
        .scalars()
        .all()
    )
    return {"month": month, "year": year, "leaves": with_employees(db, rows)}


def create_leave(data, auth: AuthContext | None, db, cfg):
    """HR-entered leave: recorded as Approved and debited immediately."""
    emp_id = parse_id((data or {}).get("employeeId"), "Employee") if (data or {}).get("employeeId") else None
    if emp_id is None:
        raise ApiError("BAD_REQUEST", "Missing required fields")
    leave_type, start, end = _parse_range(data)
    emp = db.get(Employee, emp_id)
    if not emp:
        raise ApiError("NOT_FOUND", "Employee not found")

    sy = str_field(data, "schoolYear")
    if sy:
        parse_school_year(sy)

    now = iso_utc_now()
    leave = Leave(
        employeeId=emp.id,
        type=leave_type,
        startDate=start,
        endDate=end,
        reason=str_field(data, "reason"),
        status="Approved",
        schoolYear=sy or school_year(start),
        daysCount=_days_for(data, start, end),
        reviewedBy=actor_id(auth),
        reviewedAt=now,
        createdAt=now,
        updatedAt=now,
    )
    db.add(leave)
    db.flush()

    credited = _apply_usage_best_effort(db, leave)
    notify(db, emp.id, f"A leave ({leave_type}) has been set for you from {start.isoformat()} to {end.isoformat()}.")
    append_audit(
        db,
        entityType="LEAVE",
        entityId=str(leave.id),
        action="LEAVE_CREATE",
        stageTag="LEAVE",
        toState="Approved",
        actor=auth,
        after=serialize_leave(leave),
        meta={"credited": credited},
    )
    return {"message": "Leave created successfully", "leave": serialize_leave(leave, emp)}


def _pending_leave(db, data) -> Leave:
    leave = get_or_404(db, Leave, (data or {}).get("id"), "Leave")
    if leave.status != "Pending":
        raise ApiError("STATE_CONFLICT", "Only pending leaves can be reviewed")
    return leave


def approve_leave(data, auth: AuthContext | None, db, cfg):
    leave = _pending_leave(db, data)
    leave.status = "Approved"
    leave.reviewedBy = actor_id(auth)
    leave.reviewedAt = iso_utc_now()
    leave.updatedAt = leave.reviewedAt
    db.flush()

    credited = _apply_usage_best_effort(db, leave)
    notify(db, leave.employeeId, f"Your leave request ({leave.type}) has been approved.")
    emp = db.get(Employee, leave.employeeId)
    append_audit(
        db,
        entityType="LEAVE",
        entityId=str(leave.id),
        action="LEAVE_APPROVE",
        stageTag="LEAVE",
        fromState="Pending",
        toState="Approved",
        remark=f"Approved {leave.type} leave for employee {emp.fullName if emp else leave.employeeId}",
        actor=auth,
        meta={"credited": credited, "daysCount": decimal_to_json(leave.daysCount)},
    )
    return {"message": "Leave approved successfully", "leave": serialize_leave(leave, emp)}


def reject_leave(data, auth: AuthContext | None, db, cfg):
    leave = _pending_leave(db, data)
    reason = str_field(data, "reason")
    leave.status = "Rejected"
    leave.rejectionReason = reason
    leave.reviewedBy = actor_id(auth)
    leave.reviewedAt = iso_utc_now()
    leave.updatedAt = leave.reviewedAt
    db.flush()

    notify(db, leave.employeeId, f"Your leave request ({leave.type}) has been rejected. Reason: {reason or 'Not specified'}")
    append_audit(
        db,
        entityType="LEAVE",
        entityId=str(leave.id),
        action="LEAVE_REJECT",
        stageTag="LEAVE",
        fromState="Pending",
        toState="Rejected",
        remark=reason,
        actor=auth,
    )
    return {"message": "Leave rejected successfully", "leave": serialize_leave(leave)}


def delete_leave(data, auth: AuthContext | None, db, cfg):
    leave = get_or_404(db, Leave, (data or {}).get("id"), "Leave")
    if leave.status != "Rejected":
        raise ApiError("BAD_REQUEST", "Only rejected leaves can be deleted")

    append_audit(
        db,
        entityType="LEAVE",
        entityId=str(leave.id),
        action="LEAVE_DELETE",
        stageTag="LEAVE",
        fromState="Rejected",
        actor=auth,
        before=serialize_leave(leave),
    )
    db.delete(leave)
    db.flush()
    return {"message": "Leave deleted successfully"}
