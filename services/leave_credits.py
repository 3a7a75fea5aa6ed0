"""
Leave-credit ledger: one LeaveCredit row per (employee, school year).

Allocation depends on the employment type of the employee's Active contract.
Unused balance carries into the next school year up to MAX_CARRYOVER days; the
rest is forfeited. Every debit is recorded in LeaveCreditUsage keyed by leave id,
so applying the same leave twice is a no-op.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from models import Contract, Employee, Leave, LeaveCredit, LeaveCreditUsage
from services.school_year import current_school_year, parse_school_year, previous_school_year, school_year
from utils import ApiError, decimal_to_json, iso_utc_now


_log = logging.getLogger("leave_credits")

EMPLOYMENT_TYPES = ("permanent", "contractual", "job-order", "part-time")

ALLOCATION_BY_TYPE: dict[str, Decimal] = {
    "permanent": Decimal("15"),
    "contractual": Decimal("10"),
    "job-order": Decimal("5"),
    "part-time": Decimal("7"),
}
DEFAULT_ALLOCATION = Decimal("10")
MAX_CARRYOVER = Decimal("5")

ZERO = Decimal("0")


def normalize_employment_type(employment_type: str) -> str:
    """Blank means permanent."""
    return str(employment_type or "").strip().lower() or "permanent"


def allocation_for(employment_type: str) -> Decimal:
    return ALLOCATION_BY_TYPE.get(normalize_employment_type(employment_type), DEFAULT_ALLOCATION)


def inclusive_days(start: date, end: date) -> Decimal:
    """Both endpoints count: Mon..Fri is 5 days; reversed ranges count the same."""
    return Decimal(abs((end - start).days) + 1)


def _find(db, employee_id: int, sy: str) -> Optional[LeaveCredit]:
    return (
        db.execute(select(LeaveCredit).where(LeaveCredit.employeeId == employee_id).where(LeaveCredit.schoolYear == sy))
        .scalars()
        .first()
    )


def active_contract_for(db, employee_id: int) -> Optional[Contract]:
    return (
        db.execute(select(Contract).where(Contract.employeeId == employee_id).where(Contract.status == "Active"))
        .scalars()
        .first()
    )


def initialize(db, employee_id: int, employment_type: str, sy: str | None = None) -> LeaveCredit:
    sy = sy or current_school_year()
    row = _find(db, employee_id, sy)
    if row:
        return row

    employment_type = normalize_employment_type(employment_type)
    now = iso_utc_now()
    row = LeaveCredit(
        employeeId=employee_id,
        schoolYear=sy,
        employmentType=employment_type,
        totalCredits=allocation_for(employment_type),
        usedCredits=ZERO,
        carriedOverCredits=ZERO,
        monetizableCredits=ZERO,
        forfeitedCredits=ZERO,
        createdAt=now,
        updatedAt=now,
    )
    savepoint = db.begin_nested()
    try:
        db.add(row)
        db.flush()
        savepoint.commit()
    except IntegrityError:
        # Another transaction created the row first; use theirs.
        savepoint.rollback()
        row = _find(db, employee_id, sy)
        if row is None:
            raise
    return row


def get(db, employee_id: int, sy: str | None = None) -> LeaveCredit:
    sy = sy or current_school_year()
    emp = db.get(Employee, employee_id)
    if not emp:
        raise ApiError("NOT_FOUND", "Employee not found")

    row = _find(db, employee_id, sy)
    if row:
        return row

    contract = active_contract_for(db, employee_id)
    employment_type = contract.contractType if contract else "permanent"
    return initialize(db, employee_id, employment_type, sy)


def apply_leave_usage(db, leave_id: int) -> LeaveCredit:
    leave = db.get(Leave, leave_id)
    if not leave:
        raise ApiError("NOT_FOUND", "Leave not found")

    sy = leave.schoolYear or school_year(leave.startDate)
    days = Decimal(leave.daysCount) if leave.daysCount is not None else inclusive_days(leave.startDate, leave.endDate)

    row = get(db, leave.employeeId, sy)

    if leave.daysCount is None:
        leave.daysCount = days
    if not leave.schoolYear:
        leave.schoolYear = sy

    already = db.execute(select(LeaveCreditUsage.id).where(LeaveCreditUsage.leaveId == leave.id)).scalar_one_or_none()
    if already is not None:
        _log.info("leave usage already applied leave=%s", leave.id)
        return row

    savepoint = db.begin_nested()
    try:
        db.add(
            LeaveCreditUsage(
                leaveId=leave.id,
                leaveCreditId=row.id,
                employeeId=leave.employeeId,
                schoolYear=sy,
                days=days,
                appliedAt=iso_utc_now(),
            )
        )
        row.usedCredits = Decimal(row.usedCredits or 0) + days
        row.updatedAt = iso_utc_now()
        db.flush()
        savepoint.commit()
    except IntegrityError:
        savepoint.rollback()
        _log.info("leave usage applied concurrently leave=%s", leave.id)
        row = _find(db, leave.employeeId, sy) or row

    _log.info("leave usage applied leave=%s employee=%s schoolYear=%s days=%s", leave.id, leave.employeeId, sy, days)
    return row


def rollover(db, new_school_year: str) -> dict[str, Any]:
    parse_school_year(new_school_year)
    prev_sy = previous_school_year(new_school_year)

    employees = (
        db.execute(
            select(Employee)
            .where(func.lower(Employee.status).in_(["active", "probationary"]))
            .order_by(Employee.id.asc())
        )
        .scalars()
        .all()
    )

    details: list[dict[str, Any]] = []
    for emp in employees:
        contract = active_contract_for(db, emp.id)
        if not contract:
            continue
        employment_type = contract.contractType

        carried = ZERO
        forfeited = ZERO
        prev_row = _find(db, emp.id, prev_sy)
        if prev_row:
            remaining = prev_row.remainingCredits
            monetizable = ZERO
            if remaining > 0:
                carried = min(remaining, MAX_CARRYOVER)
                forfeited = max(ZERO, remaining - MAX_CARRYOVER)
                monetizable = min(remaining, MAX_CARRYOVER)
            prev_row.forfeitedCredits = forfeited
            prev_row.monetizableCredits = monetizable
            prev_row.updatedAt = iso_utc_now()

        new_row = _find(db, emp.id, new_school_year)
        if new_row is None:
            now = iso_utc_now()
            new_row = LeaveCredit(
                employeeId=emp.id,
                schoolYear=new_school_year,
                employmentType=employment_type,
                totalCredits=allocation_for(employment_type),
                usedCredits=ZERO,
                carriedOverCredits=carried,
                monetizableCredits=ZERO,
                forfeitedCredits=ZERO,
                createdAt=now,
                updatedAt=now,
            )
            db.add(new_row)
            db.flush()
        else:
            # Created earlier by a balance lookup.
            new_row.carriedOverCredits = carried
            new_row.updatedAt = iso_utc_now()
            db.flush()

        details.append(
            {
                "employeeId": emp.id,
                "employeeName": emp.fullName or "",
                "employmentType": employment_type,
                "newCredits": decimal_to_json(allocation_for(employment_type)),
                "carriedOver": decimal_to_json(carried),
                "forfeited": decimal_to_json(forfeited),
            }
        )

    _log.info("rollover schoolYear=%s previous=%s processed=%s", new_school_year, prev_sy, len(details))
    return {
        "success": True,
        "schoolYear": new_school_year,
        "employeesProcessed": len(details),
        "details": details,
    }


def change_employment_type(db, employee_id: int, new_type: str, sy: str | None = None) -> LeaveCredit:
    sy = sy or current_school_year()
    row = _find(db, employee_id, sy)
    if row is None:
        return initialize(db, employee_id, new_type, sy)

    row.employmentType = normalize_employment_type(new_type)
    row.totalCredits = allocation_for(new_type)
    row.updatedAt = iso_utc_now()
    db.flush()
    return row


def summary_by_type(db, sy: str | None = None) -> dict[str, dict[str, Any]]:
    sy = sy or current_school_year()
    summary: dict[str, dict[str, Any]] = {t: {"count": 0, "totalCredits": ZERO, "usedCredits": ZERO} for t in EMPLOYMENT_TYPES}

    rows = db.execute(select(LeaveCredit).where(LeaveCredit.schoolYear == sy)).scalars().all()
    for row in rows:
        bucket = summary.get(str(row.employmentType or ""))
        if bucket is None:
            continue
        bucket["count"] += 1
        bucket["totalCredits"] += Decimal(row.totalCredits or 0)
        bucket["usedCredits"] += Decimal(row.usedCredits or 0)

    return {
        t: {"count": v["count"], "totalCredits": decimal_to_json(v["totalCredits"]), "usedCredits": decimal_to_json(v["usedCredits"])}
        for t, v in summary.items()
    }


def list_for_year(db, sy: str | None = None) -> list[tuple[LeaveCredit, Optional[Employee]]]:
    sy = sy or current_school_year()
    rows = db.execute(select(LeaveCredit).where(LeaveCredit.schoolYear == sy).order_by(LeaveCredit.employeeId.asc())).scalars().all()
    emp_ids = {r.employeeId for r in rows}
    emps = {}
    if emp_ids:
        emps = {e.id: e for e in db.execute(select(Employee).where(Employee.id.in_(emp_ids))).scalars().all()}
    return [(r, emps.get(r.employeeId)) for r in rows]


def serialize_balance(row: LeaveCredit) -> dict[str, Any]:
    return {
        "totalCredits": decimal_to_json(row.totalCredits),
        "usedCredits": decimal_to_json(row.usedCredits),
        "remainingCredits": decimal_to_json(row.remainingCredits),
        "carriedOverCredits": decimal_to_json(row.carriedOverCredits),
        "schoolYear": row.schoolYear,
    }


def serialize_credit(row: LeaveCredit) -> dict[str, Any]:
    out = serialize_balance(row)
    out.update(
        {
            "id": row.id,
            "employeeId": row.employeeId,
            "employmentType": row.employmentType,
            "monetizableCredits": decimal_to_json(row.monetizableCredits),
            "forfeitedCredits": decimal_to_json(row.forfeitedCredits),
            "updatedAt": row.updatedAt or "",
        }
    )
    return out
