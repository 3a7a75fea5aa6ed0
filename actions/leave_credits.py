from __future__ import annotations

from typing import Any

from actions.helpers import append_audit, current_employee, parse_id, str_field
from services import leave_credits as ledger
from services.school_year import current_school_year, local_today, parse_school_year
from utils import ApiError, AuthContext


def _school_year_param(data, cfg) -> str:
    sy = str_field(data, "schoolYear")
    if sy:
        parse_school_year(sy)
        return sy
    return current_school_year(local_today(getattr(cfg, "APP_TIMEZONE", "")))


def my_leave_credits(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    return ledger.serialize_balance(ledger.get(db, emp.id, _school_year_param(data, cfg)))


def get_employee_credits(data, auth: AuthContext | None, db, cfg):
    emp_id = parse_id((data or {}).get("employeeId"), "Employee")
    return ledger.serialize_balance(ledger.get(db, emp_id, _school_year_param(data, cfg)))


def list_credits(data, auth: AuthContext | None, db, cfg):
    sy = _school_year_param(data, cfg)
    items: list[dict[str, Any]] = []
    for row, emp in ledger.list_for_year(db, sy):
        out = ledger.serialize_credit(row)
        out["employee"] = (
            {"id": emp.id, "employeeId": emp.employeeId, "fullName": emp.fullName or "", "email": emp.email} if emp else None
        )
        items.append(out)
    return {"schoolYear": sy, "items": items}


def credit_summary(data, auth: AuthContext | None, db, cfg):
    sy = _school_year_param(data, cfg)
    return {"schoolYear": sy, "summary": ledger.summary_by_type(db, sy)}


def reset_credits(data, auth: AuthContext | None, db, cfg):
    """Year rollover: carry-over and forfeiture for every eligible employee."""
    sy = str_field(data, "schoolYear")
    if not sy:
        raise ApiError("BAD_REQUEST", 'School year is required (e.g., "2024-2025")')

    result = ledger.rollover(db, sy)
    append_audit(
        db,
        entityType="LEAVE_CREDIT",
        entityId=sy,
        action="LEAVE_CREDITS_RESET",
        stageTag="LEAVE_CREDITS",
        actor=auth,
        meta={"employeesProcessed": result["employeesProcessed"]},
    )
    return {"message": "Leave credits reset successfully", **result}


def update_employee_credits(data, auth: AuthContext | None, db, cfg):
    emp_id = parse_id((data or {}).get("employeeId"), "Employee")
    employment_type = str_field(data, "employmentType").lower()
    if employment_type not in ledger.EMPLOYMENT_TYPES:
        raise ApiError("BAD_REQUEST", "Invalid employment type. Must be: permanent, contractual, job-order, or part-time")

    sy = _school_year_param(data, cfg)
    before = ledger.serialize_credit(ledger.get(db, emp_id, sy))
    row = ledger.change_employment_type(db, emp_id, employment_type, sy)

    append_audit(
        db,
        entityType="LEAVE_CREDIT",
        entityId=str(row.id),
        action="LEAVE_CREDITS_UPDATE",
        stageTag="LEAVE_CREDITS",
        actor=auth,
        before=before,
        after=ledger.serialize_credit(row),
    )
    return {"message": "Employee leave credits updated successfully", "credits": ledger.serialize_credit(row)}


def enqueue_rollover(data, auth: AuthContext | None, db, cfg):
    sy = str_field(data, "schoolYear")
    if not sy:
        raise ApiError("BAD_REQUEST", 'School year is required (e.g., "2024-2025")')
    parse_school_year(sy)

    from app.tasks.maintenance import rollover_leave_credits

    task = rollover_leave_credits.apply_async(kwargs={"school_year": sy})
    append_audit(
        db,
        entityType="LEAVE_CREDIT",
        entityId=sy,
        action="LEAVE_CREDITS_ROLLOVER_ENQUEUE",
        stageTag="LEAVE_CREDITS",
        actor=auth,
        meta={"jobId": task.id},
    )
    return {"jobId": task.id, "status": "queued", "schoolYear": sy}


def job_status(data, auth: AuthContext | None, db, cfg):
    from app.tasks import celery_app

    job_id = str_field(data, "jobId")
    if not job_id:
        raise ApiError("BAD_REQUEST", "jobId is required")

    task = celery_app.AsyncResult(job_id)
    out: dict[str, Any] = {"jobId": job_id, "status": task.state}
    if task.state == "PENDING":
        out["message"] = "Job is queued or unknown"
    elif task.state == "SUCCESS":
        out["result"] = task.result
    elif task.state == "FAILURE":
        out["error"] = str(task.info) if task.info else "Unknown error"
    elif task.state == "REVOKED":
        out["message"] = "Job was cancelled"
    return out
