"""
Contract lifecycle.

    Active -> Expired      (sweep_expired, endDate passed)
    Active -> Terminated   (terminate, renew, superseded by create)

Expired and Terminated are final. An employee has at most one Active contract;
the partial unique index on contracts(employeeId) WHERE status = 'Active' backs
the application-level supersede.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from models import Contract, Employee
from services.school_year import local_today
from utils import ApiError, date_iso, decimal_to_json, iso_utc_now, parse_date_maybe, to_decimal


_log = logging.getLogger("contracts")

CONTRACT_TYPES = ("permanent", "contractual", "part-time", "job-order")
RENEWABLE_STATUSES = {"Active", "Expired"}
PROTECTED_EMPLOYEE_STATUSES = {"resigned", "terminated"}


def validate(
    contract_type: str,
    start_date: Optional[date],
    end_date: Optional[date],
    work_schedule: Any = None,
    project_details: Any = None,
) -> dict[str, Any]:
    """First failing rule wins; no database access."""
    ctype = str(contract_type or "").strip().lower()

    if ctype == "permanent" and end_date:
        return {"valid": False, "error": "Permanent contracts should not have an end date"}
    if ctype != "permanent" and not end_date:
        return {"valid": False, "error": f"{contract_type} contracts must have an end date"}
    if ctype == "part-time" and not str(work_schedule or "").strip():
        return {"valid": False, "error": "Part-time contracts must specify a work schedule"}
    if ctype == "job-order" and not str(project_details or "").strip():
        return {"valid": False, "error": "Job-order contracts must specify project details"}
    if end_date and start_date and end_date <= start_date:
        return {"valid": False, "error": "End date must be after start date"}
    return {"valid": True, "error": None}


def _raise_if_invalid(result: dict[str, Any]) -> None:
    if not result["valid"]:
        raise ApiError("BAD_REQUEST", result["error"])


def _active_contracts(db, employee_id: int) -> list[Contract]:
    return (
        db.execute(select(Contract).where(Contract.employeeId == employee_id).where(Contract.status == "Active"))
        .scalars()
        .all()
    )


def _flush_new_active(db, contract: Contract) -> None:
    try:
        db.add(contract)
        db.flush()
    except IntegrityError:
        raise ApiError("CONFLICT", "Employee already has an active contract")


def create(db, employee_id: int, fields: dict[str, Any], *, actor_id: str = "") -> tuple[Contract, list[Contract]]:
    """Returns (new contract, contracts it superseded)."""
    contract_type = str(fields.get("contractType") or "").strip().lower()
    if contract_type not in CONTRACT_TYPES:
        raise ApiError("BAD_REQUEST", "Invalid contract type. Must be: permanent, contractual, part-time, or job-order")

    start = parse_date_maybe(fields.get("startDate"))
    if not start:
        raise ApiError("BAD_REQUEST", "Missing or invalid startDate")
    raw_end = fields.get("endDate")
    end = parse_date_maybe(raw_end)
    if raw_end not in (None, "") and end is None:
        raise ApiError("BAD_REQUEST", "Invalid endDate")

    work_schedule = str(fields.get("workSchedule") or "").strip()
    project_details = str(fields.get("projectDetails") or "").strip()
    _raise_if_invalid(validate(contract_type, start, end, work_schedule, project_details))

    emp = db.get(Employee, employee_id)
    if not emp:
        raise ApiError("NOT_FOUND", "Employee not found")

    now = iso_utc_now()
    superseded = _active_contracts(db, emp.id)
    for old in superseded:
        old.status = "Terminated"
        old.terminationReason = "New contract created"
        old.updatedAt = now
        old.updatedBy = actor_id
    db.flush()

    contract = Contract(
        employeeId=emp.id,
        contractType=contract_type,
        startDate=start,
        endDate=end,
        status="Active",
        position=str(fields.get("position") or "").strip(),
        department=str(fields.get("department") or "").strip(),
        salary=to_decimal(fields.get("salary")),
        renewalCount=0,
        previousContractId=None,
        terminationReason="",
        workSchedule=work_schedule if contract_type == "part-time" else "",
        projectDetails=project_details if contract_type == "job-order" else "",
        createdAt=now,
        createdBy=actor_id,
        updatedAt=now,
        updatedBy=actor_id,
    )
    _flush_new_active(db, contract)
    _log.info("contract created id=%s employee=%s type=%s superseded=%s", contract.id, emp.id, contract_type, len(superseded))
    return contract, superseded


def get_or_404(db, contract_id: Any) -> Contract:
    try:
        cid = int(contract_id)
    except (TypeError, ValueError):
        raise ApiError("NOT_FOUND", "Contract not found")
    contract = db.get(Contract, cid)
    if not contract:
        raise ApiError("NOT_FOUND", "Contract not found")
    return contract


def renew(db, contract_id: Any, fields: dict[str, Any], *, actor_id: str = "", today: Optional[date] = None) -> tuple[Contract, Contract]:
    """Returns (old contract, new contract)."""
    old = get_or_404(db, contract_id)
    if old.contractType == "permanent":
        raise ApiError("STATE_CONFLICT", "Permanent contracts cannot be renewed")
    if old.status not in RENEWABLE_STATUSES:
        raise ApiError("STATE_CONFLICT", "Only active or expired contracts can be renewed")

    start = parse_date_maybe(fields.get("startDate")) or today or local_today()
    end = parse_date_maybe(fields.get("endDate"))
    work_schedule = str(fields.get("workSchedule") or old.workSchedule or "").strip()
    project_details = str(fields.get("projectDetails") or old.projectDetails or "").strip()
    _raise_if_invalid(validate(old.contractType, start, end, work_schedule, project_details))

    other_active = (
        db.execute(
            select(Contract.id)
            .where(Contract.employeeId == old.employeeId)
            .where(Contract.status == "Active")
            .where(Contract.id != old.id)
        ).first()
    )
    if other_active:
        raise ApiError("STATE_CONFLICT", "Employee already has another active contract")

    now = iso_utc_now()
    old.status = "Terminated"
    old.terminationReason = "Contract renewed"
    old.updatedAt = now
    old.updatedBy = actor_id
    db.flush()

    salary = fields.get("salary")
    new = Contract(
        employeeId=old.employeeId,
        contractType=old.contractType,
        startDate=start,
        endDate=end,
        status="Active",
        position=old.position,
        department=old.department,
        salary=to_decimal(salary) if salary not in (None, "") else old.salary,
        renewalCount=int(old.renewalCount or 0) + 1,
        previousContractId=old.id,
        terminationReason="",
        workSchedule=work_schedule if old.contractType == "part-time" else "",
        projectDetails=project_details if old.contractType == "job-order" else "",
        createdAt=now,
        createdBy=actor_id,
        updatedAt=now,
        updatedBy=actor_id,
    )
    _flush_new_active(db, new)
    _log.info("contract renewed old=%s new=%s renewalCount=%s", old.id, new.id, new.renewalCount)
    return old, new


def terminate(db, contract_id: Any, reason: str = "", *, actor_id: str = "") -> Contract:
    contract = get_or_404(db, contract_id)
    if contract.status != "Active":
        raise ApiError("STATE_CONFLICT", "Only active contracts can be terminated")

    now = iso_utc_now()
    contract.status = "Terminated"
    contract.terminationReason = str(reason or "").strip() or "Terminated by HR"
    contract.updatedAt = now
    contract.updatedBy = actor_id

    emp = db.get(Employee, contract.employeeId)
    if emp:
        emp.status = "Terminated"
        emp.updatedAt = now
        emp.updatedBy = actor_id
    db.flush()
    _log.info("contract terminated id=%s employee=%s", contract.id, contract.employeeId)
    return contract


UPDATABLE_FIELDS = ("position", "department", "salary", "workSchedule", "projectDetails", "endDate")


def update(db, contract_id: Any, fields: dict[str, Any], *, actor_id: str = "") -> Contract:
    contract = get_or_404(db, contract_id)
    if contract.status != "Active":
        raise ApiError("STATE_CONFLICT", "Only active contracts can be updated")

    end = contract.endDate
    if "endDate" in fields:
        raw = fields.get("endDate")
        end = parse_date_maybe(raw)
        if raw not in (None, "") and end is None:
            raise ApiError("BAD_REQUEST", "Invalid endDate")
    work_schedule = str(fields.get("workSchedule", contract.workSchedule) or "").strip()
    project_details = str(fields.get("projectDetails", contract.projectDetails) or "").strip()
    _raise_if_invalid(validate(contract.contractType, contract.startDate, end, work_schedule, project_details))

    if "position" in fields:
        contract.position = str(fields.get("position") or "").strip()
    if "department" in fields:
        contract.department = str(fields.get("department") or "").strip()
    if "salary" in fields:
        contract.salary = to_decimal(fields.get("salary"))
    contract.endDate = end
    contract.workSchedule = work_schedule if contract.contractType == "part-time" else ""
    contract.projectDetails = project_details if contract.contractType == "job-order" else ""
    contract.updatedAt = iso_utc_now()
    contract.updatedBy = actor_id
    db.flush()
    return contract


def sweep_expired(db, *, today: Optional[date] = None) -> dict[str, Any]:
    today = today or local_today()
    expired = (
        db.execute(
            select(Contract)
            .where(Contract.status == "Active")
            .where(Contract.endDate.is_not(None))
            .where(Contract.endDate < today)
            .order_by(Contract.id.asc())
        )
        .scalars()
        .all()
    )

    now = iso_utc_now()
    log: list[dict[str, Any]] = []
    for contract in expired:
        contract.status = "Expired"
        contract.updatedAt = now
        contract.updatedBy = "SYSTEM"
        db.flush()

        employee_reset = False
        emp = db.get(Employee, contract.employeeId)
        others = (
            db.execute(
                select(func.count(Contract.id))
                .where(Contract.employeeId == contract.employeeId)
                .where(Contract.status == "Active")
            ).scalar_one()
        )
        if emp and not others and str(emp.status or "").strip().lower() not in PROTECTED_EMPLOYEE_STATUSES:
            if emp.status != "Active":
                emp.status = "Active"
                emp.updatedAt = now
                emp.updatedBy = "SYSTEM"
                employee_reset = True

        log.append(
            {
                "contractId": contract.id,
                "employeeId": contract.employeeId,
                "employeeName": (emp.fullName if emp else "") or "",
                "contractType": contract.contractType,
                "endDate": date_iso(contract.endDate),
                "employeeStatusReset": employee_reset,
            }
        )

    _log.info("sweep expired=%s today=%s", len(log), today.isoformat())
    return {
        "success": True,
        "expiredCount": len(log),
        "message": f"Expired {len(log)} contract(s)",
        "contracts": log,
    }


def expiring(db, days: int = 30, *, today: Optional[date] = None) -> list[Contract]:
    today = today or local_today()
    horizon = today + timedelta(days=max(0, int(days)))
    return (
        db.execute(
            select(Contract)
            .where(Contract.status == "Active")
            .where(Contract.endDate.is_not(None))
            .where(Contract.endDate >= today)
            .where(Contract.endDate <= horizon)
            .order_by(Contract.endDate.asc())
        )
        .scalars()
        .all()
    )


def serialize(contract: Contract, emp: Optional[Employee] = None) -> dict[str, Any]:
    out = {
        "id": contract.id,
        "employeeId": contract.employeeId,
        "contractType": contract.contractType,
        "startDate": date_iso(contract.startDate),
        "endDate": date_iso(contract.endDate),
        "status": contract.status,
        "position": contract.position or "",
        "department": contract.department or "",
        "salary": decimal_to_json(contract.salary) if contract.salary is not None else None,
        "renewalCount": int(contract.renewalCount or 0),
        "previousContractId": contract.previousContractId,
        "terminationReason": contract.terminationReason or "",
        "workSchedule": contract.workSchedule or "",
        "projectDetails": contract.projectDetails or "",
        "hasFile": bool(contract.storageKey),
        "fileName": contract.fileName or "",
        "createdAt": contract.createdAt or "",
        "updatedAt": contract.updatedAt or "",
    }
    if emp is not None:
        out["employee"] = {"id": emp.id, "employeeId": emp.employeeId, "fullName": emp.fullName, "email": emp.email}
    return out
