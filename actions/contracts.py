from __future__ import annotations

from typing import Any

from sqlalchemy import or_, select

from actions.documents import uploaded_file
from actions.helpers import actor_label, append_audit, current_employee, get_or_404, int_field, parse_id, str_field
from models import Contract, Employee
from services import contracts as contract_svc
from services.file_storage import file_response_spec, save_upload
from services.notifications import notify
from services.school_year import local_today
from utils import ApiError, AuthContext, iso_utc_now


def with_employees(db, rows: list[Contract]) -> list[dict[str, Any]]:
    ids = {c.employeeId for c in rows}
    emps = {}
    if ids:
        emps = {e.id: e for e in db.execute(select(Employee).where(Employee.id.in_(ids))).scalars().all()}
    return [contract_svc.serialize(c, emps.get(c.employeeId)) for c in rows]


def _today(cfg):
    return local_today(getattr(cfg, "APP_TIMEZONE", ""))


def list_contracts(data, auth: AuthContext | None, db, cfg):
    q = select(Contract)
    status = str_field(data, "status")
    contract_type = str_field(data, "contractType")
    department = str_field(data, "department")
    search = str_field(data, "search")
    if status:
        q = q.where(Contract.status == status)
    if contract_type:
        q = q.where(Contract.contractType == contract_type.lower())
    if department:
        q = q.where(Contract.department.ilike(f"%{department}%"))
    if search:
        like = f"%{search}%"
        q = q.join(Employee, Employee.id == Contract.employeeId).where(or_(Employee.fullName.ilike(like), Employee.employeeId.ilike(like)))

    q = q.order_by(Contract.endDate.is_(None), Contract.endDate.asc(), Contract.createdAt.desc())
    rows = db.execute(q).scalars().all()
    return {"items": with_employees(db, rows)}


def create_contract(data, auth: AuthContext | None, db, cfg):
    emp_id = parse_id((data or {}).get("employeeId"), "Employee")
    contract, superseded = contract_svc.create(db, emp_id, dict(data or {}), actor_id=actor_label(auth))
    emp = db.get(Employee, emp_id)

    for old in superseded:
        append_audit(
            db,
            entityType="CONTRACT",
            entityId=str(old.id),
            action="CONTRACT_SUPERSEDE",
            stageTag="CONTRACT",
            fromState="Active",
            toState="Terminated",
            remark=old.terminationReason,
            actor=auth,
        )
    append_audit(
        db,
        entityType="CONTRACT",
        entityId=str(contract.id),
        action="CONTRACT_CREATE",
        stageTag="CONTRACT",
        toState="Active",
        remark=f"Created {contract.contractType} contract for employee {emp.fullName} (ID: {emp.employeeId})",
        actor=auth,
        after=contract_svc.serialize(contract),
    )
    return {"message": "Contract created successfully", "contract": contract_svc.serialize(contract, emp)}


def update_contract(data, auth: AuthContext | None, db, cfg):
    fields = {k: v for k, v in dict(data or {}).items() if k in contract_svc.UPDATABLE_FIELDS}
    before = contract_svc.serialize(contract_svc.get_or_404(db, (data or {}).get("id")))
    contract = contract_svc.update(db, (data or {}).get("id"), fields, actor_id=actor_label(auth))

    append_audit(
        db,
        entityType="CONTRACT",
        entityId=str(contract.id),
        action="CONTRACT_UPDATE",
        stageTag="CONTRACT",
        actor=auth,
        before=before,
        after=contract_svc.serialize(contract),
    )
    return {"message": "Contract updated successfully", "contract": contract_svc.serialize(contract)}


def renew_contract(data, auth: AuthContext | None, db, cfg):
    old, new = contract_svc.renew(db, (data or {}).get("id"), dict(data or {}), actor_id=actor_label(auth), today=_today(cfg))

    append_audit(
        db,
        entityType="CONTRACT",
        entityId=str(old.id),
        action="CONTRACT_RENEW",
        stageTag="CONTRACT",
        toState="Terminated",
        remark=f"Renewed as contract {new.id}",
        actor=auth,
        after=contract_svc.serialize(new),
        meta={"newContractId": new.id, "renewalCount": new.renewalCount},
    )
    notify(db, new.employeeId, f"Your {new.contractType} contract has been renewed.")
    return {"message": "Contract renewed successfully", "contract": contract_svc.serialize(new)}


def terminate_contract(data, auth: AuthContext | None, db, cfg):
    reason = str_field(data, "terminationReason")
    contract = contract_svc.terminate(db, (data or {}).get("id"), reason, actor_id=actor_label(auth))
    emp = db.get(Employee, contract.employeeId)

    append_audit(
        db,
        entityType="CONTRACT",
        entityId=str(contract.id),
        action="CONTRACT_TERMINATE",
        stageTag="CONTRACT",
        fromState="Active",
        toState="Terminated",
        remark=f"Terminated contract for employee {emp.fullName if emp else contract.employeeId}. Reason: {reason or 'Not specified'}",
        actor=auth,
    )
    return {"message": "Contract terminated successfully", "contract": contract_svc.serialize(contract, emp)}


def expiring_contracts(data, auth: AuthContext | None, db, cfg):
    days = int_field(data, "days", 30)
    if days < 0:
        raise ApiError("BAD_REQUEST", "days must not be negative")
    rows = contract_svc.expiring(db, days, today=_today(cfg))
    return {"days": days, "items": with_employees(db, rows)}


def sweep_expired(data, auth: AuthContext | None, db, cfg):
    result = contract_svc.sweep_expired(db, today=_today(cfg))
    for entry in result["contracts"]:
        append_audit(
            db,
            entityType="CONTRACT",
            entityId=str(entry["contractId"]),
            action="CONTRACT_EXPIRE",
            stageTag="CONTRACT_SWEEP",
            fromState="Active",
            toState="Expired",
            actor=auth,
            meta=entry,
        )
    return result


# Employee self-service


def _my_contracts(db, emp_id: int, statuses: tuple[str, ...] | None = None) -> list[Contract]:
    q = select(Contract).where(Contract.employeeId == emp_id)
    if statuses:
        q = q.where(Contract.status.in_(statuses))
    return db.execute(q.order_by(Contract.startDate.desc(), Contract.id.desc())).scalars().all()


def my_current_contract(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    rows = _my_contracts(db, emp.id, ("Active",))
    if not rows:
        raise ApiError("NOT_FOUND", "No active contract found")
    return contract_svc.serialize(rows[0])


def my_past_contracts(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    return {"items": [contract_svc.serialize(c) for c in _my_contracts(db, emp.id, ("Expired", "Terminated"))]}


def my_contracts(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    return {"items": [contract_svc.serialize(c) for c in _my_contracts(db, emp.id)]}


def upload_contract_file(data, auth: AuthContext | None, db, cfg):
    contract = get_or_404(db, Contract, (data or {}).get("id"), "Contract")
    up = uploaded_file(data)
    stored = save_upload(
        cfg,
        category="CONTRACT",
        owner_id=contract.employeeId,
        file_bytes=up["bytes"],
        file_name=str(up.get("fileName") or ""),
        mime_type=str(up.get("mimeType") or ""),
    )
    contract.storageKey = stored["storageKey"]
    contract.fileName = stored["fileName"]
    contract.mimeType = stored["mimeType"]
    contract.updatedAt = iso_utc_now()
    contract.updatedBy = actor_label(auth)
    db.flush()

    notify(db, contract.employeeId, "A signed copy of your contract is available for download.")
    append_audit(
        db,
        entityType="CONTRACT",
        entityId=str(contract.id),
        action="CONTRACT_FILE_UPLOAD",
        stageTag="CONTRACT",
        actor=auth,
        meta={"fileName": contract.fileName, "size": stored["size"]},
    )
    return {"message": "Contract file uploaded", "contract": contract_svc.serialize(contract)}


def download_my_contract_file(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    contract = db.get(Contract, parse_id((data or {}).get("id"), "Contract"))
    if not contract or contract.employeeId != emp.id or not contract.storageKey:
        raise ApiError("NOT_FOUND", "Contract file not found")
    return file_response_spec(cfg, storage_key=contract.storageKey, file_name=contract.fileName, mime_type=contract.mimeType, as_attachment=True)
