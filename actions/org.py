from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update

from actions.helpers import append_audit, get_or_404, parse_id, str_field
from models import Department, Designation
from utils import ApiError, AuthContext, iso_utc_now


def _dept_brief(dept: Department | None) -> dict[str, Any] | None:
    if dept is None:
        return None
    return {"id": dept.id, "name": dept.name, "code": dept.code or ""}


def serialize_designation(row: Designation, dept: Department | None = None) -> dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title,
        "departmentId": row.departmentId,
        "department": _dept_brief(dept),
        "description": row.description or "",
        "status": row.status,
        "createdAt": row.createdAt or "",
        "updatedAt": row.updatedAt or "",
    }


def serialize_department(dept: Department, designations: list[Designation] | None = None) -> dict[str, Any]:
    out = {
        "id": dept.id,
        "name": dept.name,
        "code": dept.code or "",
        "description": dept.description or "",
        "status": dept.status,
        "createdAt": dept.createdAt or "",
        "updatedAt": dept.updatedAt or "",
    }
    if designations is not None:
        out["designations"] = [serialize_designation(d) for d in designations]
    return out


def _name_taken(db, name: str, *, exclude_id: int | None = None) -> bool:
    q = select(Department.id).where(func.lower(Department.name) == name.lower())
    if exclude_id is not None:
        q = q.where(Department.id != exclude_id)
    return db.execute(q).first() is not None


def _audit(db, auth, entity: str, row_id: int, action: str, **kw) -> None:
    append_audit(db, entityType=entity, entityId=str(row_id), action=action, stageTag="ORG", actor=auth, **kw)


# Departments


def list_departments(data, auth: AuthContext | None, db, cfg):
    q = select(Department)
    status = str_field(data, "status")
    if status:
        q = q.where(Department.status == status)
    depts = db.execute(q.order_by(Department.name.asc())).scalars().all()

    by_dept: dict[int, list[Designation]] = {}
    ids = [d.id for d in depts]
    if ids:
        rows = (
            db.execute(
                select(Designation)
                .where(Designation.departmentId.in_(ids))
                .where(Designation.status == "Active")
                .order_by(Designation.title.asc())
            )
            .scalars()
            .all()
        )
        for r in rows:
            by_dept.setdefault(r.departmentId, []).append(r)
    return {"items": [serialize_department(d, by_dept.get(d.id, [])) for d in depts]}


def get_department(data, auth: AuthContext | None, db, cfg):
    dept = get_or_404(db, Department, (data or {}).get("id"), "Department")
    rows = db.execute(select(Designation).where(Designation.departmentId == dept.id).order_by(Designation.title.asc())).scalars().all()
    return serialize_department(dept, rows)


def create_department(data, auth: AuthContext | None, db, cfg):
    name = str_field(data, "name")
    if not name:
        raise ApiError("BAD_REQUEST", "Department name is required")
    if _name_taken(db, name):
        raise ApiError("BAD_REQUEST", "Department already exists")

    now = iso_utc_now()
    dept = Department(
        name=name,
        code=str_field(data, "code"),
        description=str_field(data, "description"),
        status="Active",
        createdAt=now,
        updatedAt=now,
    )
    db.add(dept)
    db.flush()
    _audit(db, auth, "DEPARTMENT", dept.id, "DEPARTMENT_CREATE", after=serialize_department(dept))
    return {"message": "Department created successfully", "department": serialize_department(dept)}


def update_department(data, auth: AuthContext | None, db, cfg):
    dept = get_or_404(db, Department, (data or {}).get("id"), "Department")
    before = serialize_department(dept)

    if "name" in (data or {}):
        name = str_field(data, "name")
        if not name:
            raise ApiError("BAD_REQUEST", "Department name is required")
        if name != dept.name and _name_taken(db, name, exclude_id=dept.id):
            raise ApiError("BAD_REQUEST", "Department name already exists")
        dept.name = name
    if "code" in (data or {}):
        dept.code = str_field(data, "code")
    if "description" in (data or {}):
        dept.description = str_field(data, "description")
    dept.updatedAt = iso_utc_now()
    db.flush()

    _audit(db, auth, "DEPARTMENT", dept.id, "DEPARTMENT_UPDATE", before=before, after=serialize_department(dept))
    return {"message": "Department updated successfully", "department": serialize_department(dept)}


def archive_department(data, auth: AuthContext | None, db, cfg):
    dept = get_or_404(db, Department, (data or {}).get("id"), "Department")
    now = iso_utc_now()
    dept.status = "Archived"
    dept.updatedAt = now
    result = db.execute(
        update(Designation).where(Designation.departmentId == dept.id).values(status="Archived", updatedAt=now)
    )
    db.flush()

    _audit(db, auth, "DEPARTMENT", dept.id, "DEPARTMENT_ARCHIVE", toState="Archived", meta={"designationsArchived": result.rowcount})
    return {"message": "Department archived successfully", "department": serialize_department(dept)}


def unarchive_department(data, auth: AuthContext | None, db, cfg):
    dept = get_or_404(db, Department, (data or {}).get("id"), "Department")
    dept.status = "Active"
    dept.updatedAt = iso_utc_now()
    db.flush()
    _audit(db, auth, "DEPARTMENT", dept.id, "DEPARTMENT_UNARCHIVE", toState="Active")
    return {"message": "Department unarchived successfully", "department": serialize_department(dept)}


# Designations


def list_designations(data, auth: AuthContext | None, db, cfg):
    q = select(Designation)
    status = str_field(data, "status")
    if status:
        q = q.where(Designation.status == status)
    if str_field(data, "departmentId"):
        q = q.where(Designation.departmentId == parse_id(data.get("departmentId"), "Department"))
    rows = db.execute(q.order_by(Designation.title.asc())).scalars().all()

    dept_ids = {r.departmentId for r in rows if r.departmentId}
    depts = {}
    if dept_ids:
        depts = {d.id: d for d in db.execute(select(Department).where(Department.id.in_(dept_ids))).scalars().all()}
    return {"items": [serialize_designation(r, depts.get(r.departmentId)) for r in rows]}


def get_designation(data, auth: AuthContext | None, db, cfg):
    row = get_or_404(db, Designation, (data or {}).get("id"), "Designation")
    dept = db.get(Department, row.departmentId) if row.departmentId else None
    return serialize_designation(row, dept)


def _department_or_none(db, raw: Any) -> Department | None:
    if raw in (None, ""):
        return None
    return get_or_404(db, Department, raw, "Department")


def create_designation(data, auth: AuthContext | None, db, cfg):
    title = str_field(data, "title")
    if not title:
        raise ApiError("BAD_REQUEST", "Designation title is required")
    dept = _department_or_none(db, (data or {}).get("departmentId"))

    now = iso_utc_now()
    row = Designation(
        title=title,
        departmentId=dept.id if dept else None,
        description=str_field(data, "description"),
        status="Active",
        createdAt=now,
        updatedAt=now,
    )
    db.add(row)
    db.flush()
    _audit(db, auth, "DESIGNATION", row.id, "DESIGNATION_CREATE", after=serialize_designation(row, dept))
    return {"message": "Designation created successfully", "designation": serialize_designation(row, dept)}


def update_designation(data, auth: AuthContext | None, db, cfg):
    row = get_or_404(db, Designation, (data or {}).get("id"), "Designation")
    before = serialize_designation(row)

    if "title" in (data or {}):
        title = str_field(data, "title")
        if not title:
            raise ApiError("BAD_REQUEST", "Designation title is required")
        row.title = title
    if "departmentId" in (data or {}):
        dept = _department_or_none(db, data.get("departmentId"))
        row.departmentId = dept.id if dept else None
    if "description" in (data or {}):
        row.description = str_field(data, "description")
    row.updatedAt = iso_utc_now()
    db.flush()

    dept = db.get(Department, row.departmentId) if row.departmentId else None
    _audit(db, auth, "DESIGNATION", row.id, "DESIGNATION_UPDATE", before=before, after=serialize_designation(row, dept))
    return {"message": "Designation updated successfully", "designation": serialize_designation(row, dept)}


def _set_designation_status(db, data, auth, status: str) -> Designation:
    row = get_or_404(db, Designation, (data or {}).get("id"), "Designation")
    row.status = status
    row.updatedAt = iso_utc_now()
    db.flush()
    _audit(db, auth, "DESIGNATION", row.id, f"DESIGNATION_{'ARCHIVE' if status == 'Archived' else 'UNARCHIVE'}", toState=status)
    return row


def archive_designation(data, auth: AuthContext | None, db, cfg):
    row = _set_designation_status(db, data, auth, "Archived")
    return {"message": "Designation archived successfully", "designation": serialize_designation(row)}


def unarchive_designation(data, auth: AuthContext | None, db, cfg):
    row = _set_designation_status(db, data, auth, "Active")
    return {"message": "Designation unarchived successfully", "designation": serialize_designation(row)}
