from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import func, or_, select

from actions.documents import uploaded_file
from actions.helpers import (
    actor_id,
    actor_label,
    append_audit,
    bool_field,
    current_employee,
    get_or_404,
    json_dict,
    json_list,
    str_field,
)
from models import Contract, Employee, ProfileChangeRequest
from passwords import hash_password, validate_password_policy
from services import bulk_import
from services import contracts as contract_svc
from services import leave_credits as ledger
from services.file_storage import IMAGE_EXTENSIONS, delete_upload, file_response_spec, save_upload
from services.notifications import notify, notify_roles
from utils import ApiError, AuthContext, date_iso, iso_utc_now, parse_date_maybe


_log = logging.getLogger("employees")

EMPLOYEE_ROLES = ("employee", "hr", "mis")
EMPLOYEE_STATUSES = ("Active", "Inactive", "Terminated", "On Leave", "Resigned", "Retired")

# API key -> column; "name" is the display alias of fullName.
_SCALAR_FIELDS = {
    "name": "fullName",
    "email": "email",
    "contactNumber": "contactNumber",
    "placeOfBirth": "placeOfBirth",
    "sex": "sex",
    "civilStatus": "civilStatus",
    "citizenship": "citizenship",
    "surname": "surname",
    "firstName": "firstName",
    "middleName": "middleName",
    "religion": "religion",
    "contractNumber": "contractNumber",
    "bloodType": "bloodType",
    "gsisIdNo": "gsisIdNo",
    "pagibigIdNo": "pagibigIdNo",
    "philhealthNo": "philhealthNo",
    "sssNo": "sssNo",
    "tinNo": "tinNo",
    "residentialAddress": "residentialAddress",
    "permanentAddress": "permanentAddress",
    "residentialZip": "residentialZip",
    "permanentZip": "permanentZip",
    "emergencyContactName": "emergencyContactName",
    "emergencyContactNumber": "emergencyContactNumber",
    "emergencyContactRelationship": "emergencyContactRelationship",
    "emergencyContactAddress": "emergencyContactAddress",
    "spouseName": "spouseName",
    "spouseContactNumber": "spouseContactNumber",
    "spouseOccupation": "spouseOccupation",
    "spouseAddress": "spouseAddress",
    "fatherName": "fatherName",
    "motherName": "motherName",
}

_JSON_LIST_FIELDS = {
    "children": "childrenJson",
    "education": "educationJson",
    "eligibility": "eligibilityJson",
    "workExperience": "workExperienceJson",
    "communityInvolvement": "communityInvolvementJson",
    "learningAndDevelopment": "learningAndDevelopmentJson",
    "trainings": "trainingsJson",
    "references": "referencesJson",
}

_JSON_DICT_FIELDS = {
    "otherInformation": "otherInformationJson",
    "legalResponses": "legalResponsesJson",
}

PROFILE_FIELDS = tuple(_SCALAR_FIELDS) + ("dateOfBirth", "age") + tuple(_JSON_LIST_FIELDS) + tuple(_JSON_DICT_FIELDS)

# Fields HR may set on top of the self-service profile.
_HR_ONLY_FIELDS = ("position", "department", "status", "dateHired")


def profile_values(emp: Employee) -> dict[str, Any]:
    out: dict[str, Any] = {k: getattr(emp, col) or "" for k, col in _SCALAR_FIELDS.items()}
    out["dateOfBirth"] = date_iso(emp.dateOfBirth)
    out["age"] = emp.age
    for k, col in _JSON_LIST_FIELDS.items():
        out[k] = json_list(getattr(emp, col))
    for k, col in _JSON_DICT_FIELDS.items():
        out[k] = json_dict(getattr(emp, col))
    return out


def serialize_profile(emp: Employee) -> dict[str, Any]:
    out = profile_values(emp)
    out.update(
        {
            "id": emp.id,
            "employeeId": emp.employeeId,
            "fullName": emp.fullName or "",
            "role": emp.role,
            "status": emp.status,
            "isSuspended": bool(emp.isSuspended),
            "position": emp.position or "",
            "department": emp.department or "",
            "dateHired": date_iso(emp.dateHired),
            "profileImage": emp.profileImage or "",
            "createdAt": emp.createdAt or "",
            "updatedAt": emp.updatedAt or "",
        }
    )
    return out


def _employee_brief(emp: Employee | None) -> dict[str, Any] | None:
    if emp is None:
        return None
    return {
        "id": emp.id,
        "employeeId": emp.employeeId,
        "fullName": emp.fullName or "",
        "email": emp.email,
        "profileImage": emp.profileImage or "",
    }


def _email_taken(db, email: str, *, exclude_id: int | None = None) -> bool:
    q = select(Employee.id).where(func.lower(Employee.email) == email.lower())
    if exclude_id is not None:
        q = q.where(Employee.id != exclude_id)
    return db.execute(q).first() is not None


def apply_profile_changes(db, emp: Employee, changes: dict[str, Any], *, extra_fields: tuple[str, ...] = ()) -> list[str]:
    """Writes whitelisted keys onto the employee; unknown keys are ignored."""
    applied: list[str] = []
    for key, value in (changes or {}).items():
        if key in _SCALAR_FIELDS:
            text_value = str(value or "").strip()
            if key == "name" and not text_value:
                raise ApiError("BAD_REQUEST", "Name cannot be empty")
            if key == "email":
                text_value = text_value.lower()
                if "@" not in text_value:
                    raise ApiError("BAD_REQUEST", "A valid email is required")
                if _email_taken(db, text_value, exclude_id=emp.id):
                    raise ApiError("BAD_REQUEST", "Email already exists")
            setattr(emp, _SCALAR_FIELDS[key], text_value)
        elif key == "dateOfBirth":
            d = parse_date_maybe(value)
            if value not in (None, "") and d is None:
                raise ApiError("BAD_REQUEST", "Invalid dateOfBirth")
            emp.dateOfBirth = d
        elif key == "age":
            try:
                emp.age = int(value) if value not in (None, "") else None
            except (TypeError, ValueError):
                raise ApiError("BAD_REQUEST", "Invalid age")
        elif key in _JSON_LIST_FIELDS:
            if not isinstance(value, list):
                raise ApiError("BAD_REQUEST", f"{key} must be a list")
            setattr(emp, _JSON_LIST_FIELDS[key], json.dumps(value, default=str))
        elif key in _JSON_DICT_FIELDS:
            if not isinstance(value, dict):
                raise ApiError("BAD_REQUEST", f"{key} must be an object")
            setattr(emp, _JSON_DICT_FIELDS[key], json.dumps(value, default=str))
        elif key in extra_fields:
            if key == "status":
                if value not in EMPLOYEE_STATUSES:
                    raise ApiError("BAD_REQUEST", "Invalid employee status")
                emp.status = value
            elif key == "dateHired":
                d = parse_date_maybe(value)
                if value not in (None, "") and d is None:
                    raise ApiError("BAD_REQUEST", "Invalid dateHired")
                emp.dateHired = d
            else:
                setattr(emp, key, str(value or "").strip())
        else:
            continue
        applied.append(key)
    return applied


# Employee self-service


def get_profile(data, auth: AuthContext | None, db, cfg):
    return serialize_profile(current_employee(db, auth))


def update_profile(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    before = profile_values(emp)
    applied = apply_profile_changes(db, emp, dict(data or {}))
    emp.updatedAt = iso_utc_now()
    emp.updatedBy = actor_label(auth)
    db.flush()

    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=str(emp.id),
        action="EMPLOYEE_PROFILE_UPDATE",
        stageTag="EMPLOYEE_PROFILE",
        actor=auth,
        before={k: before.get(k) for k in applied},
        meta={"fields": applied},
    )
    return {"message": "Profile updated successfully", "employee": serialize_profile(emp)}


PROFILE_IMAGE_MAX_MB = 5


def upload_profile_image(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    up = uploaded_file(data)
    stored = save_upload(
        cfg,
        category="PROFILE",
        owner_id=emp.id,
        file_bytes=up["bytes"],
        file_name=str(up.get("fileName") or ""),
        mime_type=str(up.get("mimeType") or ""),
        allowed_extensions=IMAGE_EXTENSIONS,
        max_mb=PROFILE_IMAGE_MAX_MB,
    )
    old_key = emp.profileImage or ""
    emp.profileImage = stored["storageKey"]
    emp.updatedAt = iso_utc_now()
    emp.updatedBy = actor_label(auth)
    db.flush()

    if old_key:
        try:
            delete_upload(cfg, old_key)
        except OSError:
            _log.warning("could not delete old profile image employee=%s", emp.id)

    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=str(emp.id),
        action="EMPLOYEE_PROFILE_IMAGE",
        stageTag="EMPLOYEE_PROFILE",
        actor=auth,
        meta={"fileName": stored["fileName"], "size": stored["size"]},
    )
    return {"message": "Profile image uploaded successfully", "profileImage": emp.profileImage}


def get_profile_image(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    if not emp.profileImage:
        raise ApiError("NOT_FOUND", "Profile image not found")
    return file_response_spec(cfg, storage_key=emp.profileImage, file_name="", mime_type="", as_attachment=False)


def _serialize_change_request(db, row: ProfileChangeRequest) -> dict[str, Any]:
    emp = db.get(Employee, row.employeeId)
    reviewer = db.get(Employee, row.reviewedBy) if row.reviewedBy else None
    return {
        "id": row.id,
        "employeeId": row.employeeId,
        "employee": _employee_brief(emp),
        "reviewer": {"id": reviewer.id, "fullName": reviewer.fullName or ""} if reviewer else None,
        "currentValues": json_dict(row.currentValuesJson),
        "requestedChanges": json_dict(row.requestedChangesJson),
        "changedFields": json_list(row.changedFieldsJson),
        "reason": row.reason or "",
        "status": row.status,
        "reviewedBy": row.reviewedBy,
        "reviewedAt": row.reviewedAt or "",
        "reviewNotes": row.reviewNotes or "",
        "createdAt": row.createdAt or "",
    }


def _same(a: Any, b: Any) -> bool:
    return json.dumps(a, sort_keys=True, default=str) == json.dumps(b, sort_keys=True, default=str)


def request_profile_change(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    requested = (data or {}).get("requestedChanges")
    if not isinstance(requested, dict) or not requested:
        raise ApiError("BAD_REQUEST", "requestedChanges is required")

    current = profile_values(emp)
    changes: dict[str, Any] = {}
    snapshot: dict[str, Any] = {}
    for key, value in requested.items():
        if key not in PROFILE_FIELDS:
            continue
        if not _same(current.get(key), value):
            changes[key] = value
            snapshot[key] = current.get(key)
    if not changes:
        raise ApiError("BAD_REQUEST", "No changes detected")

    pending = (
        db.execute(
            select(ProfileChangeRequest.id)
            .where(ProfileChangeRequest.employeeId == emp.id)
            .where(ProfileChangeRequest.status == "pending")
        ).first()
    )
    if pending:
        raise ApiError("BAD_REQUEST", "You already have a pending profile change request. Please wait for HR review.")

    row = ProfileChangeRequest(
        employeeId=emp.id,
        currentValuesJson=json.dumps(snapshot, default=str),
        requestedChangesJson=json.dumps(changes, default=str),
        changedFieldsJson=json.dumps(list(changes)),
        reason=str_field(data, "reason"),
        status="pending",
        createdAt=iso_utc_now(),
    )
    db.add(row)
    db.flush()

    notify_roles(db, ["hr"], f"Profile change request from {emp.fullName} - {len(changes)} field(s) to update")
    append_audit(
        db,
        entityType="PROFILE_CHANGE_REQUEST",
        entityId=str(row.id),
        action="PROFILE_CHANGE_REQUEST_CREATE",
        stageTag="PROFILE_CHANGE",
        toState="pending",
        actor=auth,
        meta={"changedFields": list(changes)},
    )
    return {
        "message": "Profile change request submitted successfully. Awaiting HR approval.",
        "request": _serialize_change_request(db, row),
    }


def my_profile_change_requests(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    rows = (
        db.execute(
            select(ProfileChangeRequest)
            .where(ProfileChangeRequest.employeeId == emp.id)
            .order_by(ProfileChangeRequest.createdAt.desc(), ProfileChangeRequest.id.desc())
        )
        .scalars()
        .all()
    )
    return {"items": [_serialize_change_request(db, r) for r in rows]}


# HR employee management


def _active_contract_brief(c: Contract | None) -> dict[str, Any] | None:
    if c is None:
        return None
    return {
        "id": c.id,
        "contractType": c.contractType,
        "position": c.position or "",
        "department": c.department or "",
        "startDate": date_iso(c.startDate),
        "endDate": date_iso(c.endDate),
        "status": c.status,
    }


def list_employees(data, auth: AuthContext | None, db, cfg):
    q = (
        select(Employee)
        .where(func.trim(Employee.employeeId) != "")
        .where(func.trim(Employee.fullName) != "")
        .where(func.trim(Employee.email) != "")
    )
    status = str_field(data, "status")
    role = str_field(data, "role")
    search = str_field(data, "search")
    if status:
        q = q.where(Employee.status == status)
    if role:
        q = q.where(func.lower(Employee.role) == role.lower())
    if search:
        like = f"%{search}%"
        q = q.where(or_(Employee.employeeId.ilike(like), Employee.fullName.ilike(like), Employee.email.ilike(like)))
    employees = db.execute(q.order_by(Employee.createdAt.desc(), Employee.id.desc())).scalars().all()

    active: dict[int, Contract] = {}
    ids = [e.id for e in employees]
    if ids:
        for c in db.execute(select(Contract).where(Contract.employeeId.in_(ids)).where(Contract.status == "Active")).scalars():
            active[c.employeeId] = c

    items = []
    for emp in employees:
        items.append(
            {
                "id": emp.id,
                "employeeId": emp.employeeId,
                "fullName": emp.fullName,
                "email": emp.email,
                "contactNumber": emp.contactNumber or "",
                "status": emp.status,
                "role": emp.role,
                "isSuspended": bool(emp.isSuspended),
                "profileImage": emp.profileImage or "",
                "createdAt": emp.createdAt or "",
                "activeContract": _active_contract_brief(active.get(emp.id)),
            }
        )
    return {"items": items, "total": len(items)}


def _employee_contracts(db, emp_id: int) -> list[dict[str, Any]]:
    rows = db.execute(select(Contract).where(Contract.employeeId == emp_id).order_by(Contract.startDate.desc(), Contract.id.desc())).scalars().all()
    return [contract_svc.serialize(c) for c in rows]


def get_employee(data, auth: AuthContext | None, db, cfg):
    emp = get_or_404(db, Employee, (data or {}).get("id"), "Employee")
    out = serialize_profile(emp)
    out["contracts"] = _employee_contracts(db, emp.id)
    return out


def create_employee(data, auth: AuthContext | None, db, cfg):
    employee_id = str_field(data, "employeeId")
    full_name = str_field(data, "fullName")
    email = str_field(data, "email").lower()
    password = str((data or {}).get("password") or "")
    if not employee_id or not full_name or not email or not password:
        raise ApiError("BAD_REQUEST", "Employee ID, full name, email, and password are required")

    role = (str_field(data, "role") or "employee").lower()
    if role not in EMPLOYEE_ROLES:
        raise ApiError("BAD_REQUEST", "Invalid role")
    if db.execute(select(Employee.id).where(Employee.employeeId == employee_id)).first():
        raise ApiError("BAD_REQUEST", "Employee ID already exists")
    if _email_taken(db, email):
        raise ApiError("BAD_REQUEST", "Email already exists")

    now = iso_utc_now()
    by = actor_label(auth)
    emp = Employee(
        employeeId=employee_id,
        fullName=full_name,
        email=email,
        password=hash_password(password, min_length=cfg.PASSWORD_MIN_LENGTH),
        contactNumber=str_field(data, "contactNumber"),
        role=role,
        status="Active",
        isSuspended=False,
        createdAt=now,
        createdBy=by,
        updatedAt=now,
        updatedBy=by,
    )
    db.add(emp)
    db.flush()

    contract_out = None
    contract_fields = (data or {}).get("contract")
    if isinstance(contract_fields, dict) and contract_fields:
        contract, _ = contract_svc.create(db, emp.id, contract_fields, actor_id=by)
        emp.position = contract.position or emp.position
        emp.department = contract.department or emp.department
        emp.dateHired = contract.startDate
        ledger.initialize(db, emp.id, contract.contractType)
        contract_out = contract_svc.serialize(contract)

    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=str(emp.id),
        action="EMPLOYEE_CREATE",
        stageTag="HR_EMPLOYEE",
        remark=f"Created new employee: {full_name} (ID: {employee_id})",
        actor=auth,
        after={"employeeId": employee_id, "email": email, "role": role},
    )
    return {
        "message": "Employee created successfully",
        "employee": {"id": emp.id, "employeeId": emp.employeeId, "fullName": emp.fullName, "email": emp.email, "role": emp.role},
        "contract": contract_out,
    }


def bulk_import_preview(data, auth: AuthContext | None, db, cfg):
    up = uploaded_file(data)
    return bulk_import.preview(db, bulk_import.parse_csv(up["bytes"]))


def bulk_import_confirm(data, auth: AuthContext | None, db, cfg):
    up = uploaded_file(data)
    rows = bulk_import.parse_csv(up["bytes"])
    if not rows:
        raise ApiError("BAD_REQUEST", "The file has no employee rows")

    default_password = str((data or {}).get("defaultPassword") or "")
    if default_password:
        validate_password_policy(default_password, min_length=cfg.PASSWORD_MIN_LENGTH)
    auto_contracts = bool_field(data, "autoCreateContracts")

    created, errors = bulk_import.import_rows(
        db,
        rows,
        default_password=default_password,
        auto_contracts=auto_contracts,
        actor=actor_label(auth),
        min_length=cfg.PASSWORD_MIN_LENGTH,
    )

    if created:
        append_audit(
            db,
            entityType="EMPLOYEE",
            entityId=",".join(str(e.id) for e in created),
            action="EMPLOYEE_BULK_IMPORT",
            stageTag="HR_EMPLOYEE",
            remark=f"Imported {len(created)} employee(s) from {up.get('fileName') or 'CSV'}",
            actor=auth,
            meta={"created": len(created), "failed": len(errors), "autoCreateContracts": auto_contracts},
        )
    return {
        "success": True,
        "successCount": len(created),
        "errors": errors,
        "message": f"Successfully imported {len(created)} employee(s)",
        "employees": [_employee_brief(e) for e in created],
    }


def employee_import_template(data, auth: AuthContext | None, db, cfg):
    return {
        "__file__": True,
        "content": bulk_import.template_csv(),
        "downloadName": bulk_import.TEMPLATE_FILE_NAME,
        "mimeType": "text/csv",
        "asAttachment": True,
    }


def update_employee(data, auth: AuthContext | None, db, cfg):
    emp = get_or_404(db, Employee, (data or {}).get("id"), "Employee")
    changes = {k: v for k, v in dict(data or {}).items() if k not in ("id", "password", "role", "employeeId", "profileImage")}
    if "fullName" in changes and "name" not in changes:
        changes["name"] = changes.pop("fullName")

    before = profile_values(emp)
    applied = apply_profile_changes(db, emp, changes, extra_fields=_HR_ONLY_FIELDS)
    emp.updatedAt = iso_utc_now()
    emp.updatedBy = actor_label(auth)
    db.flush()

    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=str(emp.id),
        action="EMPLOYEE_UPDATE",
        stageTag="HR_EMPLOYEE",
        remark=f"Employee {emp.fullName} information updated by HR",
        actor=auth,
        before={k: before.get(k) for k in applied if k in before},
        meta={"updatedFields": applied},
    )
    out = serialize_profile(emp)
    out["contracts"] = _employee_contracts(db, emp.id)
    return {"message": "Employee information updated successfully", "employee": out}


# HR review of profile change requests


def list_profile_requests(data, auth: AuthContext | None, db, cfg):
    q = select(ProfileChangeRequest)
    status = str_field(data, "status")
    if status:
        q = q.where(ProfileChangeRequest.status == status)
    # pending first, newest first within each group
    rows = db.execute(q.order_by(ProfileChangeRequest.createdAt.desc(), ProfileChangeRequest.id.desc())).scalars().all()
    rows = sorted(rows, key=lambda r: 0 if r.status == "pending" else 1)
    return {"items": [_serialize_change_request(db, r) for r in rows]}


def get_profile_request(data, auth: AuthContext | None, db, cfg):
    row = get_or_404(db, ProfileChangeRequest, (data or {}).get("id"), "Profile change request")
    return _serialize_change_request(db, row)


def _pending_request_or_raise(db, data) -> ProfileChangeRequest:
    row = get_or_404(db, ProfileChangeRequest, (data or {}).get("id"), "Profile change request")
    if row.status != "pending":
        raise ApiError("STATE_CONFLICT", "This request has already been reviewed")
    return row


def approve_profile_request(data, auth: AuthContext | None, db, cfg):
    row = _pending_request_or_raise(db, data)
    emp = db.get(Employee, row.employeeId)
    if not emp:
        raise ApiError("NOT_FOUND", "Employee not found")

    changes = json_dict(row.requestedChangesJson)
    applied = apply_profile_changes(db, emp, changes)
    now = iso_utc_now()
    emp.updatedAt = now
    emp.updatedBy = actor_label(auth)

    row.status = "approved"
    row.reviewedBy = actor_id(auth)
    row.reviewedAt = now
    row.reviewNotes = str_field(data, "reviewNotes")
    db.flush()

    notify(db, row.employeeId, "Your profile change request has been approved by HR")
    append_audit(
        db,
        entityType="PROFILE_CHANGE_REQUEST",
        entityId=str(row.id),
        action="APPROVE_PROFILE_CHANGE",
        stageTag="PROFILE_CHANGE",
        fromState="pending",
        toState="approved",
        actor=auth,
        before=json_dict(row.currentValuesJson),
        after={k: changes.get(k) for k in applied},
    )
    return {"message": "Profile change request approved successfully", "request": _serialize_change_request(db, row)}


def reject_profile_request(data, auth: AuthContext | None, db, cfg):
    row = _pending_request_or_raise(db, data)
    notes = str_field(data, "reviewNotes")

    row.status = "rejected"
    row.reviewedBy = actor_id(auth)
    row.reviewedAt = iso_utc_now()
    row.reviewNotes = notes or "Request rejected by HR"
    db.flush()

    notify(db, row.employeeId, f"Your profile change request has been rejected. Reason: {notes or 'No reason provided'}")
    append_audit(
        db,
        entityType="PROFILE_CHANGE_REQUEST",
        entityId=str(row.id),
        action="REJECT_PROFILE_CHANGE",
        stageTag="PROFILE_CHANGE",
        fromState="pending",
        toState="rejected",
        actor=auth,
        remark=row.reviewNotes,
    )
    return {"message": "Profile change request rejected", "request": _serialize_change_request(db, row)}
