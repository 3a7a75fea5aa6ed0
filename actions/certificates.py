from __future__ import annotations

from typing import Any

from sqlalchemy import select

from actions.documents import uploaded_file
from actions.helpers import actor_id, append_audit, current_employee, get_or_404, parse_id, str_field
from models import Certificate, Employee
from services.file_storage import file_response_spec, save_upload
from services.notifications import notify, notify_roles
from utils import ApiError, AuthContext, iso_utc_now


def serialize_certificate(cert: Certificate, emp: Employee | None = None) -> dict[str, Any]:
    out = {
        "id": cert.id,
        "employeeId": cert.employeeId,
        "certificateType": cert.certificateType,
        "status": cert.status,
        "remarks": cert.remarks or "",
        "hasFile": bool(cert.storageKey),
        "fileName": cert.fileName or "",
        "requestedAt": cert.requestedAt or "",
        "processedAt": cert.processedAt or "",
        "processedBy": cert.processedBy,
    }
    if emp is not None:
        out["employee"] = {"id": emp.id, "employeeId": emp.employeeId, "fullName": emp.fullName or "", "email": emp.email}
    return out


# Employee self-service


def request_certificates(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    wanted = (data or {}).get("certificates")
    if not isinstance(wanted, list) or not wanted:
        raise ApiError("BAD_REQUEST", "Please select at least one certificate")
    types = [str(t or "").strip() for t in wanted]
    if any(not t for t in types):
        raise ApiError("BAD_REQUEST", "Certificate type cannot be empty")

    now = iso_utc_now()
    created = [Certificate(employeeId=emp.id, certificateType=t, status="Pending", requestedAt=now) for t in types]
    db.add_all(created)
    db.flush()

    notify_roles(db, ["hr"], f"{emp.fullName} requested {len(created)} certificate(s): {', '.join(types)}")
    append_audit(
        db,
        entityType="CERTIFICATE",
        entityId=",".join(str(c.id) for c in created),
        action="CERTIFICATE_REQUEST",
        stageTag="CERTIFICATE",
        toState="Pending",
        actor=auth,
        meta={"types": types},
    )
    return {"message": "Certificate request(s) submitted successfully", "requests": [serialize_certificate(c) for c in created]}


def my_certificates(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    rows = (
        db.execute(select(Certificate).where(Certificate.employeeId == emp.id).order_by(Certificate.requestedAt.desc(), Certificate.id.desc()))
        .scalars()
        .all()
    )
    return {"items": [serialize_certificate(c) for c in rows]}


def download_certificate(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    cert = db.get(Certificate, parse_id((data or {}).get("id"), "Certificate"))
    if not cert or cert.employeeId != emp.id or cert.status != "Approved" or not cert.storageKey:
        raise ApiError("NOT_FOUND", "Certificate not found or not yet approved")
    return file_response_spec(cfg, storage_key=cert.storageKey, file_name=cert.fileName, mime_type=cert.mimeType, as_attachment=True)


# HR


def list_certificate_requests(data, auth: AuthContext | None, db, cfg):
    q = select(Certificate)
    status = str_field(data, "status")
    if status:
        q = q.where(Certificate.status == status)
    rows = db.execute(q.order_by(Certificate.requestedAt.desc(), Certificate.id.desc())).scalars().all()
    ids = {c.employeeId for c in rows}
    emps = {}
    if ids:
        emps = {e.id: e for e in db.execute(select(Employee).where(Employee.id.in_(ids))).scalars().all()}
    return {"items": [serialize_certificate(c, emps.get(c.employeeId)) for c in rows]}


def _decide(db, data, auth, *, status: str, remarks: str = "") -> Certificate:
    cert = get_or_404(db, Certificate, (data or {}).get("id"), "Certificate request")
    if cert.status != "Pending":
        raise ApiError("STATE_CONFLICT", "Only pending certificate requests can be reviewed")
    cert.status = status
    cert.remarks = remarks
    cert.processedAt = iso_utc_now()
    cert.processedBy = actor_id(auth)
    db.flush()
    append_audit(
        db,
        entityType="CERTIFICATE",
        entityId=str(cert.id),
        action=f"CERTIFICATE_{status.upper()}",
        stageTag="CERTIFICATE",
        fromState="Pending",
        toState=status,
        remark=remarks,
        actor=auth,
    )
    return cert


def approve_certificate(data, auth: AuthContext | None, db, cfg):
    cert = _decide(db, data, auth, status="Approved", remarks=str_field(data, "remarks"))
    notify(db, cert.employeeId, f'Your certificate request for "{cert.certificateType}" has been approved.')
    return {"message": "Certificate request approved", "certificate": serialize_certificate(cert)}


def reject_certificate(data, auth: AuthContext | None, db, cfg):
    remarks = str_field(data, "remarks")
    cert = _decide(db, data, auth, status="Rejected", remarks=remarks)
    suffix = f" Reason: {remarks}" if remarks else ""
    notify(db, cert.employeeId, f'Your certificate request for "{cert.certificateType}" has been rejected.{suffix}')
    return {"message": "Certificate request rejected", "certificate": serialize_certificate(cert)}


def upload_certificate(data, auth: AuthContext | None, db, cfg):
    cert = get_or_404(db, Certificate, (data or {}).get("id"), "Certificate request")
    if cert.status != "Approved":
        raise ApiError("BAD_REQUEST", "Certificate must be approved first")
    up = uploaded_file(data)

    stored = save_upload(
        cfg,
        category="CERT",
        owner_id=cert.employeeId,
        file_bytes=up["bytes"],
        file_name=str(up.get("fileName") or ""),
        mime_type=str(up.get("mimeType") or ""),
    )
    cert.storageKey = stored["storageKey"]
    cert.fileName = stored["fileName"]
    cert.mimeType = stored["mimeType"]
    db.flush()

    notify(db, cert.employeeId, f'Your "{cert.certificateType}" certificate is ready for download.')
    append_audit(
        db,
        entityType="CERTIFICATE",
        entityId=str(cert.id),
        action="CERTIFICATE_UPLOAD",
        stageTag="CERTIFICATE",
        actor=auth,
        meta={"fileName": cert.fileName, "size": stored["size"]},
    )
    return {"message": "Certificate file uploaded", "certificate": serialize_certificate(cert)}
