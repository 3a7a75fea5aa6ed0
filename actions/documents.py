from __future__ import annotations

from typing import Any

from sqlalchemy import select

from actions.helpers import actor_id, append_audit, current_employee, get_or_404, parse_id, str_field
from models import Document, Employee
from services.file_storage import file_response_spec, save_upload
from services.notifications import notify, notify_roles
from utils import ApiError, AuthContext, iso_utc_now


def uploaded_file(data) -> dict[str, Any]:
    """The multipart part the route attached as data["file"]."""
    up = (data or {}).get("file")
    if not isinstance(up, dict) or not up.get("bytes"):
        raise ApiError("BAD_REQUEST", "Missing file")
    return up


def serialize_document(doc: Document, emp: Employee | None = None) -> dict[str, Any]:
    out = {
        "id": doc.id,
        "employeeId": doc.employeeId,
        "type": doc.type,
        "fileName": doc.fileName or "",
        "mimeType": doc.mimeType or "",
        "size": int(doc.size or 0),
        "hasFile": bool(doc.storageKey),
        "status": doc.status,
        "rejectionReason": doc.rejectionReason or "",
        "uploadedAt": doc.uploadedAt or "",
        "isHRRequested": bool(doc.isHRRequested),
        "requestedBy": doc.requestedBy,
        "requestReason": doc.requestReason or "",
        "requestedAt": doc.requestedAt or "",
        "processedAt": doc.processedAt or "",
        "processedBy": doc.processedBy,
    }
    if emp is not None:
        out["employee"] = {"id": emp.id, "employeeId": emp.employeeId, "fullName": emp.fullName or "", "email": emp.email}
    return out


# Employee self-service


def my_documents(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    rows = db.execute(select(Document).where(Document.employeeId == emp.id).order_by(Document.id.desc())).scalars().all()
    return {"items": [serialize_document(d) for d in rows]}


def upload_document(data, auth: AuthContext | None, db, cfg):
    emp = current_employee(db, auth)
    doc_type = str_field(data, "type")
    document_id = str_field(data, "documentId")
    if not doc_type and not document_id:
        raise ApiError("BAD_REQUEST", "Document type or document ID is required")
    up = uploaded_file(data)

    if document_id:
        doc = db.get(Document, parse_id(document_id, "Document request"))
        if not doc or doc.employeeId != emp.id or doc.status != "Requested":
            raise ApiError("NOT_FOUND", "Document request not found")
    else:
        doc = Document(employeeId=emp.id, type=doc_type, isHRRequested=False)
        db.add(doc)

    stored = save_upload(
        cfg,
        category="DOC",
        owner_id=emp.id,
        file_bytes=up["bytes"],
        file_name=str(up.get("fileName") or ""),
        mime_type=str(up.get("mimeType") or ""),
    )
    doc.storageKey = stored["storageKey"]
    doc.fileName = stored["fileName"]
    doc.mimeType = stored["mimeType"]
    doc.size = stored["size"]
    doc.status = "Pending"
    doc.uploadedAt = iso_utc_now()
    db.flush()

    if doc.isHRRequested and doc.requestedBy:
        notify(db, doc.requestedBy, f"{emp.fullName or 'Employee'} has uploaded the requested {doc.type} document.")
    else:
        notify_roles(db, ["hr"], f"{emp.fullName or 'Employee'} uploaded a {doc.type} document for review.")

    append_audit(
        db,
        entityType="DOCUMENT",
        entityId=str(doc.id),
        action="DOCUMENT_UPLOAD",
        stageTag="DOCUMENT",
        toState="Pending",
        actor=auth,
        meta={"type": doc.type, "fileName": doc.fileName, "size": doc.size, "fulfilsRequest": bool(document_id)},
    )
    return {"message": "Document uploaded successfully", "document": serialize_document(doc)}


# HR


def list_documents(data, auth: AuthContext | None, db, cfg):
    q = select(Document)
    status = str_field(data, "status")
    if status:
        q = q.where(Document.status == status)
    if str_field(data, "employeeId"):
        q = q.where(Document.employeeId == parse_id(data.get("employeeId"), "Employee"))
    rows = db.execute(q.order_by(Document.uploadedAt.desc(), Document.id.desc())).scalars().all()

    ids = {d.employeeId for d in rows}
    emps = {}
    if ids:
        emps = {e.id: e for e in db.execute(select(Employee).where(Employee.id.in_(ids))).scalars().all()}
    return {"items": [serialize_document(d, emps.get(d.employeeId)) for d in rows]}


def view_document(data, auth: AuthContext | None, db, cfg):
    doc = get_or_404(db, Document, (data or {}).get("id"), "Document")
    if not doc.storageKey:
        raise ApiError("NOT_FOUND", "File not found")
    return file_response_spec(cfg, storage_key=doc.storageKey, file_name=doc.fileName, mime_type=doc.mimeType, as_attachment=False)


def _decide(db, data, auth, *, status: str, reason: str = "") -> Document:
    doc = get_or_404(db, Document, (data or {}).get("id"), "Document")
    if doc.status != "Pending":
        raise ApiError("STATE_CONFLICT", "Only pending documents can be reviewed")
    prev = doc.status
    doc.status = status
    doc.rejectionReason = reason
    doc.processedAt = iso_utc_now()
    doc.processedBy = actor_id(auth)
    db.flush()

    emp = db.get(Employee, doc.employeeId)
    append_audit(
        db,
        entityType="DOCUMENT",
        entityId=str(doc.id),
        action=f"DOCUMENT_{status.upper()}",
        stageTag="DOCUMENT",
        fromState=prev,
        toState=status,
        remark=f"{status} {doc.type} document for {emp.fullName if emp else 'Unknown'} (ID: {doc.employeeId})",
        actor=auth,
    )
    return doc


def approve_document(data, auth: AuthContext | None, db, cfg):
    doc = _decide(db, data, auth, status="Approved")
    notify(db, doc.employeeId, f"Your {doc.type} document has been approved.")
    return {"message": "Document approved", "document": serialize_document(doc)}


def reject_document(data, auth: AuthContext | None, db, cfg):
    reason = str_field(data, "reason")
    doc = _decide(db, data, auth, status="Rejected", reason=reason)
    suffix = f" Reason: {reason}" if reason else ""
    notify(db, doc.employeeId, f"Your {doc.type} document has been rejected.{suffix}")
    return {"message": "Document rejected", "document": serialize_document(doc)}


def request_document(data, auth: AuthContext | None, db, cfg):
    document_type = str_field(data, "documentType")
    if not (data or {}).get("employeeId") or not document_type:
        raise ApiError("BAD_REQUEST", "Employee ID and document type are required")
    emp = get_or_404(db, Employee, data.get("employeeId"), "Employee")
    reason = str_field(data, "reason")

    doc = Document(
        employeeId=emp.id,
        type=document_type,
        status="Requested",
        isHRRequested=True,
        requestedBy=actor_id(auth),
        requestReason=reason,
        requestedAt=iso_utc_now(),
    )
    db.add(doc)
    db.flush()

    suffix = f" Reason: {reason}" if reason else ""
    notify(db, emp.id, f"HR has requested you to upload: {document_type}.{suffix}")
    append_audit(
        db,
        entityType="DOCUMENT",
        entityId=str(doc.id),
        action="DOCUMENT_REQUEST",
        stageTag="DOCUMENT",
        toState="Requested",
        remark=f"Requested {document_type} from {emp.fullName} (ID: {emp.employeeId})",
        actor=auth,
    )
    return {"message": "Document request sent successfully", "document": serialize_document(doc, emp)}
