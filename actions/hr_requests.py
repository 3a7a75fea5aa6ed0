from __future__ import annotations

import json
from typing import Any

from sqlalchemy import func, select

from actions.helpers import actor_id, append_audit, get_or_404, json_dict, require_login, str_field
from models import Employee, HRRequest
from services.notifications import notify, notify_roles
from utils import ApiError, AuthContext, iso_utc_now


# open -> assigned -> approved / rejected
_OPEN_STATUSES = {"open", "assigned"}


def serialize_request(row: HRRequest) -> dict[str, Any]:
    return {
        "id": row.id,
        "requestedBy": row.requestedBy,
        "targetEmployeeId": row.targetEmployeeId,
        "assignedTo": row.assignedTo,
        "reviewedBy": row.reviewedBy,
        "type": row.type or "",
        "details": json_dict(row.detailsJson),
        "status": row.status,
        "reviewNotes": row.reviewNotes or "",
        "reviewedAt": row.reviewedAt or "",
        "createdAt": row.createdAt or "",
        "updatedAt": row.updatedAt or "",
    }


def create_request(data, auth: AuthContext | None, db, cfg):
    require_login(auth)
    req_type = str_field(data, "type")
    if not req_type:
        raise ApiError("BAD_REQUEST", "Request type is required")
    details = (data or {}).get("details") or {}
    if not isinstance(details, dict):
        raise ApiError("BAD_REQUEST", "details must be an object")

    target = None
    if (data or {}).get("targetEmployeeId") not in (None, ""):
        target = get_or_404(db, Employee, data.get("targetEmployeeId"), "Employee").id

    now = iso_utc_now()
    row = HRRequest(
        requestedBy=actor_id(auth),
        targetEmployeeId=target,
        type=req_type,
        detailsJson=json.dumps(details, default=str),
        status="open",
        createdAt=now,
        updatedAt=now,
    )
    db.add(row)
    db.flush()

    notify_roles(db, ["mis"], f"New {req_type} request submitted by HR (#{row.id}).")
    append_audit(
        db,
        entityType="HR_REQUEST",
        entityId=str(row.id),
        action="HR_REQUEST_CREATE",
        stageTag="HR_REQUEST",
        toState="open",
        actor=auth,
        after=serialize_request(row),
    )
    return serialize_request(row)


def my_requests(data, auth: AuthContext | None, db, cfg):
    require_login(auth)
    rows = (
        db.execute(select(HRRequest).where(HRRequest.requestedBy == actor_id(auth)).order_by(HRRequest.createdAt.desc(), HRRequest.id.desc()))
        .scalars()
        .all()
    )
    return {"items": [serialize_request(r) for r in rows]}


def my_stats(data, auth: AuthContext | None, db, cfg):
    require_login(auth)
    count = db.execute(select(func.count(HRRequest.id)).where(HRRequest.requestedBy == actor_id(auth))).scalar_one()
    return {"count": int(count or 0)}


def get_request(data, auth: AuthContext | None, db, cfg):
    row = get_or_404(db, HRRequest, (data or {}).get("id"), "Request")
    # HR sees only its own requests; MIS sees the whole queue.
    if str(auth.role if auth else "").upper() == "HR" and row.requestedBy != actor_id(auth):
        raise ApiError("NOT_FOUND", "Request not found")
    return serialize_request(row)


def all_requests(data, auth: AuthContext | None, db, cfg):
    q = select(HRRequest)
    status = str_field(data, "status")
    if status:
        q = q.where(HRRequest.status == status)
    rows = db.execute(q.order_by(HRRequest.createdAt.desc(), HRRequest.id.desc())).scalars().all()
    return {"items": [serialize_request(r) for r in rows]}


def queue_stats(data, auth: AuthContext | None, db, cfg):
    count = db.execute(select(func.count(HRRequest.id)).where(HRRequest.status == "open")).scalar_one()
    return {"open": int(count or 0)}


def _open_request(db, data) -> HRRequest:
    row = get_or_404(db, HRRequest, (data or {}).get("id"), "Request")
    if row.status not in _OPEN_STATUSES:
        raise ApiError("STATE_CONFLICT", "This request has already been reviewed")
    return row


def assign_request(data, auth: AuthContext | None, db, cfg):
    row = _open_request(db, data)
    assignee = get_or_404(db, Employee, (data or {}).get("assignedTo"), "Assignee")
    if str(assignee.role or "").lower() != "mis":
        raise ApiError("BAD_REQUEST", "Requests can only be assigned to MIS users")

    prev = row.status
    row.assignedTo = assignee.id
    row.status = "assigned"
    row.updatedAt = iso_utc_now()
    db.flush()

    if assignee.id != actor_id(auth):
        notify(db, assignee.id, f"HR request #{row.id} ({row.type}) has been assigned to you.")
    append_audit(
        db,
        entityType="HR_REQUEST",
        entityId=str(row.id),
        action="HR_REQUEST_ASSIGN",
        stageTag="HR_REQUEST",
        fromState=prev,
        toState="assigned",
        actor=auth,
        meta={"assignedTo": assignee.id},
    )
    return serialize_request(row)


def _review(db, data, auth, status: str) -> dict[str, Any]:
    row = _open_request(db, data)
    prev = row.status
    now = iso_utc_now()
    row.status = status
    row.reviewedBy = actor_id(auth)
    row.reviewedAt = now
    row.reviewNotes = str_field(data, "reviewNotes")
    row.updatedAt = now
    db.flush()

    notify(db, row.requestedBy, f"Your {row.type} request (#{row.id}) has been {status}.")
    append_audit(
        db,
        entityType="HR_REQUEST",
        entityId=str(row.id),
        action=f"HR_REQUEST_{status.upper()}",
        stageTag="HR_REQUEST",
        fromState=prev,
        toState=status,
        remark=row.reviewNotes,
        actor=auth,
    )
    return serialize_request(row)


def approve_request(data, auth: AuthContext | None, db, cfg):
    return _review(db, data, auth, "approved")


def reject_request(data, auth: AuthContext | None, db, cfg):
    return _review(db, data, auth, "rejected")
