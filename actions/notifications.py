from __future__ import annotations

from sqlalchemy import select

from actions.helpers import actor_id, append_audit, bool_field, get_or_404, parse_id, require_login, str_field
from models import Employee, Notification
from services.notifications import notify, notify_all, serialize
from utils import ApiError, AuthContext


def _own(db, data, auth: AuthContext | None) -> Notification:
    require_login(auth)
    row = db.get(Notification, parse_id((data or {}).get("id"), "Notification"))
    if not row or row.userId != actor_id(auth):
        raise ApiError("NOT_FOUND", "Notification not found")
    return row


def my_notifications(data, auth: AuthContext | None, db, cfg):
    require_login(auth)
    q = select(Notification).where(Notification.userId == actor_id(auth))
    if not bool_field(data, "includeArchived"):
        q = q.where(Notification.archived == False)  # noqa: E712
    rows = db.execute(q.order_by(Notification.time.desc(), Notification.id.desc())).scalars().all()
    return {"items": [serialize(r) for r in rows], "unread": sum(1 for r in rows if not r.read)}


def mark_read(data, auth: AuthContext | None, db, cfg):
    row = _own(db, data, auth)
    row.read = True
    db.flush()
    return {"message": "Notification marked as read", "notification": serialize(row)}


def archive(data, auth: AuthContext | None, db, cfg):
    row = _own(db, data, auth)
    row.archived = True
    row.read = True
    db.flush()
    return {"message": "Notification archived successfully", "notification": serialize(row)}


def restore(data, auth: AuthContext | None, db, cfg):
    row = _own(db, data, auth)
    row.archived = False
    db.flush()
    return {"message": "Notification restored successfully", "notification": serialize(row)}


def delete(data, auth: AuthContext | None, db, cfg):
    row = _own(db, data, auth)
    db.delete(row)
    db.flush()
    return {"message": "Notification deleted successfully"}


# MIS system notifications


def system_list(data, auth: AuthContext | None, db, cfg):
    rows = db.execute(select(Notification).order_by(Notification.time.desc(), Notification.id.desc()).limit(100)).scalars().all()
    return {"items": [serialize(r) for r in rows]}


def system_create(data, auth: AuthContext | None, db, cfg):
    message = str_field(data, "message")
    if not message:
        raise ApiError("BAD_REQUEST", "Message is required")

    raw_user = (data or {}).get("userId")
    if raw_user not in (None, ""):
        user = get_or_404(db, Employee, raw_user, "User")
        row = notify(db, user.id, message)
        db.flush()
        recipients = 1
        out = {"message": "Notification created", "notification": serialize(row), "recipients": recipients}
    else:
        recipients = notify_all(db, message)
        db.flush()
        out = {"message": "Notification broadcast", "recipients": recipients}

    append_audit(
        db,
        entityType="NOTIFICATION",
        entityId=str(raw_user or "ALL"),
        action="SYSTEM_NOTIFICATION_CREATE",
        stageTag="NOTIFICATION",
        actor=auth,
        meta={"recipients": recipients},
    )
    return out


def system_mark_read(data, auth: AuthContext | None, db, cfg):
    row = get_or_404(db, Notification, (data or {}).get("id"), "Notification")
    row.read = True
    db.flush()
    return {"message": "Notification marked as read", "notification": serialize(row)}


def system_delete(data, auth: AuthContext | None, db, cfg):
    row = get_or_404(db, Notification, (data or {}).get("id"), "Notification")
    db.delete(row)
    db.flush()
    return {"message": "Notification deleted successfully"}
