from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import func, select

from models import Employee, Notification
from utils import iso_utc_now


def notify(db, user_id: Optional[int], message: str) -> Notification:
    row = Notification(userId=user_id, message=str(message or ""), time=iso_utc_now(), read=False, archived=False)
    db.add(row)
    return row


def notify_roles(db, roles: Iterable[str], message: str) -> int:
    """One notification per non-suspended user holding any of the roles."""
    wanted = [str(r or "").strip().lower() for r in roles if str(r or "").strip()]
    ids = (
        db.execute(
            select(Employee.id)
            .where(func.lower(Employee.role).in_(wanted))
            .where(Employee.isSuspended == False)  # noqa: E712
        )
        .scalars()
        .all()
    )
    for uid in ids:
        notify(db, uid, message)
    return len(ids)


def notify_all(db, message: str) -> int:
    ids = db.execute(select(Employee.id).where(Employee.isSuspended == False)).scalars().all()  # noqa: E712
    for uid in ids:
        notify(db, uid, message)
    return len(ids)


def serialize(row: Notification) -> dict[str, Any]:
    return {
        "id": row.id,
        "userId": row.userId,
        "message": row.message or "",
        "time": row.time or "",
        "read": bool(row.read),
        "archived": bool(row.archived),
    }
