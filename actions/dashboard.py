from __future__ import annotations

from datetime import timedelta
from typing import Any

from sqlalchemy import func, select

from actions.contracts import with_employees as contracts_with_employees
from actions.documents import serialize_document
from actions.leaves import with_employees as leaves_with_employees
from models import Certificate, Contract, Department, Document, Employee, Leave
from services.school_year import local_today


def _count(db, model, *where) -> int:
    q = select(func.count()).select_from(model)
    for w in where:
        q = q.where(w)
    return int(db.execute(q).scalar_one() or 0)


def _grouped(db, column, *where) -> list[dict[str, Any]]:
    q = select(column, func.count()).select_from(Contract)
    for w in where:
        q = q.where(w)
    return [{"key": k or "", "count": int(n)} for k, n in db.execute(q.group_by(column)).all()]


def dashboard_stats(data, auth, db, cfg):
    today = local_today(getattr(cfg, "APP_TIMEZONE", ""))
    horizon = today + timedelta(days=30)
    month_start = today.replace(day=1).isoformat()

    expiring_where = (Contract.status == "Active", Contract.endDate.is_not(None), Contract.endDate >= today, Contract.endDate <= horizon)
    upcoming = db.execute(select(Contract).where(*expiring_where).order_by(Contract.endDate.asc()).limit(10)).scalars().all()
    recent_leaves = db.execute(select(Leave).order_by(Leave.createdAt.desc(), Leave.id.desc()).limit(10)).scalars().all()
    recent_employees = db.execute(select(Employee).order_by(Employee.createdAt.desc(), Employee.id.desc()).limit(10)).scalars().all()

    return {
        "employees": {
            "total": _count(db, Employee),
            "active": _count(db, Employee, func.lower(Employee.status) == "active"),
            "suspended": _count(db, Employee, Employee.isSuspended == True),  # noqa: E712
            "newThisMonth": _count(db, Employee, Employee.createdAt >= month_start),
        },
        "contracts": {
            "total": _count(db, Contract),
            "active": _count(db, Contract, Contract.status == "Active"),
            "expiring": _count(db, Contract, *expiring_where),
            "byType": [{"contractType": g["key"], "count": g["count"]} for g in _grouped(db, Contract.contractType, Contract.status == "Active")],
        },
        "leaves": {
            "total": _count(db, Leave),
            "pending": _count(db, Leave, Leave.status == "Pending"),
            "approved": _count(db, Leave, Leave.status == "Approved"),
            "rejected": _count(db, Leave, Leave.status == "Rejected"),
            "thisMonth": _count(db, Leave, Leave.createdAt >= month_start),
        },
        "documents": {
            "total": _count(db, Document),
            "pending": _count(db, Document, Document.status == "Pending"),
            "verified": _count(db, Document, Document.status == "Approved"),
        },
        "certificates": {
            "total": _count(db, Certificate),
            "pending": _count(db, Certificate, Certificate.status == "Pending"),
        },
        "departments": {
            "total": _count(db, Department),
            "byDepartment": [{"department": g["key"], "count": g["count"]} for g in _grouped(db, Contract.department, Contract.status == "Active")][:10],
        },
        "recentActivities": {
            "employees": [
                {"id": e.id, "employeeId": e.employeeId, "fullName": e.fullName or "", "email": e.email, "createdAt": e.createdAt or ""}
                for e in recent_employees
            ],
            "expiringContracts": contracts_with_employees(db, upcoming),
            "leaveRequests": leaves_with_employees(db, recent_leaves),
        },
    }


def contract_report(data, auth, db, cfg):
    rows = db.execute(select(Contract).order_by(Contract.id.asc())).scalars().all()
    return {"report": "contracts", "items": contracts_with_employees(db, rows)}


def leave_report(data, auth, db, cfg):
    rows = db.execute(select(Leave).order_by(Leave.id.asc())).scalars().all()
    return {"report": "leaves", "items": leaves_with_employees(db, rows)}


def document_report(data, auth, db, cfg):
    rows = db.execute(select(Document).order_by(Document.id.asc())).scalars().all()
    return {"report": "documents", "items": [serialize_document(d) for d in rows]}
