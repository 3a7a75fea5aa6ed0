from __future__ import annotations

from db import SessionLocal
from models import Employee, Notification
from passwords import hash_password
from utils import iso_utc_now

from sqlalchemy import select


PASSWORD = "Passw0rd!"


def _seed_user(email: str, role: str) -> int:
    now = iso_utc_now()
    with SessionLocal() as db:
        emp = Employee(
            employeeId=f"EMP-{email.split('@')[0].upper()}",
            fullName=email.split("@")[0].title(),
            email=email,
            password=hash_password(PASSWORD),
            role=role,
            status="Active",
            createdAt=now,
            updatedAt=now,
        )
        db.add(emp)
        db.commit()
        return emp.id


def _headers(client, email: str) -> dict:
    res = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    return {"Authorization": f"Bearer {res.get_json()['data']['sessionToken']}"}


def _request_leave(client, headers, start: str, end: str, **extra) -> dict:
    body = {"type": "Vacation", "startDate": start, "endDate": end, "reason": "Family trip", **extra}
    res = client.post("/api/employee/leave", json=body, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()["data"]["leave"]


def test_approve_debits_credits_once(app_client):
    _app, client = app_client
    emp_id = _seed_user("gina@school.test", "employee")
    _seed_user("hr@school.test", "hr")
    emp_h = _headers(client, "gina@school.test")
    hr_h = _headers(client, "hr@school.test")

    leave = _request_leave(client, emp_h, "2024-09-02", "2024-09-06")
    assert leave["status"] == "Pending"
    assert leave["schoolYear"] == "2024-2025"
    assert leave["daysCount"] == 5.0

    res = client.put(f"/api/hr/leaves/{leave['id']}/approve", headers=hr_h)
    assert res.status_code == 200
    assert res.get_json()["data"]["leave"]["status"] == "Approved"

    res = client.put(f"/api/hr/leaves/{leave['id']}/approve", headers=hr_h)
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "STATE_CONFLICT"

    res = client.get(f"/api/hr/leave-credits/{emp_id}?schoolYear=2024-2025", headers=hr_h)
    assert res.status_code == 200
    credits = res.get_json()["data"]
    assert credits["totalCredits"] == 15.0
    assert credits["usedCredits"] == 5.0
    assert credits["remainingCredits"] == 10.0

    with SessionLocal() as db:
        msgs = db.execute(select(Notification.message).where(Notification.userId == emp_id)).scalars().all()
        assert any("approved" in m for m in msgs)


def test_end_before_start_is_rejected(app_client):
    _app, client = app_client
    _seed_user("hank@school.test", "employee")
    emp_h = _headers(client, "hank@school.test")

    res = client.post(
        "/api/employee/leave",
        json={"type": "Sick", "startDate": "2024-09-06", "endDate": "2024-09-02"},
        headers=emp_h,
    )
    assert res.status_code == 400


def test_only_rejected_leaves_can_be_deleted(app_client):
    _app, client = app_client
    _seed_user("ivy@school.test", "employee")
    _seed_user("hr2@school.test", "hr")
    emp_h = _headers(client, "ivy@school.test")
    hr_h = _headers(client, "hr2@school.test")

    pending = _request_leave(client, emp_h, "2024-10-01", "2024-10-01")
    res = client.delete(f"/api/hr/leaves/{pending['id']}", headers=hr_h)
    assert res.status_code == 400

    res = client.put(f"/api/hr/leaves/{pending['id']}/reject", json={"reason": "Exam week"}, headers=hr_h)
    assert res.status_code == 200
    assert res.get_json()["data"]["leave"]["rejectionReason"] == "Exam week"

    res = client.delete(f"/api/hr/leaves/{pending['id']}", headers=hr_h)
    assert res.status_code == 200

    res = client.get("/api/employee/leaves", headers=emp_h)
    assert res.get_json()["data"]["items"] == []


def test_hr_created_leave_is_approved(app_client):
    _app, client = app_client
    emp_id = _seed_user("jo@school.test", "employee")
    _seed_user("hr3@school.test", "hr")
    hr_h = _headers(client, "hr3@school.test")

    res = client.post(
        "/api/hr/leaves",
        json={"employeeId": emp_id, "type": "Sick", "startDate": "2024-11-04", "endDate": "2024-11-05"},
        headers=hr_h,
    )
    assert res.status_code == 201
    assert res.get_json()["data"]["leave"]["status"] == "Approved"

    res = client.get(f"/api/hr/leave-credits/{emp_id}?schoolYear=2024-2025", headers=hr_h)
    assert res.get_json()["data"]["usedCredits"] == 2.0
