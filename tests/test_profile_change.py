from __future__ import annotations

from db import SessionLocal
from models import Employee
from passwords import hash_password
from utils import iso_utc_now


PASSWORD = "Passw0rd!"


def _seed_user(email: str, role: str, **fields) -> int:
    now = iso_utc_now()
    with SessionLocal() as db:
        emp = Employee(
            employeeId=f"EMP-{email.split('@')[0].upper()}",
            fullName="Lara Cruz",
            email=email,
            password=hash_password(PASSWORD),
            role=role,
            status="Active",
            createdAt=now,
            updatedAt=now,
            **fields,
        )
        db.add(emp)
        db.commit()
        return emp.id


def _headers(client, email: str) -> dict:
    res = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    return {"Authorization": f"Bearer {res.get_json()['data']['sessionToken']}"}


def test_request_review_and_apply(app_client):
    _app, client = app_client
    emp_id = _seed_user("lara@school.test", "employee", contactNumber="0917-000-0000")
    _seed_user("hr@school.test", "hr")
    emp_h = _headers(client, "lara@school.test")
    hr_h = _headers(client, "hr@school.test")

    res = client.post(
        "/api/employee/profile/request-change",
        json={"requestedChanges": {"contactNumber": "0917-111-2222", "name": "Lara Cruz"}, "reason": "New SIM"},
        headers=emp_h,
    )
    assert res.status_code == 201, res.get_json()
    req = res.get_json()["data"]["request"]
    assert req["status"] == "pending"
    assert req["changedFields"] == ["contactNumber"]
    assert req["currentValues"] == {"contactNumber": "0917-000-0000"}

    res = client.put(f"/api/hr/profile-requests/{req['id']}/approve", json={"reviewNotes": "ok"}, headers=hr_h)
    assert res.status_code == 200
    assert res.get_json()["data"]["request"]["status"] == "approved"

    with SessionLocal() as db:
        assert db.get(Employee, emp_id).contactNumber == "0917-111-2222"

    res = client.put(f"/api/hr/profile-requests/{req['id']}/reject", headers=hr_h)
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "STATE_CONFLICT"


def test_no_change_is_rejected(app_client):
    _app, client = app_client
    _seed_user("mara@school.test", "employee", contactNumber="0917-000-0000")
    emp_h = _headers(client, "mara@school.test")

    res = client.post(
        "/api/employee/profile/request-change",
        json={"requestedChanges": {"contactNumber": "0917-000-0000"}},
        headers=emp_h,
    )
    assert res.status_code == 400
    assert res.get_json()["error"]["message"] == "No changes detected"


def test_only_one_pending_request(app_client):
    _app, client = app_client
    _seed_user("nina@school.test", "employee")
    emp_h = _headers(client, "nina@school.test")

    first = client.post(
        "/api/employee/profile/request-change",
        json={"requestedChanges": {"religion": "Catholic"}},
        headers=emp_h,
    )
    assert first.status_code == 201

    second = client.post(
        "/api/employee/profile/request-change",
        json={"requestedChanges": {"bloodType": "O+"}},
        headers=emp_h,
    )
    assert second.status_code == 400
    assert "pending" in second.get_json()["error"]["message"]

    res = client.get("/api/employee/profile/change-requests", headers=emp_h)
    assert len(res.get_json()["data"]["items"]) == 1
