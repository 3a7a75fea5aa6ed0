from __future__ import annotations

import io
import os

from db import SessionLocal
from models import Employee
from passwords import hash_password
from services import contracts as contract_svc
from utils import iso_utc_now


PASSWORD = "Passw0rd!"
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _seed_user(email: str, role: str) -> int:
    now = iso_utc_now()
    with SessionLocal() as db:
        emp = Employee(
            employeeId=f"EMP-{email.split('@')[0].upper()}",
            fullName="Paolo Garcia",
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


def _seed_contract(emp_id: int) -> int:
    with SessionLocal() as db:
        contract, _ = contract_svc.create(db, emp_id, {"contractType": "contractual", "startDate": "2024-06-01", "endDate": "2025-05-31"})
        db.commit()
        return contract.id


def _post_file(client, url: str, headers: dict, content: bytes, name: str):
    return client.post(url, data={"file": (io.BytesIO(content), name)}, headers=headers, content_type="multipart/form-data")


def test_contract_file_upload_and_owner_download(app_client):
    _app, client = app_client
    emp_id = _seed_user("paolo@school.test", "employee")
    _seed_user("other@school.test", "employee")
    _seed_user("hr@school.test", "hr")
    contract_id = _seed_contract(emp_id)

    res = _post_file(client, f"/api/hr/contracts/{contract_id}/file", _headers(client, "hr@school.test"), b"%PDF-1.4 signed", "contract.pdf")
    assert res.status_code == 200, res.get_json()
    assert res.get_json()["data"]["contract"]["hasFile"] is True

    res = client.get(f"/api/employee/contracts/{contract_id}/download", headers=_headers(client, "paolo@school.test"))
    assert res.status_code == 200
    assert res.data == b"%PDF-1.4 signed"
    assert "attachment" in res.headers["Content-Disposition"]
    assert res.headers["X-Content-Type-Options"] == "nosniff"

    res = client.get(f"/api/employee/contracts/{contract_id}/download", headers=_headers(client, "other@school.test"))
    assert res.status_code == 404
    assert res.get_json()["error"]["message"] == "Contract file not found"


def test_contract_without_file_is_not_found(app_client):
    _app, client = app_client
    emp_id = _seed_user("paolo@school.test", "employee")
    contract_id = _seed_contract(emp_id)

    res = client.get(f"/api/employee/contracts/{contract_id}/download", headers=_headers(client, "paolo@school.test"))
    assert res.status_code == 404
    assert res.get_json()["error"]["code"] == "NOT_FOUND"


def test_profile_image_replaces_previous_file(app_client):
    app, client = app_client
    _seed_user("paolo@school.test", "employee")
    headers = _headers(client, "paolo@school.test")
    upload_dir = app.config["CFG"].UPLOAD_DIR

    res = _post_file(client, "/api/employee/profile/image", headers, PNG, "me.png")
    assert res.status_code == 200, res.get_json()
    first_key = res.get_json()["data"]["profileImage"]

    res = client.get("/api/employee/profile/image", headers=headers)
    assert res.status_code == 200
    assert res.mimetype == "image/png"
    assert res.data == PNG

    res = _post_file(client, "/api/employee/profile/image", headers, PNG + b"\x01", "me2.png")
    second_key = res.get_json()["data"]["profileImage"]
    assert second_key != first_key

    stored = os.listdir(upload_dir)
    assert not any(name.startswith(first_key) for name in stored)
    assert any(name.startswith(second_key) for name in stored)

    profile = client.get("/api/employee/profile", headers=headers).get_json()["data"]
    assert profile["profileImage"] == second_key


def test_profile_image_must_be_a_small_image(app_client):
    _app, client = app_client
    _seed_user("paolo@school.test", "employee")
    headers = _headers(client, "paolo@school.test")

    res = _post_file(client, "/api/employee/profile/image", headers, b"%PDF-1.4", "me.pdf")
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "BAD_REQUEST"

    res = _post_file(client, "/api/employee/profile/image", headers, PNG + b"\x00" * (5 * 1024 * 1024), "big.png")
    assert res.status_code == 413
    assert res.get_json()["error"]["code"] == "PAYLOAD_TOO_LARGE"

    res = client.get("/api/employee/profile/image", headers=headers)
    assert res.status_code == 404
