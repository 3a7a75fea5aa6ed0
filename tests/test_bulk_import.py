from __future__ import annotations

import io

from sqlalchemy import select

from db import SessionLocal
from models import Contract, Employee, LeaveCredit
from passwords import hash_password
from services import bulk_import
from utils import iso_utc_now


PASSWORD = "Passw0rd!"

CSV_ROWS = (
    "fullName,email,employeeId,contractType,contractStartDate,contractEndDate,position,department\n"
    '"Reyes, Ana",ana.reyes@school.test,EMP-B-1,contractual,2024-06-01,2025-05-31,Teacher I,Science\n'
    "Ben Lim,ben.lim@school.test,EMP-B-2,permanent,2020-06-01,,Teacher III,Math\n"
    ",missing@school.test,EMP-B-3,,,,,\n"
    "Dup Person,hr@school.test,EMP-B-4,,,,,\n"
)


def _seed_user(email: str, role: str) -> int:
    now = iso_utc_now()
    with SessionLocal() as db:
        emp = Employee(
            employeeId=f"EMP-{email.split('@')[0].upper()}",
            fullName="Nora Bautista",
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


def _upload(client, url: str, headers: dict, content: str, **fields):
    form = {"file": (io.BytesIO(content.encode("utf-8")), "employees.csv")}
    form.update(fields)
    return client.post(url, data=form, headers=headers, content_type="multipart/form-data")


def test_template_download_is_csv_attachment(app_client):
    _app, client = app_client
    _seed_user("hr@school.test", "hr")

    res = client.get("/api/hr/employees/template/download", headers=_headers(client, "hr@school.test"))
    assert res.status_code == 200
    assert res.mimetype == "text/csv"
    assert "attachment" in res.headers["Content-Disposition"]
    assert bulk_import.TEMPLATE_FILE_NAME in res.headers["Content-Disposition"]

    lines = res.get_data(as_text=True).splitlines()
    assert lines[0].split(",") == bulk_import.TEMPLATE_HEADERS
    assert len(lines) == 2


def test_preview_reports_row_errors_without_creating(app_client):
    _app, client = app_client
    _seed_user("hr@school.test", "hr")
    headers = _headers(client, "hr@school.test")

    content = CSV_ROWS + (
        "Ana Again,ana.reyes@school.test,EMP-B-5,,,,,\n"
        "Job Order,jo@school.test,EMP-B-6,job-order,2024-06-01,2024-12-31,,\n"
    )
    res = _upload(client, "/api/hr/employees/bulk-upload/preview", headers, content)
    assert res.status_code == 200, res.get_json()
    body = res.get_json()["data"]

    assert body["totalRows"] == 6
    assert body["validRows"] == 2
    by_id = {row["employeeId"]: row for row in body["data"]}
    assert by_id["EMP-B-1"]["hasError"] is False
    assert by_id["EMP-B-1"]["fullName"] == "Reyes, Ana"
    assert by_id["EMP-B-3"]["errors"] == ["Full name is required"]
    assert by_id["EMP-B-4"]["errors"] == ["Email already exists"]
    assert by_id["EMP-B-5"]["errors"] == ["Email already exists"]
    assert by_id["EMP-B-6"]["errors"] == ["Job-order contracts must specify project details"]
    assert "Row 3: Full name is required" in body["errors"]

    with SessionLocal() as db:
        assert db.execute(select(Employee).where(Employee.employeeId == "EMP-B-1")).first() is None


def test_confirm_creates_employees_contracts_and_credits(app_client):
    _app, client = app_client
    _seed_user("hr@school.test", "hr")
    headers = _headers(client, "hr@school.test")

    res = _upload(
        client,
        "/api/hr/employees/bulk-upload/confirm",
        headers,
        CSV_ROWS,
        defaultPassword="Welcome2024",
        autoCreateContracts="true",
    )
    assert res.status_code == 200, res.get_json()
    body = res.get_json()["data"]
    assert body["successCount"] == 2
    assert body["message"] == "Successfully imported 2 employee(s)"
    assert body["errors"] == ["Row 3: Full name is required", "Row 4: Employee already exists"]

    with SessionLocal() as db:
        ana = db.execute(select(Employee).where(Employee.employeeId == "EMP-B-1")).scalars().one()
        ben = db.execute(select(Employee).where(Employee.employeeId == "EMP-B-2")).scalars().one()
        assert ana.fullName == "Reyes, Ana"
        assert ana.role == "employee"
        assert ben.position == "Teacher III"
        assert ben.dateHired.isoformat() == "2020-06-01"

        ana_contract = db.execute(select(Contract).where(Contract.employeeId == ana.id)).scalars().one()
        assert ana_contract.status == "Active"
        assert ana_contract.contractType == "contractual"

        totals = {
            row.employeeId: row.totalCredits
            for row in db.execute(select(LeaveCredit).where(LeaveCredit.employeeId.in_([ana.id, ben.id]))).scalars()
        }
        assert totals == {ana.id: 10, ben.id: 15}

    login = client.post("/api/auth/login", json={"email": "ana.reyes@school.test", "password": "Welcome2024"})
    assert login.status_code == 200


def test_confirm_without_contracts_or_password(app_client):
    _app, client = app_client
    _seed_user("hr@school.test", "hr")
    headers = _headers(client, "hr@school.test")

    res = _upload(client, "/api/hr/employees/bulk-upload/confirm", headers, CSV_ROWS)
    body = res.get_json()["data"]
    assert body["successCount"] == 0
    assert "Row 1: Password is required" in body["errors"]

    res = _upload(client, "/api/hr/employees/bulk-upload/confirm", headers, CSV_ROWS, defaultPassword="Welcome2024")
    body = res.get_json()["data"]
    assert body["successCount"] == 2
    with SessionLocal() as db:
        assert db.execute(select(Contract)).first() is None


def test_confirm_rejects_weak_default_password(app_client):
    _app, client = app_client
    _seed_user("hr@school.test", "hr")

    res = _upload(
        client, "/api/hr/employees/bulk-upload/confirm", _headers(client, "hr@school.test"), CSV_ROWS, defaultPassword="short"
    )
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "BAD_REQUEST"


def test_parse_csv_accepts_legacy_column_names():
    content = "name,employee_id,email,gender,contract_type,contract_start\nIda Tan,EMP-9,ida@school.test,Female,permanent,2024-06-01\n"
    rows = bulk_import.parse_csv(("\ufeff" + content).encode("utf-8"))
    assert rows == [
        (
            1,
            {
                "fullName": "Ida Tan",
                "employeeId": "EMP-9",
                "email": "ida@school.test",
                "sex": "Female",
                "contractType": "permanent",
                "contractStartDate": "2024-06-01",
            },
        )
    ]


def test_employee_cannot_import(app_client):
    _app, client = app_client
    _seed_user("emp@school.test", "employee")

    res = _upload(client, "/api/hr/employees/bulk-upload/preview", _headers(client, "emp@school.test"), CSV_ROWS)
    assert res.status_code == 403
