"""
CSV employee import: template, preview and confirm.

Rows are validated the same way in preview and confirm. Confirm creates each
employee in its own savepoint, so a bad row is reported and skipped without
undoing the rows before it.
"""
from __future__ import annotations

import csv
import io
import logging
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from models import Employee
from passwords import hash_password
from services import contracts as contract_svc
from services import leave_credits as ledger
from utils import ApiError, iso_utc_now, parse_date_maybe


_log = logging.getLogger("bulk_import")

TEMPLATE_FILE_NAME = "employee_bulk_upload_template.csv"

TEMPLATE_HEADERS = [
    "fullName",
    "email",
    "employeeId",
    "contactNumber",
    "dateOfBirth",
    "sex",
    "civilStatus",
    "residentialAddress",
    "residentialZip",
    "emergencyContactName",
    "emergencyContactNumber",
    "sssNo",
    "philhealthNo",
    "pagibigIdNo",
    "tinNo",
    "department",
    "position",
    "contractType",
    "contractStartDate",
    "contractEndDate",
    "salary",
    "workSchedule",
    "projectDetails",
]

_SAMPLE_ROW = [
    "DELA CRUZ, JUAN PEDRO",
    "juan.delacruz@school.edu.ph",
    "EMP-2024-001",
    "09123456789",
    "1990-01-15",
    "Male",
    "Single",
    "123 Main St, Brgy. Sample, Manila",
    "1000",
    "DELA CRUZ, MARIA",
    "09987654321",
    "12-3456789-0",
    "12-345678901-2",
    "1234-5678-9012",
    "123-456-789-000",
    "Science Department",
    "Teacher I",
    "contractual",
    "2024-06-01",
    "2025-05-31",
    "30000",
    "",
    "",
]

# Older spreadsheets use these column names.
_ALIASES = {
    "name": "fullName",
    "employee_id": "employeeId",
    "contact": "contactNumber",
    "birthday": "dateOfBirth",
    "gender": "sex",
    "civil_status": "civilStatus",
    "address": "residentialAddress",
    "zip": "residentialZip",
    "zipCode": "residentialZip",
    "emergencyContact": "emergencyContactNumber",
    "emergency_contact": "emergencyContactNumber",
    "sss": "sssNo",
    "philhealth": "philhealthNo",
    "pagibig": "pagibigIdNo",
    "tin": "tinNo",
    "contract_type": "contractType",
    "contract_start": "contractStartDate",
    "contract_end": "contractEndDate",
}

_KNOWN_COLUMNS = set(TEMPLATE_HEADERS) | {"password"}

# Columns copied as-is onto the employee row.
_EMPLOYEE_TEXT_COLUMNS = (
    "contactNumber",
    "sex",
    "civilStatus",
    "residentialAddress",
    "residentialZip",
    "emergencyContactName",
    "emergencyContactNumber",
    "sssNo",
    "philhealthNo",
    "pagibigIdNo",
    "tinNo",
    "department",
    "position",
)


def template_csv() -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerow(_SAMPLE_ROW)
    return buf.getvalue().encode("utf-8")


def parse_csv(file_bytes: bytes) -> list[tuple[int, dict[str, str]]]:
    """Returns (row number, normalized row) pairs; blank lines are skipped but still counted."""
    try:
        text_value = bytes(file_bytes or b"").decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ApiError("BAD_REQUEST", "CSV file must be UTF-8 encoded")

    reader = csv.DictReader(io.StringIO(text_value))
    rows: list[tuple[int, dict[str, str]]] = []
    try:
        if not reader.fieldnames:
            raise ApiError("BAD_REQUEST", "CSV file has no header row")
        for row_number, raw in enumerate(reader, start=1):
            row: dict[str, str] = {}
            for key, value in raw.items():
                # Cells past the header land under None.
                if key is None:
                    continue
                name = str(key).strip()
                name = _ALIASES.get(name, name)
                if name in _KNOWN_COLUMNS and not row.get(name):
                    row[name] = str(value or "").strip()
            if any(row.values()):
                rows.append((row_number, row))
    except csv.Error as e:
        raise ApiError("BAD_REQUEST", f"Failed to parse CSV file: {e}")
    return rows


def _contract_fields(row: dict[str, str]) -> dict[str, Any]:
    return {
        "contractType": row.get("contractType", ""),
        "startDate": row.get("contractStartDate", ""),
        "endDate": row.get("contractEndDate", ""),
        "position": row.get("position", ""),
        "department": row.get("department", ""),
        "salary": row.get("salary", ""),
        "workSchedule": row.get("workSchedule", ""),
        "projectDetails": row.get("projectDetails", ""),
    }


def validate_row(row: dict[str, str]) -> list[str]:
    problems: list[str] = []
    if not row.get("fullName"):
        problems.append("Full name is required")
    if not row.get("email"):
        problems.append("Email is required")
    elif "@" not in row["email"]:
        problems.append("Email is not valid")
    if not row.get("employeeId"):
        problems.append("Employee ID is required")
    if row.get("dateOfBirth") and parse_date_maybe(row["dateOfBirth"]) is None:
        problems.append("Invalid dateOfBirth")

    if row.get("contractType"):
        ctype = row["contractType"].strip().lower()
        start = parse_date_maybe(row.get("contractStartDate"))
        end = parse_date_maybe(row.get("contractEndDate"))
        if ctype not in contract_svc.CONTRACT_TYPES:
            problems.append("Invalid contract type. Must be: permanent, contractual, part-time, or job-order")
        elif not start:
            problems.append("Missing or invalid contractStartDate")
        elif row.get("contractEndDate") and end is None:
            problems.append("Invalid contractEndDate")
        else:
            result = contract_svc.validate(ctype, start, end, row.get("workSchedule"), row.get("projectDetails"))
            if not result["valid"]:
                problems.append(result["error"])
    return problems


def _existing_keys(db, rows: list[tuple[int, dict[str, str]]]) -> tuple[set[str], set[str]]:
    ids = {r.get("employeeId", "") for _, r in rows if r.get("employeeId")}
    emails = {r.get("email", "").lower() for _, r in rows if r.get("email")}
    if not ids and not emails:
        return set(), set()
    found = db.execute(
        select(Employee.employeeId, Employee.email).where(
            or_(Employee.employeeId.in_(ids), func.lower(Employee.email).in_(emails))
        )
    ).all()
    return {str(f[0]) for f in found}, {str(f[1] or "").lower() for f in found}


def preview(db, rows: list[tuple[int, dict[str, str]]]) -> dict[str, Any]:
    taken_ids, taken_emails = _existing_keys(db, rows)
    seen_ids: set[str] = set()
    seen_emails: set[str] = set()

    data: list[dict[str, Any]] = []
    errors: list[str] = []
    for row_number, row in rows:
        problems = validate_row(row)
        emp_id = row.get("employeeId", "")
        email = row.get("email", "").lower()
        if emp_id and (emp_id in taken_ids or emp_id in seen_ids):
            problems.append("Employee ID already exists")
        if email and (email in taken_emails or email in seen_emails):
            problems.append("Email already exists")
        seen_ids.add(emp_id)
        seen_emails.add(email)

        errors.extend(f"Row {row_number}: {p}" for p in problems)
        item = {k: v for k, v in row.items() if k != "password"}
        item.update({"rowNumber": row_number, "hasError": bool(problems), "errors": problems})
        data.append(item)

    return {
        "data": data,
        "errors": errors,
        "totalRows": len(data),
        "validRows": sum(1 for d in data if not d["hasError"]),
    }


def _create_one(db, row: dict[str, str], *, default_password: str, auto_contracts: bool, actor: str, min_length: int) -> Employee:
    now = iso_utc_now()
    emp = Employee(
        employeeId=row["employeeId"],
        fullName=row["fullName"],
        email=row["email"].lower(),
        password=hash_password(row.get("password") or default_password, min_length=min_length),
        role="employee",
        status="Active",
        isSuspended=False,
        dateOfBirth=parse_date_maybe(row.get("dateOfBirth")),
        createdAt=now,
        createdBy=actor,
        updatedAt=now,
        updatedBy=actor,
    )
    for col in _EMPLOYEE_TEXT_COLUMNS:
        if row.get(col):
            setattr(emp, col, row[col])
    db.add(emp)
    db.flush()

    if auto_contracts and row.get("contractType"):
        contract, _ = contract_svc.create(db, emp.id, _contract_fields(row), actor_id=actor)
        emp.position = contract.position or emp.position
        emp.department = contract.department or emp.department
        emp.dateHired = contract.startDate
        ledger.initialize(db, emp.id, contract.contractType)
    return emp


def import_rows(
    db,
    rows: list[tuple[int, dict[str, str]]],
    *,
    default_password: str,
    auto_contracts: bool,
    actor: str,
    min_length: int = 8,
) -> tuple[list[Employee], list[str]]:
    created: list[Employee] = []
    errors: list[str] = []
    for row_number, row in rows:
        problems = validate_row(row)
        if not row.get("password") and not default_password:
            problems.append("Password is required")
        if problems:
            errors.append(f"Row {row_number}: {'; '.join(problems)}")
            continue

        taken = db.execute(
            select(Employee.id).where(
                or_(Employee.employeeId == row["employeeId"], func.lower(Employee.email) == row["email"].lower())
            )
        ).first()
        if taken:
            errors.append(f"Row {row_number}: Employee already exists")
            continue

        savepoint = db.begin_nested()
        try:
            emp = _create_one(
                db, row, default_password=default_password, auto_contracts=auto_contracts, actor=actor, min_length=min_length
            )
            savepoint.commit()
        except ApiError as e:
            savepoint.rollback()
            errors.append(f"Row {row_number}: {e.message}")
            continue
        except IntegrityError:
            savepoint.rollback()
            errors.append(f"Row {row_number}: Employee already exists")
            continue
        created.append(emp)

    _log.info("bulk import created=%s failed=%s autoContracts=%s", len(created), len(errors), auto_contracts)
    return created, errors
