from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select

from db import SessionLocal
from models import Employee, Leave, LeaveCredit, LeaveCreditUsage
from services import contracts as contract_svc
from services import leave_credits as ledger
from utils import iso_utc_now


def _seed_employee(employee_id: str, *, contract_type: str | None = "permanent", status: str = "Active") -> int:
    now = iso_utc_now()
    with SessionLocal() as db:
        emp = Employee(
            employeeId=employee_id,
            fullName=f"Teacher {employee_id}",
            email=f"{employee_id.lower()}@school.test",
            password="x",
            role="employee",
            status=status,
            createdAt=now,
            updatedAt=now,
        )
        db.add(emp)
        db.flush()
        if contract_type:
            fields = {"contractType": contract_type, "startDate": "2023-06-01"}
            if contract_type != "permanent":
                fields["endDate"] = "2030-05-31"
            if contract_type == "part-time":
                fields["workSchedule"] = "MWF mornings"
            if contract_type == "job-order":
                fields["projectDetails"] = "Gym renovation"
            contract_svc.create(db, emp.id, fields)
        db.commit()
        return emp.id


def _seed_leave(emp_id: int, start: date, end: date, days: Decimal | None = None) -> int:
    with SessionLocal() as db:
        leave = Leave(employeeId=emp_id, type="Vacation", startDate=start, endDate=end, status="Approved", daysCount=days)
        db.add(leave)
        db.commit()
        return leave.id


def test_initialize_is_find_or_create(app_client):
    emp_id = _seed_employee("EMP-L-1")

    with SessionLocal() as db:
        first = ledger.initialize(db, emp_id, "permanent", "2024-2025")
        second = ledger.initialize(db, emp_id, "contractual", "2024-2025")
        db.commit()

        assert first.id == second.id
        assert second.totalCredits == Decimal("15")
        assert second.usedCredits == Decimal("0")
        assert second.carriedOverCredits == Decimal("0")
        count = db.execute(select(func.count(LeaveCredit.id)).where(LeaveCredit.employeeId == emp_id)).scalar_one()
        assert count == 1


def test_allocation_table():
    assert ledger.allocation_for("permanent") == Decimal("15")
    assert ledger.allocation_for("contractual") == Decimal("10")
    assert ledger.allocation_for("job-order") == Decimal("5")
    assert ledger.allocation_for("part-time") == Decimal("7")
    assert ledger.allocation_for("volunteer") == Decimal("10")


def test_get_auto_initializes_from_active_contract(app_client):
    emp_id = _seed_employee("EMP-L-2", contract_type="job-order")
    no_contract_id = _seed_employee("EMP-L-3", contract_type=None)

    with SessionLocal() as db:
        assert ledger.get(db, emp_id, "2024-2025").totalCredits == Decimal("5")
        assert ledger.get(db, no_contract_id, "2024-2025").totalCredits == Decimal("15")


def test_apply_leave_usage_debits_once(app_client):
    emp_id = _seed_employee("EMP-L-4")
    leave_id = _seed_leave(emp_id, date(2024, 9, 2), date(2024, 9, 6))

    with SessionLocal() as db:
        before = ledger.get(db, emp_id, "2024-2025").remainingCredits
        row = ledger.apply_leave_usage(db, leave_id)
        db.commit()
        assert row.usedCredits == Decimal("5")
        assert row.remainingCredits == before - Decimal("5")

        leave = db.get(Leave, leave_id)
        assert leave.daysCount == Decimal("5")
        assert leave.schoolYear == "2024-2025"

    with SessionLocal() as db:
        row = ledger.apply_leave_usage(db, leave_id)
        db.commit()
        assert row.usedCredits == Decimal("5")
        assert db.execute(select(func.count(LeaveCreditUsage.id))).scalar_one() == 1


def test_fractional_usage_stays_exact(app_client):
    emp_id = _seed_employee("EMP-L-5")
    a = _seed_leave(emp_id, date(2024, 10, 1), date(2024, 10, 1), Decimal("0.1"))
    b = _seed_leave(emp_id, date(2024, 10, 2), date(2024, 10, 2), Decimal("0.2"))

    with SessionLocal() as db:
        ledger.apply_leave_usage(db, a)
        row = ledger.apply_leave_usage(db, b)
        db.commit()
        assert row.usedCredits == Decimal("0.3")


def test_rollover_carries_five_and_forfeits_the_rest(app_client):
    emp_id = _seed_employee("EMP-L-6")
    inactive_id = _seed_employee("EMP-L-7", status="Inactive")

    with SessionLocal() as db:
        prev = ledger.initialize(db, emp_id, "permanent", "2024-2025")
        prev.usedCredits = Decimal("7")  # remaining 15 - 7 = 8
        db.commit()

    with SessionLocal() as db:
        result = ledger.rollover(db, "2025-2026")
        db.commit()

    assert result["success"] is True
    assert result["schoolYear"] == "2025-2026"
    assert result["employeesProcessed"] == 1
    assert result["details"][0]["employeeId"] == emp_id
    assert result["details"][0]["carriedOver"] == 5.0
    assert result["details"][0]["forfeited"] == 3.0

    with SessionLocal() as db:
        prev = ledger.get(db, emp_id, "2024-2025")
        new = ledger.get(db, emp_id, "2025-2026")
        assert prev.forfeitedCredits == Decimal("3")
        assert prev.monetizableCredits == Decimal("5")
        assert new.carriedOverCredits == Decimal("5")
        assert new.totalCredits == Decimal("15")
        assert new.remainingCredits == Decimal("20")
        skipped = db.execute(
            select(LeaveCredit).where(LeaveCredit.employeeId == inactive_id).where(LeaveCredit.schoolYear == "2025-2026")
        ).scalars().first()
        assert skipped is None


def test_rollover_sets_carry_over_on_row_created_by_lookup(app_client):
    emp_id = _seed_employee("EMP-L-11")

    with SessionLocal() as db:
        prev = ledger.initialize(db, emp_id, "permanent", "2024-2025")
        prev.usedCredits = Decimal("5")  # remaining 10
        db.commit()

    with SessionLocal() as db:
        early = ledger.get(db, emp_id, "2025-2026")
        assert early.carriedOverCredits == Decimal("0")
        db.commit()

    with SessionLocal() as db:
        result = ledger.rollover(db, "2025-2026")
        db.commit()

    assert result["details"][0]["carriedOver"] == 5.0
    with SessionLocal() as db:
        new = ledger.get(db, emp_id, "2025-2026")
        assert new.carriedOverCredits == Decimal("5")
        assert new.remainingCredits == Decimal("20")
        count = db.execute(
            select(func.count(LeaveCredit.id)).where(LeaveCredit.employeeId == emp_id).where(LeaveCredit.schoolYear == "2025-2026")
        ).scalar_one()
        assert count == 1


def test_change_employment_type_keeps_usage(app_client):
    emp_id = _seed_employee("EMP-L-8")

    with SessionLocal() as db:
        row = ledger.initialize(db, emp_id, "permanent", "2024-2025")
        row.usedCredits = Decimal("2")
        row.carriedOverCredits = Decimal("1.5")
        db.flush()

        row = ledger.change_employment_type(db, emp_id, "part-time", "2024-2025")
        db.commit()
        assert row.employmentType == "part-time"
        assert row.totalCredits == Decimal("7")
        assert row.usedCredits == Decimal("2")
        assert row.carriedOverCredits == Decimal("1.5")


def test_summary_by_type(app_client):
    a = _seed_employee("EMP-L-9")
    b = _seed_employee("EMP-L-10", contract_type="contractual")

    with SessionLocal() as db:
        ledger.initialize(db, a, "permanent", "2024-2025")
        ledger.initialize(db, b, "contractual", "2024-2025")
        db.commit()
        summary = ledger.summary_by_type(db, "2024-2025")

    assert set(summary) == {"permanent", "contractual", "job-order", "part-time"}
    assert summary["permanent"] == {"count": 1, "totalCredits": 15.0, "usedCredits": 0.0}
    assert summary["contractual"]["totalCredits"] == 10.0
    assert summary["job-order"]["count"] == 0


def test_blank_employment_type_is_stored_and_allocated_as_permanent(app_client):
    emp_id = _seed_employee("EMP-L-12", contract_type=None)

    with SessionLocal() as db:
        row = ledger.initialize(db, emp_id, "", "2024-2025")
        db.commit()
        assert row.employmentType == "permanent"
        assert row.totalCredits == Decimal("15")

        row = ledger.change_employment_type(db, emp_id, "  ", "2024-2025")
        assert row.employmentType == "permanent"
        assert row.totalCredits == Decimal("15")

    assert ledger.normalize_employment_type(" Contractual ") == "contractual"
    assert ledger.allocation_for("") == Decimal("15")
