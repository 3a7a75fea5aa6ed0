from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select

from db import SessionLocal
from models import Contract, Employee
from services import contracts as contract_svc
from utils import ApiError, iso_utc_now


def _seed_employee(employee_id: str = "EMP-C-1", status: str = "Active") -> int:
    now = iso_utc_now()
    with SessionLocal() as db:
        emp = Employee(
            employeeId=employee_id,
            fullName="Carla Reyes",
            email=f"{employee_id.lower()}@school.test",
            password="x",
            role="employee",
            status=status,
            createdAt=now,
            updatedAt=now,
        )
        db.add(emp)
        db.commit()
        return emp.id


def test_validate_rules_first_failure_wins():
    assert contract_svc.validate("permanent", date(2024, 1, 1), date(2025, 1, 1))["error"] == (
        "Permanent contracts should not have an end date"
    )
    assert contract_svc.validate("contractual", date(2024, 1, 1), None)["error"] == "contractual contracts must have an end date"
    assert contract_svc.validate("part-time", date(2024, 1, 1), date(2024, 6, 1))["error"] == (
        "Part-time contracts must specify a work schedule"
    )
    assert contract_svc.validate("job-order", date(2024, 1, 1), date(2024, 6, 1), project_details=None)["error"] == (
        "Job-order contracts must specify project details"
    )
    assert contract_svc.validate("contractual", date(2024, 6, 1), date(2024, 6, 1))["error"] == "End date must be after start date"
    assert contract_svc.validate("permanent", date(2024, 1, 1), None) == {"valid": True, "error": None}


def test_second_contract_supersedes_the_active_one(app_client):
    emp_id = _seed_employee()

    with SessionLocal() as db:
        first, _ = contract_svc.create(db, emp_id, {"contractType": "contractual", "startDate": "2024-06-01", "endDate": "2025-05-31"})
        second, superseded = contract_svc.create(db, emp_id, {"contractType": "permanent", "startDate": "2025-06-01"})
        db.commit()
        first_id, second_id = first.id, second.id
        assert [c.id for c in superseded] == [first_id]

    with SessionLocal() as db:
        rows = db.execute(select(Contract).where(Contract.employeeId == emp_id)).scalars().all()
        active = [c for c in rows if c.status == "Active"]
        assert [c.id for c in active] == [second_id]
        old = db.get(Contract, first_id)
        assert old.status == "Terminated"
        assert old.terminationReason == "New contract created"


def test_create_for_missing_employee_is_not_found(app_client):
    with SessionLocal() as db:
        with pytest.raises(ApiError) as exc:
            contract_svc.create(db, 9999, {"contractType": "permanent", "startDate": "2025-06-01"})
    assert exc.value.code == "NOT_FOUND"


def test_renew_links_history_and_rejects_permanent(app_client):
    emp_id = _seed_employee()

    with SessionLocal() as db:
        old, _ = contract_svc.create(
            db, emp_id, {"contractType": "job-order", "startDate": "2024-06-01", "endDate": "2024-12-31", "projectDetails": "Library"}
        )
        old_again, new = contract_svc.renew(db, old.id, {"startDate": "2025-01-01", "endDate": "2025-05-31"})
        db.commit()

        assert old_again.status == "Terminated"
        assert old_again.terminationReason == "Contract renewed"
        assert new.status == "Active"
        assert new.renewalCount == 1
        assert new.previousContractId == old.id
        assert new.projectDetails == "Library"

        permanent, _ = contract_svc.create(db, emp_id, {"contractType": "permanent", "startDate": "2025-06-01"})
        with pytest.raises(ApiError) as exc:
            contract_svc.renew(db, permanent.id, {"startDate": "2025-07-01"})
        assert exc.value.code == "STATE_CONFLICT"
        assert exc.value.message == "Permanent contracts cannot be renewed"


def test_terminate_twice_is_state_conflict_and_changes_nothing(app_client):
    emp_id = _seed_employee()

    with SessionLocal() as db:
        contract, _ = contract_svc.create(db, emp_id, {"contractType": "permanent", "startDate": "2024-06-01"})
        contract_svc.terminate(db, contract.id, "")
        db.commit()
        cid = contract.id

    with SessionLocal() as db:
        c = db.get(Contract, cid)
        assert c.status == "Terminated"
        assert c.terminationReason == "Terminated by HR"
        assert db.get(Employee, emp_id).status == "Terminated"
        before_updated = c.updatedAt

        with pytest.raises(ApiError) as exc:
            contract_svc.terminate(db, cid, "again")
        assert exc.value.code == "STATE_CONFLICT"
        assert exc.value.message == "Only active contracts can be terminated"
        db.rollback()

    with SessionLocal() as db:
        c = db.get(Contract, cid)
        assert c.terminationReason == "Terminated by HR"
        assert c.updatedAt == before_updated


def test_sweep_expires_past_contracts_only(app_client):
    past_id = _seed_employee("EMP-C-PAST", status="On Leave")
    today_id = _seed_employee("EMP-C-TODAY")
    perm_id = _seed_employee("EMP-C-PERM")
    resigned_id = _seed_employee("EMP-C-RES", status="Resigned")

    with SessionLocal() as db:
        for emp_id, end in ((past_id, "2025-03-09"), (today_id, "2025-03-10"), (resigned_id, "2025-01-31")):
            contract_svc.create(db, emp_id, {"contractType": "contractual", "startDate": "2024-06-01", "endDate": end})
        contract_svc.create(db, perm_id, {"contractType": "permanent", "startDate": "2020-06-01"})
        db.commit()

    with SessionLocal() as db:
        result = contract_svc.sweep_expired(db, today=date(2025, 3, 10))
        db.commit()

    assert result["success"] is True
    assert result["expiredCount"] == 2
    assert {c["employeeId"] for c in result["contracts"]} == {past_id, resigned_id}

    with SessionLocal() as db:
        status_by_emp = {c.employeeId: c.status for c in db.execute(select(Contract)).scalars().all()}
        assert status_by_emp[past_id] == "Expired"
        assert status_by_emp[today_id] == "Active"
        assert status_by_emp[perm_id] == "Active"
        assert status_by_emp[resigned_id] == "Expired"
        assert db.get(Employee, past_id).status == "Active"
        assert db.get(Employee, resigned_id).status == "Resigned"

    # Idempotent: nothing left to expire.
    with SessionLocal() as db:
        assert contract_svc.sweep_expired(db, today=date(2025, 3, 10))["expiredCount"] == 0


def test_expiring_window(app_client):
    soon_id = _seed_employee("EMP-C-SOON")
    later_id = _seed_employee("EMP-C-LATER")

    with SessionLocal() as db:
        contract_svc.create(db, soon_id, {"contractType": "contractual", "startDate": "2024-06-01", "endDate": "2025-03-20"})
        contract_svc.create(db, later_id, {"contractType": "contractual", "startDate": "2024-06-01", "endDate": "2025-06-30"})
        db.commit()

    with SessionLocal() as db:
        rows = contract_svc.expiring(db, 30, today=date(2025, 3, 10))
        assert [c.employeeId for c in rows] == [soon_id]


def test_renewing_expired_contract_while_another_is_active_is_state_conflict(app_client):
    emp_id = _seed_employee("EMP-C-RENEW")

    with SessionLocal() as db:
        expired, _ = contract_svc.create(db, emp_id, {"contractType": "contractual", "startDate": "2024-06-01", "endDate": "2024-12-31"})
        contract_svc.sweep_expired(db, today=date(2025, 1, 5))
        current, _ = contract_svc.create(db, emp_id, {"contractType": "contractual", "startDate": "2025-01-06", "endDate": "2025-05-31"})
        db.commit()
        expired_id, current_id = expired.id, current.id

    with SessionLocal() as db:
        with pytest.raises(ApiError) as exc:
            contract_svc.renew(db, expired_id, {"startDate": "2025-06-01", "endDate": "2026-05-31"})
        assert exc.value.code == "STATE_CONFLICT"
        assert exc.value.http_status == 400
        db.rollback()

    with SessionLocal() as db:
        assert db.get(Contract, expired_id).status == "Expired"
        assert db.get(Contract, current_id).status == "Active"


def test_sweep_without_a_date_uses_the_app_timezone(app_client, monkeypatch):
    import services.school_year as school_year_module

    class _FrozenDatetime(datetime):
        @classmethod
        def now(cls, tz=None):
            # 2025-06-01 00:30 in Manila, still May 31 in UTC.
            return datetime(2025, 5, 31, 16, 30, tzinfo=timezone.utc).astimezone(tz)

    monkeypatch.setattr(school_year_module, "datetime", _FrozenDatetime)
    emp_id = _seed_employee("EMP-C-TZ")

    with SessionLocal() as db:
        contract, _ = contract_svc.create(db, emp_id, {"contractType": "contractual", "startDate": "2024-06-01", "endDate": "2025-05-31"})
        db.commit()
        cid = contract.id

    with SessionLocal() as db:
        assert contract_svc.sweep_expired(db)["expiredCount"] == 1
        db.commit()

    with SessionLocal() as db:
        assert db.get(Contract, cid).status == "Expired"
