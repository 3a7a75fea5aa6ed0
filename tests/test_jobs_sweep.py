from __future__ import annotations

import threading
from datetime import datetime
from unittest.mock import MagicMock, patch

from db import SessionLocal
from models import Contract, Employee
from services import contracts as contract_svc
from utils import iso_utc_now

from app.scheduler import seconds_until_next_run


INTERNAL = {"X-Internal-Token": "test-internal-token"}


def _seed_expired_contract() -> int:
    now = iso_utc_now()
    with SessionLocal() as db:
        emp = Employee(
            employeeId="EMP-J-1",
            fullName="Omar Santos",
            email="omar@school.test",
            password="x",
            role="employee",
            status="Active",
            createdAt=now,
            updatedAt=now,
        )
        db.add(emp)
        db.flush()
        contract, _ = contract_svc.create(db, emp.id, {"contractType": "contractual", "startDate": "2019-06-01", "endDate": "2020-05-31"})
        db.commit()
        return contract.id


def test_sweep_with_internal_token(app_client):
    _app, client = app_client
    contract_id = _seed_expired_contract()

    res = client.post("/api/jobs/contracts/sweep-expired", headers=INTERNAL)
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["expiredCount"] == 1
    assert data["contracts"][0]["contractId"] == contract_id

    with SessionLocal() as db:
        assert db.get(Contract, contract_id).status == "Expired"

    res = client.post("/api/jobs/contracts/sweep-expired", headers=INTERNAL)
    assert res.get_json()["data"]["expiredCount"] == 0


def test_sweep_requires_credentials(app_client):
    _app, client = app_client

    res = client.post("/api/jobs/contracts/sweep-expired")
    assert res.status_code == 401

    res = client.post("/api/jobs/contracts/sweep-expired", headers={"X-Internal-Token": "wrong"})
    assert res.status_code == 401


def test_rollover_is_enqueued(app_client):
    _app, client = app_client

    fake = MagicMock()
    fake.apply_async.return_value = MagicMock(id="job-123")
    with patch("app.tasks.maintenance.rollover_leave_credits", fake):
        res = client.post("/api/jobs/leave-credits/rollover", json={"schoolYear": "2025-2026"}, headers=INTERNAL)

    assert res.status_code == 202
    assert res.get_json()["data"] == {"jobId": "job-123", "status": "queued", "schoolYear": "2025-2026"}
    fake.apply_async.assert_called_once_with(kwargs={"school_year": "2025-2026"})


def test_rollover_rejects_bad_school_year(app_client):
    _app, client = app_client

    res = client.post("/api/jobs/leave-credits/rollover", json={"schoolYear": "2025-2027"}, headers=INTERNAL)
    assert res.status_code == 400


def test_seconds_until_next_run():
    assert seconds_until_next_run(datetime(2025, 3, 10, 23, 0), 0, 0) == 3600.0
    assert seconds_until_next_run(datetime(2025, 3, 10, 0, 0), 0, 0) == 86400.0
    assert seconds_until_next_run(datetime(2025, 3, 10, 0, 30), 1, 0) == 1800.0


def test_scheduler_is_on_by_default_and_sweeps_at_startup(app_env):
    app_env.delenv("ENABLE_SCHEDULER")

    from app import create_app
    from cache_layer import cache_clear
    from config import Config

    assert Config().ENABLE_SCHEDULER is True

    swept = threading.Event()
    cache_clear()
    with patch("app.scheduler.run_sweep_once", side_effect=lambda cfg: swept.set()):
        app = create_app()
        scheduler = app.extensions["scheduler"]
        try:
            assert scheduler["thread"] is not None
            assert scheduler["thread"].name == "scheduler"
            assert swept.wait(5)
        finally:
            scheduler["stop"].set()
            scheduler["thread"].join(5)
    assert not scheduler["thread"].is_alive()
    cache_clear()


def test_scheduler_can_be_disabled(app_client):
    app, _client = app_client
    assert app.extensions["scheduler"]["thread"] is None
