from __future__ import annotations

from db import SessionLocal
from models import AuditLog, Employee
from passwords import hash_password
from utils import SimpleRateLimiter, iso_utc_now

from sqlalchemy import select


PASSWORD = "Passw0rd!"


def _seed_user(email: str, role: str, *, suspended: bool = False) -> int:
    now = iso_utc_now()
    with SessionLocal() as db:
        emp = Employee(
            employeeId=f"EMP-{role.upper()}-{email.split('@')[0]}",
            fullName=f"{role.title()} User",
            email=email,
            password=hash_password(PASSWORD),
            role=role,
            status="Active",
            isSuspended=suspended,
            createdAt=now,
            updatedAt=now,
        )
        db.add(emp)
        db.commit()
        return emp.id


def _login(client, email: str) -> str:
    res = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert res.status_code == 200, res.get_json()
    return res.get_json()["data"]["sessionToken"]


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_login_me_logout(app_client):
    _app, client = app_client
    emp_id = _seed_user("ana@school.test", "employee")

    token = _login(client, "ANA@school.test")
    assert token.startswith("ST-")

    res = client.get("/api/auth/me", headers=_auth(token))
    assert res.status_code == 200
    user = res.get_json()["data"]["user"]
    assert user["id"] == emp_id
    assert user["role"] == "employee"

    res = client.post("/api/auth/logout", headers=_auth(token))
    assert res.status_code == 200
    assert res.get_json()["data"]["revoked"] is True

    res = client.get("/api/auth/me", headers=_auth(token))
    assert res.status_code == 401
    assert res.get_json()["error"]["code"] == "AUTH_INVALID"


def test_wrong_password_is_auth_invalid(app_client):
    _app, client = app_client
    _seed_user("ben@school.test", "employee")

    res = client.post("/api/auth/login", json={"email": "ben@school.test", "password": "nope12345"})
    assert res.status_code == 401
    body = res.get_json()
    assert body["ok"] is False
    assert body["error"] == {"code": "AUTH_INVALID", "message": "Invalid credentials"}


def test_suspended_account_cannot_login(app_client):
    _app, client = app_client
    _seed_user("cara@school.test", "employee", suspended=True)

    res = client.post("/api/auth/login", json={"email": "cara@school.test", "password": PASSWORD})
    assert res.status_code == 403
    assert "disabled" in res.get_json()["error"]["message"]


def test_missing_token_is_rejected(app_client):
    _app, client = app_client

    res = client.get("/api/employee/profile")
    assert res.status_code == 401


def test_employee_cannot_call_hr_routes(app_client):
    _app, client = app_client
    _seed_user("dan@school.test", "employee")
    token = _login(client, "dan@school.test")

    res = client.get("/api/hr/employees", headers=_auth(token))
    assert res.status_code == 403
    assert res.get_json()["error"]["code"] == "FORBIDDEN"

    with SessionLocal() as db:
        denied = db.execute(select(AuditLog).where(AuditLog.action == "HR_EMPLOYEES_LIST")).scalars().all()
        assert denied


def test_leave_credit_reset_is_mis_only(app_client):
    _app, client = app_client
    _seed_user("hr@school.test", "hr")
    _seed_user("mis@school.test", "mis")

    hr_token = _login(client, "hr@school.test")
    res = client.post("/api/hr/leave-credits/reset", json={"schoolYear": "2025-2026"}, headers=_auth(hr_token))
    assert res.status_code == 403

    mis_token = _login(client, "mis@school.test")
    res = client.post("/api/hr/leave-credits/reset", json={"schoolYear": "2025-2026"}, headers=_auth(mis_token))
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["schoolYear"] == "2025-2026"
    assert data["employeesProcessed"] == 0

    res = client.post("/api/hr/leave-credits/reset", json={"schoolYear": "2025"}, headers=_auth(mis_token))
    assert res.status_code == 400


def test_change_password_revokes_old_sessions(app_client):
    _app, client = app_client
    _seed_user("eve@school.test", "employee")
    old_token = _login(client, "eve@school.test")

    res = client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "N3wPassword"},
        headers=_auth(old_token),
    )
    assert res.status_code == 200
    new_token = res.get_json()["data"]["sessionToken"]

    assert client.get("/api/auth/me", headers=_auth(old_token)).status_code == 401
    assert client.get("/api/auth/me", headers=_auth(new_token)).status_code == 200


def test_register_creates_employee_account(app_client):
    _app, client = app_client

    res = client.post("/api/auth/register", json={"name": "Fay", "email": "fay@school.test", "password": "abc12345"})
    assert res.status_code == 201
    assert res.get_json()["data"]["user"]["role"] == "employee"

    res = client.post("/api/auth/register", json={"name": "Fay", "email": "FAY@school.test", "password": "abc12345"})
    assert res.status_code == 400


def _failed_login(client, forwarded_for: str):
    return client.post(
        "/api/auth/login",
        json={"email": "nobody@school.test", "password": "Wrong1234"},
        headers={"X-Forwarded-For": forwarded_for},
    )


def test_rotating_forwarded_for_does_not_bypass_login_limit(app_client):
    app, client = app_client
    app.config["CFG"].RATE_LIMIT_LOGIN = "3/60"

    codes = [_failed_login(client, f"203.0.113.{i}").status_code for i in range(3)]
    assert codes == [401, 401, 401]

    res = _failed_login(client, "198.51.100.7")
    assert res.status_code == 429
    assert res.get_json()["error"]["code"] == "RATE_LIMITED"


def test_trusted_proxy_limits_each_forwarded_client(app_env):
    app_env.setenv("PROXY_FIX_X_FOR", "1")
    app_env.setenv("RATE_LIMIT_LOGIN", "1/60")

    from app import create_app
    from cache_layer import cache_clear

    cache_clear()
    app = create_app()
    with app.test_client() as client:
        assert _failed_login(client, "203.0.113.1").status_code == 401
        assert _failed_login(client, "203.0.113.2").status_code == 401
        assert _failed_login(client, "203.0.113.1").status_code == 429
    cache_clear()


def test_rate_limiter_key_count_is_bounded():
    limiter = SimpleRateLimiter(max_keys=100)
    for i in range(500):
        limiter.check(f"10.0.{i // 256}.{i % 256}:GLOBAL", "5/60")
    assert limiter.tracked_keys() <= 100
