from __future__ import annotations

import logging
import os
import threading

from dotenv import load_dotenv
from flask import Flask, g, request
from flask_cors import CORS
from sqlalchemy import select
from werkzeug.middleware.proxy_fix import ProxyFix

from cache_layer import cache_clear
from config import Config
from db import SessionLocal, init_engine
from utils import SimpleRateLimiter, err, iso_utc_now, now_monotonic


_log = logging.getLogger("api")


def _configure_logging(level: str):
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _seed_roles_and_permissions(db):
    from auth import ROLES, STATIC_RBAC_PERMISSIONS
    from models import Permission, Role

    now = iso_utc_now()
    actor = "SYSTEM_INIT"

    existing_roles = {str(r.roleCode or "").upper() for r in db.execute(select(Role)).scalars().all()}
    for rc in ROLES:
        if rc in existing_roles:
            continue
        db.add(
            Role(
                roleCode=rc,
                roleName=rc,
                status="ACTIVE",
                createdAt=now,
                createdBy=actor,
                updatedAt=now,
                updatedBy=actor,
            )
        )

    # Only inserts missing keys so custom RBAC rows survive restarts.
    existing_perm = {
        (str(p.permType or "").upper().strip(), str(p.permKey or "").upper().strip())
        for p in db.execute(select(Permission)).scalars().all()
    }
    for action, roles in STATIC_RBAC_PERMISSIONS.items():
        key = ("ACTION", action.upper())
        if key in existing_perm:
            continue
        db.add(
            Permission(
                permType="ACTION",
                permKey=action.upper(),
                rolesCsv=",".join(roles),
                enabled=True,
                updatedAt=now,
                updatedBy=actor,
            )
        )


def _seed_bootstrap_mis(db, cfg: Config):
    """First MIS account, so a fresh install can be administered at all."""
    from models import Employee
    from passwords import hash_password

    if not cfg.BOOTSTRAP_MIS_EMAIL:
        return
    exists = db.execute(select(Employee).where(Employee.email == cfg.BOOTSTRAP_MIS_EMAIL)).scalars().first()
    if exists:
        return

    now = iso_utc_now()
    db.add(
        Employee(
            employeeId="MIS-0001",
            fullName="MIS Administrator",
            email=cfg.BOOTSTRAP_MIS_EMAIL,
            password=hash_password(cfg.BOOTSTRAP_MIS_PASSWORD, min_length=cfg.PASSWORD_MIN_LENGTH),
            role="mis",
            status="Active",
            isSuspended=False,
            createdAt=now,
            createdBy="SYSTEM_INIT",
            updatedAt=now,
            updatedBy="SYSTEM_INIT",
        )
    )
    _log.info("bootstrap MIS account created email=%s", cfg.BOOTSTRAP_MIS_EMAIL)


def create_app() -> Flask:
    load_dotenv()
    cfg = Config()
    cfg.validate()
    _configure_logging(cfg.LOG_LEVEL)

    engine = init_engine(cfg.DATABASE_URL)

    from models import Base  # imported after engine init

    Base.metadata.create_all(bind=engine)

    from schema import ensure_schema

    ensure_schema(engine)

    app = Flask(__name__)
    app.config["CFG"] = cfg
    app.config["MAX_CONTENT_LENGTH"] = (cfg.MAX_UPLOAD_MB + 1) * 1024 * 1024
    if cfg.PROXY_FIX_X_FOR:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=cfg.PROXY_FIX_X_FOR, x_proto=cfg.PROXY_FIX_X_FOR)
    app.extensions["rate_limiter"] = SimpleRateLimiter(max_keys=cfg.RATE_LIMIT_MAX_KEYS)

    CORS(
        app,
        origins=cfg.ALLOWED_ORIGINS,
        supports_credentials=False,
        allow_headers=["Content-Type", "Authorization", "X-Session-Token", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    db0 = SessionLocal()
    try:
        _seed_roles_and_permissions(db0)
        _seed_bootstrap_mis(db0, cfg)
        db0.commit()
    finally:
        db0.close()
    # RBAC lookups cached before the seed may hold "no rule" markers.
    cache_clear()

    @app.before_request
    def _before():
        g.request_id = str(request.headers.get("X-Request-ID") or "").strip()[:64] or os.urandom(8).hex()
        g.start_ts = now_monotonic()

    @app.after_request
    def _after(resp):
        resp.headers["X-Request-ID"] = str(getattr(g, "request_id", "") or "")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        resp.headers.setdefault("Cache-Control", "no-store")
        return resp

    @app.errorhandler(404)
    def not_found(_e):
        return err("NOT_FOUND", f"Unknown endpoint: {request.path}", http_status=404)

    @app.errorhandler(405)
    def method_not_allowed(_e):
        return err("BAD_REQUEST", "Method not allowed", http_status=405)

    @app.errorhandler(413)
    def too_large(_e):
        return err("PAYLOAD_TOO_LARGE", f"Max upload size is {cfg.MAX_UPLOAD_MB}MB", http_status=413)

    from app.routes.auth import auth_bp
    from app.routes.core import core_bp
    from app.routes.employee import employee_bp
    from app.routes.hr import hr_bp
    from app.routes.jobs import jobs_bp
    from app.routes.mis import mis_bp
    from app.routes.notifications import notifications_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(employee_bp)
    app.register_blueprint(hr_bp)
    app.register_blueprint(mis_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(jobs_bp)

    from app.scheduler import maybe_start_scheduler

    stop = threading.Event()
    app.extensions["scheduler"] = {"thread": maybe_start_scheduler(cfg, stop), "stop": stop}
    return app
