"""
REST plumbing shared by every blueprint: token extraction, the request -> action
envelope, audit rows for successful and failed calls, file responses.
"""
from __future__ import annotations

import io
import json
import logging
import os
from typing import Any

from flask import current_app, g, request, send_file
from sqlalchemy.exc import IntegrityError

from actions import dispatch
from auth import assert_permission, is_public_action, role_or_public, system_context, validate_session_token
from db import SessionLocal
from models import AuditLog
from utils import ApiError, err, iso_utc_now, now_monotonic, ok, redact_for_audit


LOGIN_ACTIONS = {"AUTH_LOGIN", "AUTH_REGISTER"}

_log = logging.getLogger("api")


def rest_token() -> str:
    authz = str(request.headers.get("Authorization") or "").strip()
    if authz.lower().startswith("bearer "):
        return authz.split(" ", 1)[1].strip()
    return str(request.headers.get("X-Session-Token") or "").strip() or str(request.args.get("token") or "").strip()


def request_data(**path_params: Any) -> dict[str, Any]:
    """Query args, then the JSON body (or form fields), then path params; later wins."""
    data: dict[str, Any] = {k: v for k, v in request.args.items() if k != "token"}
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        data.update(body)
    elif request.form:
        data.update(request.form.to_dict())

    up = request.files.get("file") or next(iter(request.files.values()), None)
    if up is not None:
        data["file"] = {"bytes": up.read(), "fileName": up.filename or "", "mimeType": up.mimetype or ""}

    data.update({k: v for k, v in path_params.items() if v is not None})
    return data


def _client_ip() -> str:
    # ProxyFix rewrites remote_addr when PROXY_FIX_X_FOR trusts a proxy.
    return str(request.remote_addr or "")


def _check_rate_limit(cfg, action_u: str) -> None:
    limiter = current_app.extensions.get("rate_limiter")
    if limiter is None:
        return
    ip = _client_ip()
    if action_u in LOGIN_ACTIONS:
        limiter.check(f"{ip}:LOGIN", cfg.RATE_LIMIT_LOGIN)
    else:
        limiter.check(f"{ip}:GLOBAL", cfg.RATE_LIMIT_GLOBAL)


def _file_response(spec: dict[str, Any]):
    """Serves spec["path"] from disk, or spec["content"] bytes built in memory."""
    if "content" in spec:
        source = io.BytesIO(spec["content"])
        download_name = spec.get("downloadName") or "download"
    else:
        source = spec["path"]
        download_name = spec.get("downloadName") or os.path.basename(spec["path"])
    resp = send_file(
        source,
        mimetype=spec.get("mimeType") or "application/octet-stream",
        as_attachment=bool(spec.get("asAttachment")),
        download_name=download_name,
    )
    resp.headers["X-Content-Type-Options"] = "nosniff"
    return resp


def rest_handle(action: str, data: dict, *, allow_internal: bool = False, success_status: int = 200):
    cfg = current_app.config["CFG"]
    token = rest_token()
    action_u = str(action or "").upper().strip()

    db = None
    auth_ctx = None
    try:
        _check_rate_limit(cfg, action_u)
        db = SessionLocal()

        internal = str(request.headers.get("X-Internal-Token") or "").strip()
        if allow_internal and cfg.INTERNAL_CRON_TOKEN and internal and internal == cfg.INTERNAL_CRON_TOKEN:
            auth_ctx = system_context()
        elif is_public_action(action_u):
            auth_ctx = None
        else:
            auth_ctx = validate_session_token(db, token)
            if not auth_ctx.valid:
                raise ApiError("AUTH_INVALID", "Invalid or expired session")

        assert_permission(db, role_or_public(auth_ctx), action_u)

        if action_u == "AUTH_LOGOUT":
            data = dict(data or {}, token=token)
        out = dispatch(action_u, data or {}, auth_ctx, db, cfg)

        db.add(
            AuditLog(
                logId=f"LOG-{os.urandom(16).hex()}",
                entityType="API",
                entityId=str(auth_ctx.userId or auth_ctx.email or "") if auth_ctx else "PUBLIC",
                action=action_u,
                fromState="",
                toState="",
                stageTag="API_CALL_REST",
                remark="",
                actorUserId=str(auth_ctx.userId) if auth_ctx else "PUBLIC",
                actorRole=str(auth_ctx.role) if auth_ctx else "PUBLIC",
                actorEmail=str(getattr(auth_ctx, "email", "") or "") if auth_ctx else "",
                at=iso_utc_now(),
                correlationId=str(getattr(g, "request_id", "") or ""),
                metaJson=json.dumps({"data": redact_for_audit(data or {})}, default=str),
            )
        )
        db.commit()

        latency_ms = int((now_monotonic() - getattr(g, "start_ts", now_monotonic())) * 1000)
        _log.info(
            "request_id=%s action=%s user=%s role=%s latency_ms=%s",
            getattr(g, "request_id", ""),
            action_u,
            (auth_ctx.userId if auth_ctx else "PUBLIC"),
            (auth_ctx.role if auth_ctx else "PUBLIC"),
            latency_ms,
        )

        if isinstance(out, dict) and out.get("__file__") is True:
            return _file_response(out)
        return ok(out, success_status)
    except ApiError as e:
        if db is not None:
            db.rollback()
        write_error_audit(action_u, auth_ctx, data, e)
        return err(e.code, e.message, http_status=e.http_status)
    except IntegrityError:
        if db is not None:
            db.rollback()
        api_err = ApiError("CONFLICT", "The change conflicts with existing data")
        write_error_audit(action_u, auth_ctx, data, api_err)
        _log.warning("request_id=%s action=%s integrity error", getattr(g, "request_id", ""), action_u)
        return err(api_err.code, api_err.message, http_status=api_err.http_status)
    except Exception:
        if db is not None:
            db.rollback()
        request_id = str(getattr(g, "request_id", "") or "").strip()
        msg = f"Unexpected error (requestId: {request_id})" if request_id else "Unexpected error"
        api_err = ApiError("INTERNAL", msg, http_status=500)
        write_error_audit(action_u, auth_ctx, data, api_err)
        _log.exception("request_id=%s action=%s", request_id, action_u)
        return err(api_err.code, api_err.message, http_status=api_err.http_status)
    finally:
        if db is not None:
            db.close()


def write_error_audit(action: str, auth_ctx, data: Any, err_obj: ApiError) -> None:
    db2 = None
    try:
        db2 = SessionLocal()
        db2.add(
            AuditLog(
                logId=f"LOG-{os.urandom(16).hex()}",
                entityType="API",
                entityId=str(auth_ctx.userId or auth_ctx.email or "") if auth_ctx else "PUBLIC",
                action=str(action or "").upper() or "UNKNOWN",
                fromState="",
                toState="",
                stageTag="API_ERROR",
                remark=f"{err_obj.code}: {err_obj.message}",
                actorUserId=str(auth_ctx.userId) if auth_ctx else "PUBLIC",
                actorRole=str(auth_ctx.role) if auth_ctx else "PUBLIC",
                actorEmail=str(getattr(auth_ctx, "email", "") or "") if auth_ctx else "",
                at=iso_utc_now(),
                correlationId=str(getattr(g, "request_id", "") or ""),
                metaJson=json.dumps(
                    {
                        "data": redact_for_audit(data or {}),
                        "error": {"code": err_obj.code, "message": err_obj.message},
                    },
                    default=str,
                ),
            )
        )
        db2.commit()
    except Exception:
        _log.warning("error audit write failed action=%s", action, exc_info=True)
    finally:
        if db2 is not None:
            db2.close()
