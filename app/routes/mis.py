"""MIS administration routes (role mis)."""
from __future__ import annotations

from flask import Blueprint

from app.rest import request_data, rest_handle

mis_bp = Blueprint("mis", __name__, url_prefix="/api/mis")


@mis_bp.get("/audit-logs")
def rest_audit_logs():
    return rest_handle("AUDIT_LOGS_LIST", request_data())


@mis_bp.get("/accounts")
def rest_accounts_list():
    return rest_handle("ACCOUNTS_LIST", request_data())


@mis_bp.put("/accounts/<int:account_id>")
def rest_account_update(account_id: int):
    return rest_handle("ACCOUNT_UPDATE", request_data(id=account_id))


@mis_bp.patch("/accounts/<int:account_id>/disable")
def rest_account_disable(account_id: int):
    return rest_handle("ACCOUNT_DISABLE", request_data(id=account_id))


@mis_bp.patch("/accounts/<int:account_id>/reactivate")
def rest_account_reactivate(account_id: int):
    return rest_handle("ACCOUNT_REACTIVATE", request_data(id=account_id))


@mis_bp.post("/accounts/<int:account_id>/reset-password")
def rest_account_reset_password(account_id: int):
    return rest_handle("ACCOUNT_RESET_PASSWORD", request_data(id=account_id))


@mis_bp.get("/reports/system")
def rest_system_report():
    return rest_handle("SYSTEM_REPORT", request_data())


# System notifications


@mis_bp.get("/notifications")
def rest_system_notifications():
    return rest_handle("SYSTEM_NOTIFICATIONS_LIST", request_data())


@mis_bp.post("/notifications")
def rest_system_notification_create():
    return rest_handle("SYSTEM_NOTIFICATION_CREATE", request_data(), success_status=201)


@mis_bp.put("/notifications/<int:notification_id>/read")
def rest_system_notification_read(notification_id: int):
    return rest_handle("SYSTEM_NOTIFICATION_READ", request_data(id=notification_id))


@mis_bp.delete("/notifications/<int:notification_id>")
def rest_system_notification_delete(notification_id: int):
    return rest_handle("SYSTEM_NOTIFICATION_DELETE", request_data(id=notification_id))


# Configuration request queue


@mis_bp.get("/config-requests")
def rest_config_requests_all():
    return rest_handle("HR_REQUESTS_ALL", request_data())


@mis_bp.get("/config-requests/stats")
def rest_config_requests_queue_stats():
    return rest_handle("HR_REQUESTS_QUEUE_STATS", request_data())


@mis_bp.get("/config-requests/<int:request_id>")
def rest_config_request_get(request_id: int):
    return rest_handle("HR_REQUEST_GET", request_data(id=request_id))


@mis_bp.put("/config-requests/<int:request_id>/assign")
def rest_config_request_assign(request_id: int):
    return rest_handle("HR_REQUEST_ASSIGN", request_data(id=request_id))


@mis_bp.put("/config-requests/<int:request_id>/approve")
def rest_config_request_approve(request_id: int):
    return rest_handle("HR_REQUEST_APPROVE", request_data(id=request_id))


@mis_bp.put("/config-requests/<int:request_id>/reject")
def rest_config_request_reject(request_id: int):
    return rest_handle("HR_REQUEST_REJECT", request_data(id=request_id))
