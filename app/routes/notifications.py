from __future__ import annotations

from flask import Blueprint

from app.rest import request_data, rest_handle

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@notifications_bp.get("/")
def rest_notifications_mine():
    return rest_handle("NOTIFICATIONS_MINE", request_data())


@notifications_bp.put("/<int:notification_id>/read")
def rest_notification_read(notification_id: int):
    return rest_handle("NOTIFICATION_READ", request_data(id=notification_id))


@notifications_bp.put("/<int:notification_id>/archive")
def rest_notification_archive(notification_id: int):
    return rest_handle("NOTIFICATION_ARCHIVE", request_data(id=notification_id))


@notifications_bp.put("/<int:notification_id>/restore")
def rest_notification_restore(notification_id: int):
    return rest_handle("NOTIFICATION_RESTORE", request_data(id=notification_id))


@notifications_bp.delete("/<int:notification_id>")
def rest_notification_delete(notification_id: int):
    return rest_handle("NOTIFICATION_DELETE", request_data(id=notification_id))
