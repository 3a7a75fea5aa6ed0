from __future__ import annotations

from flask import Blueprint

from app.rest import request_data, rest_handle

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def rest_login():
    return rest_handle("AUTH_LOGIN", request_data())


@auth_bp.post("/register")
def rest_register():
    return rest_handle("AUTH_REGISTER", request_data(), success_status=201)


@auth_bp.post("/logout")
def rest_logout():
    return rest_handle("AUTH_LOGOUT", request_data())


@auth_bp.get("/me")
def rest_me():
    return rest_handle("GET_ME", request_data())


@auth_bp.get("/permissions")
def rest_my_permissions():
    return rest_handle("MY_PERMISSIONS_GET", request_data())


@auth_bp.post("/change-password")
def rest_change_password():
    return rest_handle("AUTH_CHANGE_PASSWORD", request_data())
