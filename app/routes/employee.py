"""Employee self-service routes (role employee)."""
from __future__ import annotations

from flask import Blueprint

from app.rest import request_data, rest_handle

employee_bp = Blueprint("employee", __name__, url_prefix="/api/employee")


@employee_bp.get("/profile")
def rest_profile_get():
    return rest_handle("EMP_PROFILE_GET", request_data())


@employee_bp.put("/profile")
def rest_profile_update():
    return rest_handle("EMP_PROFILE_UPDATE", request_data())


@employee_bp.post("/profile/image")
def rest_profile_image_upload():
    return rest_handle("EMP_PROFILE_IMAGE_UPLOAD", request_data())


@employee_bp.get("/profile/image")
def rest_profile_image_get():
    return rest_handle("EMP_PROFILE_IMAGE_GET", request_data())


@employee_bp.post("/profile/request-change")
def rest_profile_change_request():
    return rest_handle("EMP_PROFILE_CHANGE_REQUEST", request_data(), success_status=201)


@employee_bp.get("/profile/change-requests")
def rest_profile_change_list():
    return rest_handle("EMP_PROFILE_CHANGE_LIST", request_data())


@employee_bp.get("/documents")
def rest_documents_list():
    return rest_handle("EMP_DOCUMENTS_LIST", request_data())


@employee_bp.post("/documents")
def rest_document_upload():
    return rest_handle("EMP_DOCUMENT_UPLOAD", request_data(), success_status=201)


@employee_bp.post("/leave")
def rest_leave_request():
    return rest_handle("EMP_LEAVE_REQUEST", request_data(), success_status=201)


@employee_bp.get("/leaves")
def rest_leaves_list():
    return rest_handle("EMP_LEAVES_LIST", request_data())


@employee_bp.get("/leave-credits")
def rest_leave_credits():
    return rest_handle("EMP_LEAVE_CREDITS_GET", request_data())


@employee_bp.get("/contracts/current")
def rest_contract_current():
    return rest_handle("EMP_CONTRACT_CURRENT", request_data())


@employee_bp.get("/contracts/past")
def rest_contracts_past():
    return rest_handle("EMP_CONTRACTS_PAST", request_data())


@employee_bp.get("/contracts")
def rest_contracts_list():
    return rest_handle("EMP_CONTRACTS_LIST", request_data())


@employee_bp.get("/contracts/<int:contract_id>/download")
def rest_contract_download(contract_id: int):
    return rest_handle("EMP_CONTRACT_DOWNLOAD", request_data(id=contract_id))


@employee_bp.post("/certificates/request")
def rest_certificate_request():
    return rest_handle("EMP_CERTIFICATE_REQUEST", request_data(), success_status=201)


@employee_bp.get("/certificates/requests")
def rest_certificates_list():
    return rest_handle("EMP_CERTIFICATES_LIST", request_data())


@employee_bp.get("/certificates/<int:cert_id>/download")
def rest_certificate_download(cert_id: int):
    return rest_handle("EMP_CERTIFICATE_DOWNLOAD", request_data(id=cert_id))
