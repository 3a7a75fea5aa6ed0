"""HR routes (roles HR and MIS unless the action says otherwise)."""
from __future__ import annotations

from flask import Blueprint

from app.rest import request_data, rest_handle

hr_bp = Blueprint("hr", __name__, url_prefix="/api/hr")


@hr_bp.get("/dashboard/stats")
def rest_dashboard_stats():
    return rest_handle("HR_DASHBOARD_STATS", request_data())


# Employees


@hr_bp.get("/employees")
def rest_employees_list():
    return rest_handle("HR_EMPLOYEES_LIST", request_data())


@hr_bp.post("/employees")
def rest_employee_create():
    return rest_handle("HR_EMPLOYEE_CREATE", request_data(), success_status=201)


@hr_bp.post("/employees/bulk-upload/preview")
def rest_employees_bulk_preview():
    return rest_handle("HR_EMPLOYEES_BULK_PREVIEW", request_data())


@hr_bp.post("/employees/bulk-upload/confirm")
def rest_employees_bulk_confirm():
    return rest_handle("HR_EMPLOYEES_BULK_CONFIRM", request_data())


@hr_bp.get("/employees/template/download")
def rest_employees_template():
    return rest_handle("HR_EMPLOYEES_TEMPLATE", request_data())


@hr_bp.get("/employees/<int:emp_id>")
def rest_employee_get(emp_id: int):
    return rest_handle("HR_EMPLOYEE_GET", request_data(id=emp_id))


@hr_bp.put("/employees/<int:emp_id>")
def rest_employee_update(emp_id: int):
    return rest_handle("HR_EMPLOYEE_UPDATE", request_data(id=emp_id))


# Contracts


@hr_bp.get("/contracts")
def rest_contracts_list():
    return rest_handle("CONTRACTS_LIST", request_data())


@hr_bp.post("/contracts")
def rest_contract_create():
    return rest_handle("CONTRACT_CREATE", request_data(), success_status=201)


@hr_bp.get("/contracts/expiring")
def rest_contracts_expiring():
    return rest_handle("CONTRACTS_EXPIRING", request_data())


@hr_bp.put("/contracts/<int:contract_id>")
def rest_contract_update(contract_id: int):
    return rest_handle("CONTRACT_UPDATE", request_data(id=contract_id))


@hr_bp.post("/contracts/<int:contract_id>/file")
def rest_contract_file_upload(contract_id: int):
    return rest_handle("CONTRACT_FILE_UPLOAD", request_data(id=contract_id))


@hr_bp.post("/contracts/<int:contract_id>/renew")
def rest_contract_renew(contract_id: int):
    return rest_handle("CONTRACT_RENEW", request_data(id=contract_id))


@hr_bp.post("/contracts/<int:contract_id>/terminate")
def rest_contract_terminate(contract_id: int):
    return rest_handle("CONTRACT_TERMINATE", request_data(id=contract_id))


# Reports


@hr_bp.get("/reports/contracts")
def rest_report_contracts():
    return rest_handle("REPORT_CONTRACTS", request_data())


@hr_bp.get("/reports/leaves")
def rest_report_leaves():
    return rest_handle("REPORT_LEAVES", request_data())


@hr_bp.get("/reports/documents")
def rest_report_documents():
    return rest_handle("REPORT_DOCUMENTS", request_data())


# Profile change requests


@hr_bp.get("/profile-requests")
def rest_profile_requests_list():
    return rest_handle("PROFILE_REQUESTS_LIST", request_data())


@hr_bp.get("/profile-requests/<int:request_id>")
def rest_profile_request_get(request_id: int):
    return rest_handle("PROFILE_REQUEST_GET", request_data(id=request_id))


@hr_bp.put("/profile-requests/<int:request_id>/approve")
def rest_profile_request_approve(request_id: int):
    return rest_handle("PROFILE_REQUEST_APPROVE", request_data(id=request_id))


@hr_bp.put("/profile-requests/<int:request_id>/reject")
def rest_profile_request_reject(request_id: int):
    return rest_handle("PROFILE_REQUEST_REJECT", request_data(id=request_id))


# Certificates


@hr_bp.get("/certificates/requests")
def rest_certificate_requests_list():
    return rest_handle("CERTIFICATE_REQUESTS_LIST", request_data())


@hr_bp.put("/certificates/<int:cert_id>/approve")
def rest_certificate_approve(cert_id: int):
    return rest_handle("CERTIFICATE_APPROVE", request_data(id=cert_id))


@hr_bp.put("/certificates/<int:cert_id>/reject")
def rest_certificate_reject(cert_id: int):
    return rest_handle("CERTIFICATE_REJECT", request_data(id=cert_id))


@hr_bp.post("/certificates/<int:cert_id>/upload")
def rest_certificate_upload(cert_id: int):
    return rest_handle("CERTIFICATE_UPLOAD", request_data(id=cert_id))


# Documents


@hr_bp.get("/documents")
def rest_documents_list():
    return rest_handle("DOCUMENTS_LIST", request_data())


@hr_bp.post("/documents/request")
def rest_document_request():
    return rest_handle("DOCUMENT_REQUEST", request_data(), success_status=201)


@hr_bp.get("/documents/<int:doc_id>/view")
def rest_document_view(doc_id: int):
    return rest_handle("DOCUMENT_VIEW", request_data(id=doc_id))


@hr_bp.put("/documents/<int:doc_id>/approve")
def rest_document_approve(doc_id: int):
    return rest_handle("DOCUMENT_APPROVE", request_data(id=doc_id))


@hr_bp.put("/documents/<int:doc_id>/reject")
def rest_document_reject(doc_id: int):
    return rest_handle("DOCUMENT_REJECT", request_data(id=doc_id))


# Leaves


@hr_bp.get("/leaves")
def rest_leaves_list():
    return rest_handle("LEAVES_LIST", request_data())


@hr_bp.get("/leaves/calendar")
def rest_leaves_calendar():
    return rest_handle("LEAVES_CALENDAR", request_data())


@hr_bp.post("/leaves")
def rest_leave_create():
    return rest_handle("LEAVE_CREATE", request_data(), success_status=201)


@hr_bp.put("/leaves/<int:leave_id>/approve")
def rest_leave_approve(leave_id: int):
    return rest_handle("LEAVE_APPROVE", request_data(id=leave_id))


@hr_bp.put("/leaves/<int:leave_id>/reject")
def rest_leave_reject(leave_id: int):
    return rest_handle("LEAVE_REJECT", request_data(id=leave_id))


@hr_bp.delete("/leaves/<int:leave_id>")
def rest_leave_delete(leave_id: int):
    return rest_handle("LEAVE_DELETE", request_data(id=leave_id))


# Leave credits


@hr_bp.get("/leave-credits")
def rest_leave_credits_list():
    return rest_handle("LEAVE_CREDITS_LIST", request_data())


@hr_bp.get("/leave-credits/summary")
def rest_leave_credits_summary():
    return rest_handle("LEAVE_CREDITS_SUMMARY", request_data())


@hr_bp.post("/leave-credits/reset")
def rest_leave_credits_reset():
    return rest_handle("LEAVE_CREDITS_RESET", request_data())


@hr_bp.get("/leave-credits/<int:employee_id>")
def rest_leave_credits_get(employee_id: int):
    return rest_handle("LEAVE_CREDITS_GET", request_data(employeeId=employee_id))


@hr_bp.put("/leave-credits/<int:employee_id>")
def rest_leave_credits_update(employee_id: int):
    return rest_handle("LEAVE_CREDITS_UPDATE", request_data(employeeId=employee_id))


# Departments / designations


@hr_bp.get("/departments")
def rest_departments_list():
    return rest_handle("DEPARTMENTS_LIST", request_data())


@hr_bp.post("/departments")
def rest_department_create():
    return rest_handle("DEPARTMENT_CREATE", request_data(), success_status=201)


@hr_bp.get("/departments/<int:dept_id>")
def rest_department_get(dept_id: int):
    return rest_handle("DEPARTMENT_GET", request_data(id=dept_id))


@hr_bp.put("/departments/<int:dept_id>")
def rest_department_update(dept_id: int):
    return rest_handle("DEPARTMENT_UPDATE", request_data(id=dept_id))


@hr_bp.put("/departments/<int:dept_id>/archive")
def rest_department_archive(dept_id: int):
    return rest_handle("DEPARTMENT_ARCHIVE", request_data(id=dept_id))


@hr_bp.put("/departments/<int:dept_id>/unarchive")
def rest_department_unarchive(dept_id: int):
    return rest_handle("DEPARTMENT_UNARCHIVE", request_data(id=dept_id))


@hr_bp.get("/designations")
def rest_designations_list():
    return rest_handle("DESIGNATIONS_LIST", request_data())


@hr_bp.post("/designations")
def rest_designation_create():
    return rest_handle("DESIGNATION_CREATE", request_data(), success_status=201)


@hr_bp.get("/designations/<int:designation_id>")
def rest_designation_get(designation_id: int):
    return rest_handle("DESIGNATION_GET", request_data(id=designation_id))


@hr_bp.put("/designations/<int:designation_id>")
def rest_designation_update(designation_id: int):
    return rest_handle("DESIGNATION_UPDATE", request_data(id=designation_id))


@hr_bp.put("/designations/<int:designation_id>/archive")
def rest_designation_archive(designation_id: int):
    return rest_handle("DESIGNATION_ARCHIVE", request_data(id=designation_id))


@hr_bp.put("/designations/<int:designation_id>/unarchive")
def rest_designation_unarchive(designation_id: int):
    return rest_handle("DESIGNATION_UNARCHIVE", request_data(id=designation_id))


# Configuration requests to MIS


@hr_bp.post("/config-requests")
def rest_config_request_create():
    return rest_handle("HR_REQUEST_CREATE", request_data(), success_status=201)


@hr_bp.get("/config-requests")
def rest_config_requests_mine():
    return rest_handle("HR_REQUESTS_MINE", request_data())


@hr_bp.get("/config-requests/stats")
def rest_config_requests_stats():
    return rest_handle("HR_REQUESTS_MY_STATS", request_data())


@hr_bp.get("/config-requests/<int:request_id>")
def rest_config_request_get(request_id: int):
    return rest_handle("HR_REQUEST_GET", request_data(id=request_id))
