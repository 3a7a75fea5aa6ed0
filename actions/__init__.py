from __future__ import annotations

from typing import Any, Callable

from actions import (
    auth_actions,
    certificates,
    contracts,
    dashboard,
    documents,
    employees,
    hr_requests,
    leave_credits,
    leaves,
    mis,
    notifications,
    org,
)
from utils import ApiError


Handler = Callable[[Any, Any, Any, Any], Any]

ACTION_HANDLERS: dict[str, Handler] = {
    # Auth
    "AUTH_LOGIN": auth_actions.login,
    "AUTH_REGISTER": auth_actions.register,
    "AUTH_LOGOUT": auth_actions.logout,
    "AUTH_CHANGE_PASSWORD": auth_actions.change_password,
    "GET_ME": auth_actions.get_me,
    "MY_PERMISSIONS_GET": auth_actions.my_permissions,
    # Employee self-service
    "EMP_PROFILE_GET": employees.get_profile,
    "EMP_PROFILE_UPDATE": employees.update_profile,
    "EMP_PROFILE_IMAGE_UPLOAD": employees.upload_profile_image,
    "EMP_PROFILE_IMAGE_GET": employees.get_profile_image,
    "EMP_PROFILE_CHANGE_REQUEST": employees.request_profile_change,
    "EMP_PROFILE_CHANGE_LIST": employees.my_profile_change_requests,
    "EMP_DOCUMENTS_LIST": documents.my_documents,
    "EMP_DOCUMENT_UPLOAD": documents.upload_document,
    "EMP_LEAVE_REQUEST": leaves.request_leave,
    "EMP_LEAVES_LIST": leaves.my_leaves,
    "EMP_LEAVE_CREDITS_GET": leave_credits.my_leave_credits,
    "EMP_CONTRACT_CURRENT": contracts.my_current_contract,
    "EMP_CONTRACTS_PAST": contracts.my_past_contracts,
    "EMP_CONTRACTS_LIST": contracts.my_contracts,
    "EMP_CONTRACT_DOWNLOAD": contracts.download_my_contract_file,
    "EMP_CERTIFICATE_REQUEST": certificates.request_certificates,
    "EMP_CERTIFICATES_LIST": certificates.my_certificates,
    "EMP_CERTIFICATE_DOWNLOAD": certificates.download_certificate,
    # HR: employees + dashboard
    "HR_DASHBOARD_STATS": dashboard.dashboard_stats,
    "HR_EMPLOYEES_LIST": employees.list_employees,
    "HR_EMPLOYEE_CREATE": employees.create_employee,
    "HR_EMPLOYEE_GET": employees.get_employee,
    "HR_EMPLOYEE_UPDATE": employees.update_employee,
    "HR_EMPLOYEES_BULK_PREVIEW": employees.bulk_import_preview,
    "HR_EMPLOYEES_BULK_CONFIRM": employees.bulk_import_confirm,
    "HR_EMPLOYEES_TEMPLATE": employees.employee_import_template,
    # Contracts
    "CONTRACTS_LIST": contracts.list_contracts,
    "CONTRACT_CREATE": contracts.create_contract,
    "CONTRACT_UPDATE": contracts.update_contract,
    "CONTRACT_RENEW": contracts.renew_contract,
    "CONTRACT_TERMINATE": contracts.terminate_contract,
    "CONTRACTS_EXPIRING": contracts.expiring_contracts,
    "CONTRACTS_SWEEP_EXPIRED": contracts.sweep_expired,
    "CONTRACT_FILE_UPLOAD": contracts.upload_contract_file,
    # Reports
    "REPORT_CONTRACTS": dashboard.contract_report,
    "REPORT_LEAVES": dashboard.leave_report,
    "REPORT_DOCUMENTS": dashboard.document_report,
    # Profile change requests
    "PROFILE_REQUESTS_LIST": employees.list_profile_requests,
    "PROFILE_REQUEST_GET": employees.get_profile_request,
    "PROFILE_REQUEST_APPROVE": employees.approve_profile_request,
    "PROFILE_REQUEST_REJECT": employees.reject_profile_request,
    # Certificates
    "CERTIFICATE_REQUESTS_LIST": certificates.list_certificate_requests,
    "CERTIFICATE_APPROVE": certificates.approve_certificate,
    "CERTIFICATE_REJECT": certificates.reject_certificate,
    "CERTIFICATE_UPLOAD": certificates.upload_certificate,
    # Documents
    "DOCUMENTS_LIST": documents.list_documents,
    "DOCUMENT_VIEW": documents.view_document,
    "DOCUMENT_APPROVE": documents.approve_document,
    "DOCUMENT_REJECT": documents.reject_document,
    "DOCUMENT_REQUEST": documents.request_document,
    # Leaves
    "LEAVES_LIST": leaves.list_leaves,
    "LEAVES_CALENDAR": leaves.leave_calendar,
    "LEAVE_CREATE": leaves.create_leave,
    "LEAVE_APPROVE": leaves.approve_leave,
    "LEAVE_REJECT": leaves.reject_leave,
    "LEAVE_DELETE": leaves.delete_leave,
    # Leave credits
    "LEAVE_CREDITS_LIST": leave_credits.list_credits,
    "LEAVE_CREDITS_SUMMARY": leave_credits.credit_summary,
    "LEAVE_CREDITS_GET": leave_credits.get_employee_credits,
    "LEAVE_CREDITS_RESET": leave_credits.reset_credits,
    "LEAVE_CREDITS_UPDATE": leave_credits.update_employee_credits,
    "LEAVE_CREDITS_ROLLOVER_ENQUEUE": leave_credits.enqueue_rollover,
    "JOB_STATUS_GET": leave_credits.job_status,
    # Departments / designations
    "DEPARTMENTS_LIST": org.list_departments,
    "DEPARTMENT_GET": org.get_department,
    "DEPARTMENT_CREATE": org.create_department,
    "DEPARTMENT_UPDATE": org.update_department,
    "DEPARTMENT_ARCHIVE": org.archive_department,
    "DEPARTMENT_UNARCHIVE": org.unarchive_department,
    "DESIGNATIONS_LIST": org.list_designations,
    "DESIGNATION_GET": org.get_designation,
    "DESIGNATION_CREATE": org.create_designation,
    "DESIGNATION_UPDATE": org.update_designation,
    "DESIGNATION_ARCHIVE": org.archive_designation,
    "DESIGNATION_UNARCHIVE": org.unarchive_designation,
    # HR -> MIS configuration requests
    "HR_REQUEST_CREATE": hr_requests.create_request,
    "HR_REQUESTS_MINE": hr_requests.my_requests,
    "HR_REQUESTS_MY_STATS": hr_requests.my_stats,
    "HR_REQUEST_GET": hr_requests.get_request,
    "HR_REQUESTS_ALL": hr_requests.all_requests,
    "HR_REQUESTS_QUEUE_STATS": hr_requests.queue_stats,
    "HR_REQUEST_ASSIGN": hr_requests.assign_request,
    "HR_REQUEST_APPROVE": hr_requests.approve_request,
    "HR_REQUEST_REJECT": hr_requests.reject_request,
    # MIS administration
    "AUDIT_LOGS_LIST": mis.audit_logs,
    "ACCOUNTS_LIST": mis.list_accounts,
    "ACCOUNT_UPDATE": mis.update_account,
    "ACCOUNT_DISABLE": mis.disable_account,
    "ACCOUNT_REACTIVATE": mis.reactivate_account,
    "ACCOUNT_RESET_PASSWORD": mis.reset_password,
    "SYSTEM_REPORT": mis.system_report,
    "SYSTEM_NOTIFICATIONS_LIST": notifications.system_list,
    "SYSTEM_NOTIFICATION_CREATE": notifications.system_create,
    "SYSTEM_NOTIFICATION_READ": notifications.system_mark_read,
    "SYSTEM_NOTIFICATION_DELETE": notifications.system_delete,
    # Own notifications
    "NOTIFICATIONS_MINE": notifications.my_notifications,
    "NOTIFICATION_READ": notifications.mark_read,
    "NOTIFICATION_ARCHIVE": notifications.archive,
    "NOTIFICATION_RESTORE": notifications.restore,
    "NOTIFICATION_DELETE": notifications.delete,
}


def dispatch(action: str, data: Any, auth, db, cfg) -> Any:
    action_u = str(action or "").upper().strip()
    handler = ACTION_HANDLERS.get(action_u)
    if handler is None:
        raise ApiError("BAD_REQUEST", f"Unknown action: {action_u}")
    return handler(data or {}, auth, db, cfg)
