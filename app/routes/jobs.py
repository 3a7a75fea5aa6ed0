"""
Maintenance job endpoints.

The sweep and the rollover accept either an MIS session or the `X-Internal-Token`
header (cron / Celery beat replacements).
"""
from __future__ import annotations

from flask import Blueprint

from app.rest import request_data, rest_handle

jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")


@jobs_bp.post("/contracts/sweep-expired")
def rest_sweep_expired():
    """Runs the contract expiration sweep now, in this request."""
    return rest_handle("CONTRACTS_SWEEP_EXPIRED", request_data(), allow_internal=True)


@jobs_bp.post("/leave-credits/rollover")
def rest_enqueue_rollover():
    """
    Enqueue the school-year rollover on the Celery worker.

    Request body:
        { "schoolYear": "2025-2026" }

    Returns:
        { "ok": true, "data": { "jobId": "...", "status": "queued", "schoolYear": "..." } }
    """
    return rest_handle("LEAVE_CREDITS_ROLLOVER_ENQUEUE", request_data(), allow_internal=True, success_status=202)


@jobs_bp.get("/<job_id>")
def rest_job_status(job_id: str):
    """Status of a background job: PENDING / STARTED / SUCCESS / FAILURE / REVOKED."""
    return rest_handle("JOB_STATUS_GET", request_data(jobId=job_id))
