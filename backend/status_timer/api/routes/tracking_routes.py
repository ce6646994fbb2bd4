"""
Tracking API Routes for the Status Timer.

Provides endpoints for:
- Inspecting tracked issues and how long they have been in their status
- Reading and changing status thresholds
- Forcing a reload from Jira or an immediate alert pass
- Triggering and resuming scheduled jobs
"""
from typing import Any, Dict

from fastapi import APIRouter, Path

from status_timer.core.exceptions import (
    JobNotFoundError,
    ThresholdNotFoundError,
    TrackingRecordNotFoundError,
    ValidationError,
)
from status_timer.models.schemas import ThresholdEntry, ThresholdUpdateRequest
from status_timer.services.commands import format_duration_report
from status_timer.services.runtime import get_runtime
from status_timer.services.scheduler import get_scheduler


router = APIRouter(prefix="/api/tracking", tags=["Tracking"])


# ==========================================
# TRACKED ISSUES
# ==========================================

@router.get(
    "/records",
    summary="List Tracked Issues",
    description="Every issue currently being timed, with its status and alert bookkeeping"
)
async def list_records() -> Dict[str, Any]:
    runtime = get_runtime()
    records = runtime.store.all()
    return {
        "records": [record.model_dump(mode="json") for record in records],
        "count": len(records),
    }


@router.get(
    "/records/{key}",
    summary="Status Duration",
    description="How long an issue has been in its current status (total and business time)"
)
async def get_record(
    key: str = Path(..., description="Jira issue key, e.g. CAM-123")
) -> Dict[str, Any]:
    report = get_runtime().commands.query_duration(key)
    if report is None:
        raise TrackingRecordNotFoundError(key)

    return {
        **report.to_dict(),
        "message": format_duration_report(report),
    }


@router.delete(
    "/records/{key}",
    summary="Stop Tracking",
    description="Remove an issue from tracking until the next reload picks it up again"
)
async def delete_record(
    key: str = Path(..., description="Jira issue key, e.g. CAM-123")
) -> Dict[str, Any]:
    if not get_runtime().commands.clear(key):
        raise TrackingRecordNotFoundError(key)

    return {"status": "success", "key": key}


# ==========================================
# THRESHOLDS
# ==========================================

@router.get(
    "/thresholds",
    summary="List Thresholds",
    description="Enabled status thresholds in table order"
)
async def list_thresholds() -> Dict[str, Any]:
    entries = [
        ThresholdEntry(state=state, minutes=minutes, hours=round(minutes / 60, 1))
        for state, minutes in get_runtime().commands.list_thresholds()
    ]
    return {"thresholds": [entry.model_dump() for entry in entries]}


@router.put(
    "/thresholds",
    summary="Update Threshold",
    description="Change the threshold for a configured status; null minutes disables its timer"
)
async def update_threshold(request: ThresholdUpdateRequest) -> Dict[str, Any]:
    result = get_runtime().commands.update_threshold(request.state, request.minutes)

    if result.reason == "unknown_state":
        raise ThresholdNotFoundError(request.state)
    if result.reason == "invalid_minutes":
        raise ValidationError(result.message, field="minutes", value=request.minutes)

    return {
        "status": "success",
        "state": request.state,
        "minutes": request.minutes,
        "message": result.message,
    }


# ==========================================
# MANUAL TRIGGERS
# ==========================================

@router.post(
    "/reload",
    summary="Reload From Jira",
    description="Rebuild tracking data from Jira, falling back to the saved snapshot"
)
async def reload_tracking() -> Dict[str, Any]:
    result = await get_runtime().reconcile()
    return {"status": "success", "result": result}


@router.post(
    "/check",
    summary="Run Alert Check",
    description="Run one alert pass now instead of waiting for the scheduler"
)
async def run_alert_check() -> Dict[str, Any]:
    result = await get_runtime().check_alerts()
    return {"status": "success", "result": result}


# ==========================================
# SCHEDULED JOBS
# ==========================================

@router.post(
    "/jobs/{job_id}/trigger",
    summary="Trigger Job",
    description="Run a scheduled job on the next scheduler tick"
)
async def trigger_job(
    job_id: str = Path(..., description="alert_check or tracking_reload")
) -> Dict[str, Any]:
    if not get_scheduler().trigger_job(job_id):
        raise JobNotFoundError(job_id)
    return {"status": "success", "job_id": job_id}


@router.post(
    "/jobs/{job_id}/resume",
    summary="Resume Job",
    description="Resume a job paused after repeated failures and clear its failure history"
)
async def resume_job(
    job_id: str = Path(..., description="alert_check or tracking_reload")
) -> Dict[str, Any]:
    if not get_scheduler().resume_job(job_id):
        raise JobNotFoundError(job_id)
    return {"status": "success", "job_id": job_id}
