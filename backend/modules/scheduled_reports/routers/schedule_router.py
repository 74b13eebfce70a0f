# backend/modules/scheduled_reports/routers/schedule_router.py

from datetime import datetime
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.permissions import Permission, require_permission

from ..constants import SUPPORTED_FORMATS, SUPPORTED_FREQUENCIES, SUPPORTED_TEMPLATES
from ..models.schedule_models import ExecutionStatus
from ..schemas.schedule_schemas import (
    ExecuteNowResponse,
    ExecutionListResponse,
    ExecutionResponse,
    ScheduleCreate,
    ScheduleLimits,
    ScheduleListResponse,
    ScheduleMutationResponse,
    ScheduleResponse,
    ScheduleUpdate,
)
from ..services.report_scheduler import ReportScheduler, get_report_scheduler
from ..services.schedule_service import ScheduledReportService

router = APIRouter(prefix="/scheduled-reports", tags=["Scheduled Reports"])
logger = logging.getLogger(__name__)

schedule_reports = require_permission(Permission.SCHEDULE_REPORTS)


@router.get("/health")
async def scheduled_reports_health(scheduler: ReportScheduler = Depends(get_report_scheduler)):
    return {
        "status": "healthy",
        "service": "scheduled-reports",
        "schedulerRunning": scheduler.running,
        "activeJobs": scheduler.active_job_count(),
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }


@router.post("", response_model=ScheduleMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreate,
    request: Request,
    db: Session = Depends(get_db),
    scheduler: ReportScheduler = Depends(get_report_scheduler),
    current_user=Depends(schedule_reports),
):
    try:
        schedule = ScheduledReportService(db, scheduler).create_schedule(payload, current_user, request)
        return ScheduleMutationResponse(schedule=ScheduleResponse.model_validate(schedule))
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating schedule: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create schedule",
        )


@router.get("", response_model=ScheduleListResponse)
async def list_schedules(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(active|paused)$"),
    db: Session = Depends(get_db),
    current_user=Depends(schedule_reports),
):
    service = ScheduledReportService(db)
    schedules = service.list_schedules(current_user, status_filter)
    return ScheduleListResponse(
        schedules=[ScheduleResponse.model_validate(s) for s in schedules],
        limits=ScheduleLimits(
            maxSchedulesPerUser=settings.max_schedules_per_user,
            currentCount=service.count_active(current_user),
        ),
        supportedFrequencies=SUPPORTED_FREQUENCIES,
        supportedFormats=SUPPORTED_FORMATS,
        supportedTemplates=SUPPORTED_TEMPLATES,
    )


@router.get("/{schedule_id}", response_model=ScheduleMutationResponse)
async def get_schedule(
    schedule_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(schedule_reports),
):
    schedule = ScheduledReportService(db).get_schedule(schedule_id, current_user)
    return ScheduleMutationResponse(schedule=ScheduleResponse.model_validate(schedule))


@router.get("/{schedule_id}/executions", response_model=ExecutionListResponse)
async def list_executions(
    schedule_id: str,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(schedule_reports),
):
    executions = ScheduledReportService(db).list_executions(schedule_id, current_user, limit)
    return ExecutionListResponse(executions=[ExecutionResponse.model_validate(e) for e in executions])


@router.put("/{schedule_id}", response_model=ScheduleMutationResponse)
async def update_schedule(
    schedule_id: str,
    payload: ScheduleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    scheduler: ReportScheduler = Depends(get_report_scheduler),
    current_user=Depends(schedule_reports),
):
    try:
        schedule = ScheduledReportService(db, scheduler).update_schedule(
            schedule_id, payload, current_user, request
        )
        return ScheduleMutationResponse(schedule=ScheduleResponse.model_validate(schedule))
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating schedule {schedule_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update schedule",
        )


@router.delete("/{schedule_id}")
async def delete_schedule(
    schedule_id: str,
    request: Request,
    db: Session = Depends(get_db),
    scheduler: ReportScheduler = Depends(get_report_scheduler),
    current_user=Depends(schedule_reports),
):
    ScheduledReportService(db, scheduler).delete_schedule(schedule_id, current_user, request)
    return {"success": True, "message": "Schedule deleted successfully"}


@router.post("/{schedule_id}/execute", response_model=ExecuteNowResponse)
async def execute_schedule_now(
    schedule_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(schedule_reports),
):
    """Run an active schedule immediately, outside its cron timing."""
    try:
        execution = ScheduledReportService(db).execute_now(schedule_id, current_user)
        succeeded = execution.status == ExecutionStatus.COMPLETED.value
        return ExecuteNowResponse(
            success=succeeded,
            message="Report executed successfully" if succeeded else "Report execution failed",
            execution=ExecutionResponse.model_validate(execution),
        )
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error executing schedule {schedule_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to execute schedule",
        )
