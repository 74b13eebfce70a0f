# backend/modules/scheduled_reports/services/schedule_service.py

from datetime import datetime
from typing import List, Optional
import logging

from fastapi import Request
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import NotFoundError
from core.identifiers import generate_prefixed_id
from modules.audit.models.audit_models import AuditActionType
from modules.audit.services.audit_service import safe_log_action
from modules.exports.schemas.export_schemas import ExportRequest
from modules.exports.services.export_service import ExportService
from modules.revenue.schemas.revenue_schemas import RevenueFilters
from modules.users.models.user_models import User

from ..constants import SUPPORTED_FORMATS, SUPPORTED_FREQUENCIES, SUPPORTED_TEMPLATES
from ..models.schedule_models import (
    ExecutionStatus,
    ScheduledReport,
    ScheduledReportExecution,
    ScheduleStatus,
)
from ..schemas.schedule_schemas import ScheduleCreate, ScheduleUpdate
from .cron_service import calculate_next_run, generate_cron_expression, is_valid_cron_expression

logger = logging.getLogger(__name__)


class ScheduledReportService:
    """
    Schedule CRUD and execution, scoped to the owning user.

    ``scheduler`` is the background :class:`ReportScheduler`; when given,
    job registration follows every change to a schedule's status or cron.
    """

    def __init__(self, db: Session, scheduler=None):
        self.db = db
        self.scheduler = scheduler

    def count_active(self, user: User) -> int:
        return (
            self.db.query(ScheduledReport)
            .filter(
                ScheduledReport.user_id == user.id,
                ScheduledReport.status == ScheduleStatus.ACTIVE.value,
            )
            .count()
        )

    def list_schedules(self, user: User, status: Optional[str] = None) -> List[ScheduledReport]:
        query = self.db.query(ScheduledReport).filter(ScheduledReport.user_id == user.id)
        if status:
            query = query.filter(ScheduledReport.status == status)
        return query.order_by(ScheduledReport.created_at.desc(), ScheduledReport.id.desc()).all()

    def get_schedule(self, schedule_id: str, user: User) -> ScheduledReport:
        schedule = (
            self.db.query(ScheduledReport)
            .filter(ScheduledReport.id == schedule_id, ScheduledReport.user_id == user.id)
            .first()
        )
        if schedule is None:
            raise NotFoundError("Schedule not found")
        return schedule

    def _validate_choices(self, frequency=None, export_format=None, template=None) -> None:
        if frequency is not None and frequency not in SUPPORTED_FREQUENCIES:
            raise ValueError(f"Unsupported frequency: {frequency}")
        if export_format is not None and export_format not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported format: {export_format}")
        if template and template not in SUPPORTED_TEMPLATES:
            raise ValueError(f"Unsupported template: {template}")

    def _resolve_cron(self, frequency: str, options: dict, cron_expression: Optional[str]) -> str:
        if cron_expression:
            if not is_valid_cron_expression(cron_expression):
                raise ValueError("Invalid cron expression")
            return cron_expression
        return generate_cron_expression(frequency, options)

    def create_schedule(
        self, data: ScheduleCreate, user: User, request: Optional[Request] = None
    ) -> ScheduledReport:
        if not data.name or not data.frequency or not data.format:
            raise ValueError("Name, frequency, and format are required")
        self._validate_choices(data.frequency, data.format, data.template)
        if self.count_active(user) >= settings.max_schedules_per_user:
            raise ValueError(
                f"Maximum schedules per user ({settings.max_schedules_per_user}) exceeded"
            )

        options = data.schedule_options.model_dump(exclude_none=True)
        cron_expression = self._resolve_cron(data.frequency, options, data.cron_expression)

        schedule = ScheduledReport(
            id=generate_prefixed_id("schedule"),
            user_id=user.id,
            name=data.name,
            description=data.description or "",
            frequency=data.frequency,
            cron_expression=cron_expression,
            schedule_options=options,
            format=data.format,
            template=data.template,
            filters=data.filters.model_dump(mode="json", exclude_none=True),
            recipients=data.recipients,
            status=ScheduleStatus.ACTIVE.value,
            next_run=calculate_next_run(cron_expression),
        )
        self.db.add(schedule)
        self.db.commit()
        self.db.refresh(schedule)

        if self.scheduler is not None:
            self.scheduler.add_schedule(schedule)
        self._audit(user, schedule, "create", request)
        logger.info(f"Schedule {schedule.id} created by {user.username} ({cron_expression})")
        return schedule

    def update_schedule(
        self, schedule_id: str, data: ScheduleUpdate, user: User, request: Optional[Request] = None
    ) -> ScheduledReport:
        schedule = self.get_schedule(schedule_id, user)
        changes = data.model_dump(exclude_unset=True)
        self._validate_choices(changes.get("frequency"), changes.get("format"), changes.get("template"))

        if (
            changes.get("status") == ScheduleStatus.ACTIVE.value
            and schedule.status != ScheduleStatus.ACTIVE.value
            and self.count_active(user) >= settings.max_schedules_per_user
        ):
            raise ValueError(
                f"Maximum schedules per user ({settings.max_schedules_per_user}) exceeded"
            )

        for field in ("name", "description", "format", "template", "recipients", "status"):
            if field in changes:
                setattr(schedule, field, changes[field])
        if "filters" in changes:
            schedule.filters = data.filters.model_dump(mode="json", exclude_none=True) if data.filters else {}

        if "schedule_options" in changes:
            schedule.schedule_options = (
                data.schedule_options.model_dump(exclude_none=True) if data.schedule_options else {}
            )
        if changes.get("frequency") or changes.get("cron_expression") or "schedule_options" in changes:
            schedule.frequency = changes.get("frequency") or schedule.frequency
            schedule.cron_expression = self._resolve_cron(
                schedule.frequency, schedule.schedule_options or {}, changes.get("cron_expression")
            )
            schedule.next_run = calculate_next_run(schedule.cron_expression)

        schedule.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(schedule)

        if self.scheduler is not None:
            if schedule.status == ScheduleStatus.ACTIVE.value:
                self.scheduler.add_schedule(schedule)
            else:
                self.scheduler.remove_schedule(schedule.id)
        self._audit(user, schedule, "update", request, changes=sorted(changes))
        return schedule

    def delete_schedule(self, schedule_id: str, user: User, request: Optional[Request] = None) -> None:
        schedule = self.get_schedule(schedule_id, user)
        if self.scheduler is not None:
            self.scheduler.remove_schedule(schedule.id)
        self._audit(user, schedule, "delete", request)
        self.db.delete(schedule)
        self.db.commit()
        logger.info(f"Schedule {schedule_id} deleted by {user.username}")

    def list_executions(self, schedule_id: str, user: User, limit: int = 10) -> List[ScheduledReportExecution]:
        self.get_schedule(schedule_id, user)
        return (
            self.db.query(ScheduledReportExecution)
            .filter(ScheduledReportExecution.schedule_id == schedule_id)
            .order_by(ScheduledReportExecution.created_at.desc(), ScheduledReportExecution.id.desc())
            .limit(limit)
            .all()
        )

    def execute_now(self, schedule_id: str, user: User) -> ScheduledReportExecution:
        schedule = self.get_schedule(schedule_id, user)
        if schedule.status != ScheduleStatus.ACTIVE.value:
            raise ValueError("Schedule is not active")
        return self.execute(schedule)

    def execute(self, schedule: ScheduledReport, now: Optional[datetime] = None) -> ScheduledReportExecution:
        """
        Run the export pipeline for the schedule's owner and record the outcome.

        ``next_run`` advances whether or not the export succeeds.
        """
        now = now or datetime.utcnow()
        logger.info(f"Executing scheduled report {schedule.name} ({schedule.id})")
        execution = ScheduledReportExecution(
            schedule_id=schedule.id,
            execution_time=now,
            status=ExecutionStatus.RUNNING.value,
            created_at=now,
        )

        try:
            owner = self.db.query(User).filter(User.id == schedule.user_id).first()
            if owner is None:
                raise ValueError("User not found")
            export = ExportService(self.db).create_export(
                ExportRequest(
                    format=schedule.format,
                    template=schedule.template,
                    filters=RevenueFilters.model_validate(schedule.filters or {}),
                ),
                owner,
            )
            execution.export_id = export.id
            execution.file_name = export.file_name
            execution.file_size = export.file_size
            execution.record_count = export.record_count
            execution.status = ExecutionStatus.COMPLETED.value
            self._notify(schedule, execution)
        except Exception as e:
            logger.error(f"Error executing scheduled report {schedule.id}: {e}")
            self.db.rollback()
            execution.status = ExecutionStatus.FAILED.value
            execution.error_message = getattr(e, "message", None) or getattr(e, "detail", None) or str(e)

        schedule.last_run = now
        schedule.next_run = calculate_next_run(schedule.cron_expression, now)
        self.db.add(execution)
        self.db.commit()
        self.db.refresh(execution)
        return execution

    def due_schedules(self, now: Optional[datetime] = None) -> List[ScheduledReport]:
        now = now or datetime.utcnow()
        return (
            self.db.query(ScheduledReport)
            .filter(
                ScheduledReport.status == ScheduleStatus.ACTIVE.value,
                ScheduledReport.next_run <= now,
            )
            .order_by(ScheduledReport.next_run)
            .all()
        )

    def run_due_schedules(self, now: Optional[datetime] = None) -> List[ScheduledReportExecution]:
        now = now or datetime.utcnow()
        return [self.execute(schedule, now) for schedule in self.due_schedules(now)]

    def _notify(self, schedule: ScheduledReport, execution: ScheduledReportExecution) -> None:
        recipients = schedule.recipients or []
        if recipients:
            logger.info(
                f"Report {execution.file_name} for schedule {schedule.id} ready for {', '.join(recipients)}"
            )

    def _audit(self, user, schedule, action, request, changes=None) -> None:
        new_values = {"action": action, "name": schedule.name, "cron_expression": schedule.cron_expression}
        if changes is not None:
            new_values["changed_fields"] = changes
        safe_log_action(
            self.db,
            user_id=user.id,
            action_type=AuditActionType.SCHEDULE_MANAGEMENT.value,
            table_name="scheduled_reports",
            record_id=schedule.id,
            new_values=new_values,
            request=request,
        )
