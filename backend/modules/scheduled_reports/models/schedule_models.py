# backend/modules/scheduled_reports/models/schedule_models.py

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import enum

from core.database import Base
from core.mixins import CreatedAtMixin, TimestampMixin


class ScheduleStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class ExecutionStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScheduledReport(Base, TimestampMixin):
    __tablename__ = "scheduled_reports"

    id = Column(String(100), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    frequency = Column(String(20), nullable=False, index=True)
    cron_expression = Column(String(255), nullable=False)
    schedule_options = Column(JSON, default=dict)
    format = Column(String(20), nullable=False)
    template = Column(String(100), nullable=True)
    filters = Column(JSON, default=dict)
    recipients = Column(JSON, default=list)
    status = Column(String(20), nullable=False, default=ScheduleStatus.ACTIVE.value, index=True)
    last_run = Column(DateTime, nullable=True)
    next_run = Column(DateTime, nullable=False, index=True)

    user = relationship("User")
    executions = relationship(
        "ScheduledReportExecution",
        back_populates="schedule",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "frequency IN ('daily', 'weekly', 'monthly', 'quarterly', 'yearly')",
            name="ck_scheduled_reports_frequency",
        ),
        CheckConstraint(
            "format IN ('pdf', 'excel', 'csv', 'json')", name="ck_scheduled_reports_format"
        ),
        CheckConstraint("status IN ('active', 'paused')", name="ck_scheduled_reports_status"),
    )

    def __repr__(self):
        return f"<ScheduledReport(id='{self.id}', name='{self.name}', cron='{self.cron_expression}')>"


class ScheduledReportExecution(Base, CreatedAtMixin):
    __tablename__ = "scheduled_report_executions"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(
        String(100), ForeignKey("scheduled_reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    execution_time = Column(DateTime, nullable=False)
    export_id = Column(String(100), nullable=True)
    file_name = Column(String(500), nullable=True)
    file_size = Column(Integer, nullable=True)
    record_count = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, index=True)
    error_message = Column(Text, nullable=True)

    schedule = relationship("ScheduledReport", back_populates="executions")

    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'completed', 'failed')", name="ck_scheduled_report_executions_status"
        ),
        Index("idx_scheduled_report_executions_schedule_created", "schedule_id", "created_at"),
    )
