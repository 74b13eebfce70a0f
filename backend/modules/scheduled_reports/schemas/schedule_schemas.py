# backend/modules/scheduled_reports/schemas/schedule_schemas.py

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from modules.revenue.schemas.revenue_schemas import RevenueFilters


class ScheduleOptions(BaseModel):
    hour: Optional[int] = Field(None, ge=0, le=23)
    day_of_week: Optional[int] = Field(None, ge=0, le=6, alias="dayOfWeek")
    day_of_month: Optional[int] = Field(None, ge=1, le=31, alias="dayOfMonth")
    month: Optional[int] = Field(None, ge=1, le=12)

    class Config:
        populate_by_name = True


class ScheduleCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = ""
    frequency: Optional[str] = None
    format: Optional[str] = None
    template: Optional[str] = None
    filters: RevenueFilters = Field(default_factory=RevenueFilters)
    recipients: List[str] = Field(default_factory=list)
    schedule_options: ScheduleOptions = Field(default_factory=ScheduleOptions, alias="scheduleOptions")
    cron_expression: Optional[str] = Field(None, alias="cronExpression")

    class Config:
        populate_by_name = True


class ScheduleUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    frequency: Optional[str] = None
    format: Optional[str] = None
    template: Optional[str] = None
    filters: Optional[RevenueFilters] = None
    recipients: Optional[List[str]] = None
    schedule_options: Optional[ScheduleOptions] = Field(None, alias="scheduleOptions")
    cron_expression: Optional[str] = Field(None, alias="cronExpression")
    status: Optional[str] = Field(None, pattern="^(active|paused)$")

    class Config:
        populate_by_name = True


class ScheduleResponse(BaseModel):
    id: str
    user_id: int
    name: str
    description: Optional[str] = None
    frequency: str
    cron_expression: str
    schedule_options: Optional[Dict[str, Any]] = None
    format: str
    template: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None
    recipients: List[str] = Field(default_factory=list)
    status: str
    last_run: Optional[datetime] = None
    next_run: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExecutionResponse(BaseModel):
    id: int
    schedule_id: str
    execution_time: datetime
    export_id: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    record_count: Optional[int] = None
    status: str
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ScheduleLimits(BaseModel):
    maxSchedulesPerUser: int
    currentCount: int


class ScheduleListResponse(BaseModel):
    success: bool = True
    schedules: List[ScheduleResponse]
    limits: ScheduleLimits
    supportedFrequencies: List[str]
    supportedFormats: List[str]
    supportedTemplates: List[str]


class ScheduleMutationResponse(BaseModel):
    success: bool = True
    schedule: ScheduleResponse


class ExecutionListResponse(BaseModel):
    success: bool = True
    executions: List[ExecutionResponse]


class ExecuteNowResponse(BaseModel):
    success: bool
    message: str
    execution: ExecutionResponse
