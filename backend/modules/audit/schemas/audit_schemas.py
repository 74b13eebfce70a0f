# backend/modules/audit/schemas/audit_schemas.py

from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator


class AuditLogFilter(BaseModel):
    """Query filters for the audit log listing"""

    user_id: Optional[int] = None
    action_type: Optional[str] = None
    table_name: Optional[str] = None
    record_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=500)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class AuditLogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_username: Optional[str] = None
    action_type: str
    table_name: Optional[str] = None
    record_id: Optional[str] = None
    old_values: Optional[Any] = None
    new_values: Optional[Any] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    pagination: PaginationInfo
