# backend/modules/exports/schemas/export_schemas.py

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from modules.revenue.schemas.revenue_schemas import RevenueFilters


class ExportRequest(BaseModel):
    format: str
    template: Optional[str] = None
    filters: RevenueFilters = Field(default_factory=RevenueFilters)


class ExportResponse(BaseModel):
    id: str
    user_id: int
    export_type: str
    format: str
    template_name: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    record_count: Optional[int] = 0
    export_metadata: Optional[Dict[str, Any]] = None
    status: str
    progress: int
    message: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExportCreateResponse(BaseModel):
    success: bool = True
    export: ExportResponse


class ExportHistoryResponse(BaseModel):
    success: bool = True
    exports: List[ExportResponse]
    total: int
