# backend/modules/auth/schemas/rbac_schemas.py

from typing import Dict, List

from pydantic import BaseModel


class UserPermissionsResponse(BaseModel):
    user_id: int
    username: str
    role: str
    permissions: List[str]
    checks: Dict[str, bool]


class DashboardAccessResponse(BaseModel):
    permissions: Dict[str, bool]
    canExportData: bool
    canScheduleReports: bool
    canViewAuditLogs: bool
