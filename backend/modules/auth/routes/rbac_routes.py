"""
Permission introspection for the signed-in user.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query

from core.auth import get_current_user
from core.permissions import (
    DASHBOARD_PERMISSIONS,
    Permission,
    permission_checks,
    permissions_for_role,
)

from ..schemas.rbac_schemas import DashboardAccessResponse, UserPermissionsResponse

router = APIRouter(prefix="/rbac", tags=["RBAC"])
logger = logging.getLogger(__name__)


@router.get("/permissions", response_model=UserPermissionsResponse)
async def get_my_permissions(
    permissions: Optional[str] = Query(None, description="Comma separated permission names to check"),
    current_user=Depends(get_current_user),
):
    """
    Permissions granted to the current user's role.

    ``checks`` answers each name in ``permissions`` (every known permission
    when omitted).
    """
    names = None
    if permissions:
        names = [name.strip() for name in permissions.split(",") if name.strip()]

    granted = sorted(permission.value for permission in permissions_for_role(current_user.role))
    return UserPermissionsResponse(
        user_id=current_user.id,
        username=current_user.username,
        role=current_user.role,
        permissions=granted,
        checks=permission_checks(current_user, names),
    )


@router.get("/dashboard-access", response_model=DashboardAccessResponse)
async def get_dashboard_access(current_user=Depends(get_current_user)):
    checks = permission_checks(current_user, [p.value for p in DASHBOARD_PERMISSIONS])
    logger.debug(f"Dashboard access for {current_user.username}: {checks}")
    return DashboardAccessResponse(
        permissions=checks,
        canExportData=checks[Permission.EXPORT_DATA.value],
        canScheduleReports=checks[Permission.SCHEDULE_REPORTS.value],
        canViewAuditLogs=checks[Permission.VIEW_AUDIT_LOGS.value],
    )
