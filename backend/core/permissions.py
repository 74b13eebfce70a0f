# backend/core/permissions.py

"""
Role based permissions for dashboard features.
"""

from enum import Enum
from typing import Dict, Iterable, Optional, Set
import logging

from fastapi import Depends

from .auth import get_current_user
from .exceptions import PermissionError

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """System permissions"""

    # Dashboard access
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_REVENUE_ANALYSIS = "view_revenue_analysis"
    VIEW_COMMISSION_ANALYSIS = "view_commission_analysis"

    # Export and reporting
    EXPORT_DATA = "export_data"
    SCHEDULE_REPORTS = "schedule_reports"
    VIEW_EXPORT_HISTORY = "view_export_history"
    MANAGE_TEMPLATES = "manage_templates"

    # Administrative
    MANAGE_USERS = "manage_users"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    MANAGE_DATA_SYNC = "manage_data_sync"
    MANAGE_EXTERNAL_DATA = "manage_external_data"


ROLE_PERMISSIONS = {
    "admin": set(Permission),
    "user": {
        Permission.VIEW_DASHBOARD,
        Permission.VIEW_REVENUE_ANALYSIS,
        Permission.VIEW_COMMISSION_ANALYSIS,
        Permission.EXPORT_DATA,
        Permission.SCHEDULE_REPORTS,
        Permission.VIEW_EXPORT_HISTORY,
        Permission.MANAGE_TEMPLATES,
    },
}


def permissions_for_role(role: str) -> Set[Permission]:
    return ROLE_PERMISSIONS.get(role, set())


# Shown on the dashboard access summary
DASHBOARD_PERMISSIONS = (
    Permission.VIEW_DASHBOARD,
    Permission.VIEW_REVENUE_ANALYSIS,
    Permission.VIEW_COMMISSION_ANALYSIS,
    Permission.EXPORT_DATA,
    Permission.SCHEDULE_REPORTS,
    Permission.VIEW_AUDIT_LOGS,
)


def permission_checks(user, names: Optional[Iterable[str]] = None) -> Dict[str, bool]:
    """
    Map permission names to whether ``user`` holds them.

    Defaults to every known permission; unknown names map to False.
    """
    granted = {permission.value for permission in permissions_for_role(getattr(user, "role", None))}
    if names is None:
        names = [permission.value for permission in Permission]
    return {name: name in granted for name in names}


def has_permission(user, permission: Permission) -> bool:
    return permission in permissions_for_role(getattr(user, "role", None))


def check_permission(user, permission: Permission) -> None:
    """
    Check if user has required permission

    Raises:
        PermissionError: If user lacks permission
    """
    if not has_permission(user, permission):
        logger.warning(
            f"User {getattr(user, 'username', None)} lacks permission {permission.value}"
        )
        raise PermissionError(f"Missing required permission: {permission.value}")


def require_permission(permission: Permission):
    """Dependency factory enforcing a single permission on the current user."""

    async def dependency(current_user=Depends(get_current_user)):
        check_permission(current_user, permission)
        return current_user

    return dependency
