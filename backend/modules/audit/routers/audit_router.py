# backend/modules/audit/routers/audit_router.py

from datetime import date
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from core.database import get_db
from core.permissions import Permission, require_permission

from ..schemas.audit_schemas import AuditLogFilter, AuditLogListResponse
from ..services.audit_service import AuditService

router = APIRouter(prefix="/audit-logs", tags=["Audit Logs"])
logger = logging.getLogger(__name__)


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    user_id: Optional[int] = Query(None),
    action_type: Optional[str] = Query(None),
    table_name: Optional[str] = Query(None),
    record_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.VIEW_AUDIT_LOGS)),
):
    """
    List audit log entries, newest first.

    Supports filtering by user, action type, table and date range.
    """
    try:
        filters = AuditLogFilter(
            user_id=user_id,
            action_type=action_type,
            table_name=table_name,
            record_id=record_id,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
        )
        return AuditService(db).list_logs(filters)

    except (ValueError, PydanticValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error listing audit logs: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch audit logs",
        )


@router.get("/export")
async def export_audit_logs(
    format: str = Query("csv"),
    user_id: Optional[int] = Query(None),
    action_type: Optional[str] = Query(None),
    table_name: Optional[str] = Query(None),
    record_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.VIEW_AUDIT_LOGS)),
):
    """Download the filtered audit trail as CSV or JSON."""
    try:
        filters = AuditLogFilter(
            user_id=user_id,
            action_type=action_type,
            table_name=table_name,
            record_id=record_id,
            start_date=start_date,
            end_date=end_date,
        )
        export = AuditService(db).export_logs(filters, format)

    except (ValueError, PydanticValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error exporting audit logs: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to export audit logs",
        )

    logger.info(f"Audit logs exported by {current_user.username}")
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.file_name}"'},
    )
