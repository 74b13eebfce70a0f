# backend/modules/exports/routers/export_router.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from core.database import get_db
from core.permissions import Permission, require_permission

from ..constants import MEDIA_TYPES
from ..schemas.export_schemas import (
    ExportCreateResponse,
    ExportHistoryResponse,
    ExportRequest,
    ExportResponse,
)
from ..services.export_service import ExportError, ExportService

router = APIRouter(prefix="/exports", tags=["Exports"])
logger = logging.getLogger(__name__)


@router.post("", response_model=ExportCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_export(
    payload: ExportRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.EXPORT_DATA)),
):
    """Generate an export file from the filtered revenue master records."""
    try:
        export = ExportService(db).create_export(payload, current_user, request)
        return ExportCreateResponse(export=ExportResponse.model_validate(export))
    except HTTPException:
        raise
    except ExportError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Export failed: {e.message}",
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating export: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create export",
        )


@router.get("/history", response_model=ExportHistoryResponse)
async def export_history(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.VIEW_EXPORT_HISTORY)),
):
    exports = ExportService(db).history(current_user, limit)
    return ExportHistoryResponse(
        exports=[ExportResponse.model_validate(e) for e in exports],
        total=len(exports),
    )


@router.get("/{export_id}", response_model=ExportResponse)
async def get_export_status(
    export_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.EXPORT_DATA)),
):
    return ExportResponse.model_validate(ExportService(db).get_export(export_id, current_user))


@router.get("/{export_id}/download")
async def download_export(
    export_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.EXPORT_DATA)),
):
    export = ExportService(db).resolve_download(export_id, current_user)
    logger.info(f"Export {export.id} downloaded by {current_user.username}")
    return FileResponse(
        export.file_path,
        media_type=MEDIA_TYPES.get(export.format, "application/octet-stream"),
        filename=export.file_name,
    )
