# backend/modules/templates/routers/template_router.py

from datetime import datetime
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.permissions import Permission, require_permission

from ..constants import SUPPORTED_FORMATS, TEMPLATE_TYPES
from ..schemas.template_schemas import (
    DefaultTemplatesResponse,
    TemplateCreate,
    TemplateDuplicateRequest,
    TemplateImportRequest,
    TemplateLimits,
    TemplateListResponse,
    TemplateMutationResponse,
    TemplateResponse,
    TemplateUpdate,
)
from ..services.template_service import TemplateService

router = APIRouter(prefix="/templates", tags=["Export Templates"])
logger = logging.getLogger(__name__)

manage_templates = require_permission(Permission.MANAGE_TEMPLATES)


@router.get("/health")
async def templates_health(db: Session = Depends(get_db)):
    """Template service health check."""
    try:
        db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "service": "export-templates",
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }
    except Exception as e:
        logger.error(f"Template service health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "service": "export-templates"},
        )


@router.get("/defaults", response_model=DefaultTemplatesResponse)
async def get_default_templates(current_user=Depends(manage_templates)):
    """Built-in template definitions with the supported types and formats."""
    return DefaultTemplatesResponse(
        templates=TemplateService.default_templates(),
        types=TEMPLATE_TYPES,
        formats=SUPPORTED_FORMATS,
    )


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    type: Optional[str] = Query(None),
    include_defaults: bool = Query(True),
    db: Session = Depends(get_db),
    current_user=Depends(manage_templates),
):
    try:
        service = TemplateService(db)
        templates = service.list_templates(current_user, type, include_defaults)
        return TemplateListResponse(
            templates=[TemplateResponse.model_validate(t) for t in templates],
            limits=TemplateLimits(
                maxTemplatesPerUser=settings.max_templates_per_user,
                maxTemplateSize=settings.max_template_size_bytes,
                currentCount=service.count_active(current_user),
            ),
        )
    except Exception as e:
        logger.error(f"Error listing templates: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch templates",
        )


@router.post("", response_model=TemplateMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: TemplateCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(manage_templates),
):
    try:
        template = TemplateService(db).create_template(payload, current_user, request)
        return TemplateMutationResponse(
            message="Template created successfully",
            template=TemplateResponse.model_validate(template),
        )
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating template: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create template",
        )


@router.post("/import", response_model=TemplateMutationResponse, status_code=status.HTTP_201_CREATED)
async def import_template(
    payload: TemplateImportRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(manage_templates),
):
    """Create a template from a previously exported JSON document."""
    try:
        template = TemplateService(db).import_template(payload.template, current_user, request)
        return TemplateMutationResponse(
            message="Template imported successfully",
            template=TemplateResponse.model_validate(template),
        )
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error importing template: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to import template",
        )


@router.get("/{template_id}")
async def get_template(
    template_id: str,
    export: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(manage_templates),
):
    """
    Fetch a template.

    With ``?export=json`` the template is returned as a downloadable
    document that ``POST /templates/import`` accepts.
    """
    try:
        service = TemplateService(db)
        if export is not None:
            document = service.export_template(template_id, current_user, export)
            return JSONResponse(
                content=document,
                headers={"Content-Disposition": f'attachment; filename="{template_id}.json"'},
            )
        template = service.get_template(template_id, current_user)
        return {"success": True, "template": TemplateResponse.model_validate(template)}
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error fetching template {template_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch template",
        )


@router.put("/{template_id}", response_model=TemplateMutationResponse)
async def update_template(
    template_id: str,
    payload: TemplateUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(manage_templates),
):
    try:
        template = TemplateService(db).update_template(template_id, payload, current_user, request)
        return TemplateMutationResponse(
            message="Template updated successfully",
            template=TemplateResponse.model_validate(template),
        )
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating template {template_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update template",
        )


@router.delete("/{template_id}")
async def delete_template(
    template_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(manage_templates),
):
    try:
        TemplateService(db).delete_template(template_id, current_user, request)
        return {"success": True, "message": "Template deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting template {template_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete template",
        )


@router.post(
    "/{template_id}/duplicate",
    response_model=TemplateMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_template(
    template_id: str,
    request: Request,
    payload: Optional[TemplateDuplicateRequest] = None,
    db: Session = Depends(get_db),
    current_user=Depends(manage_templates),
):
    try:
        template = TemplateService(db).duplicate_template(
            template_id, current_user, payload.name if payload else None, request
        )
        return TemplateMutationResponse(
            message="Template duplicated successfully",
            template=TemplateResponse.model_validate(template),
        )
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error duplicating template {template_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to duplicate template",
        )
