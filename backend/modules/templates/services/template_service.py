# backend/modules/templates/services/template_service.py

"""
Export template management.

Users see their own templates plus the system defaults. Defaults are
read-only for everyone; only admins may create them.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import json
import logging

from fastapi import Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import NotFoundError, PermissionError
from core.identifiers import generate_prefixed_id
from modules.audit.models.audit_models import AuditActionType
from modules.audit.services.audit_service import safe_log_action
from modules.users.models.user_models import User, UserRole

from ..constants import (
    DEFAULT_TEMPLATES,
    PAGE_ORIENTATIONS,
    SUPPORTED_FORMATS,
    TEMPLATE_EXPORT_FORMATS,
    TEMPLATE_EXPORT_VERSION,
    TEMPLATE_TYPES,
)
from ..models.template_models import ExportTemplate, TemplateStatus
from ..schemas.template_schemas import TemplateCreate, TemplateUpdate

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "type",
    "content",
    "supported_formats",
    "sections",
    "charts",
    "formatting",
    "layout",
    "status",
)


def validate_template_content(content: Dict[str, Any]) -> List[str]:
    errors = []
    if not isinstance(content.get("sections"), list):
        errors.append("Template must have a sections array")

    formatting = content.get("formatting") or {}
    header_style = formatting.get("headerStyle")
    if header_style is not None and not (isinstance(header_style, dict) and header_style.get("fontSize")):
        errors.append("Header style must have fontSize property")

    layout = content.get("layout") or {}
    orientation = layout.get("pageOrientation")
    if orientation is not None and orientation not in PAGE_ORIENTATIONS:
        errors.append("Page orientation must be portrait or landscape")
    return errors


class TemplateService:
    def __init__(self, db: Session):
        self.db = db

    def _visible(self, user: User):
        return self.db.query(ExportTemplate).filter(
            or_(ExportTemplate.user_id == user.id, ExportTemplate.is_default.is_(True)),
            ExportTemplate.status != TemplateStatus.DELETED.value,
        )

    def count_active(self, user: User) -> int:
        return (
            self.db.query(ExportTemplate)
            .filter(
                ExportTemplate.user_id == user.id,
                ExportTemplate.status == TemplateStatus.ACTIVE.value,
            )
            .count()
        )

    def list_templates(
        self, user: User, template_type: Optional[str] = None, include_defaults: bool = True
    ) -> List[ExportTemplate]:
        if include_defaults:
            query = self._visible(user)
        else:
            query = self.db.query(ExportTemplate).filter(
                ExportTemplate.user_id == user.id,
                ExportTemplate.status != TemplateStatus.DELETED.value,
            )
        if template_type:
            query = query.filter(ExportTemplate.type == template_type)
        return query.order_by(
            ExportTemplate.is_default.desc(), ExportTemplate.created_at.desc(), ExportTemplate.id.desc()
        ).all()

    def get_template(self, template_id: str, user: User) -> ExportTemplate:
        template = self._visible(user).filter(ExportTemplate.id == template_id).first()
        if template is None:
            raise NotFoundError("Template not found")
        return template

    def _validate(self, data: Dict[str, Any], user: User) -> None:
        if not data.get("name") or not data.get("type"):
            raise ValueError("Template name and type are required")
        if data["type"] not in TEMPLATE_TYPES:
            raise ValueError(f"Invalid template type: {data['type']}")
        for fmt in data.get("supported_formats") or []:
            if fmt not in SUPPORTED_FORMATS:
                raise ValueError(f"Unsupported format: {fmt}")
        if data.get("content") is not None:
            size = len(json.dumps(data["content"]).encode("utf-8"))
            if size > settings.max_template_size_bytes:
                raise ValueError(
                    f"Template content exceeds maximum size ({settings.max_template_size_bytes} bytes)"
                )

    def create_template(
        self, data: TemplateCreate, user: User, request: Optional[Request] = None
    ) -> ExportTemplate:
        values = data.model_dump()
        self._validate(values, user)
        if values["is_default"] and user.role != UserRole.ADMIN.value:
            raise PermissionError("Only admins can create default templates")
        if not values["is_default"] and self.count_active(user) >= settings.max_templates_per_user:
            raise ValueError(
                f"Maximum templates per user ({settings.max_templates_per_user}) exceeded"
            )

        template = ExportTemplate(
            id=generate_prefixed_id("template"),
            user_id=None if values["is_default"] else user.id,
            name=values["name"],
            description=values["description"] or "",
            type=values["type"],
            content=values["content"] or {},
            supported_formats=values["supported_formats"] or list(SUPPORTED_FORMATS),
            sections=values["sections"],
            charts=values["charts"],
            formatting=values["formatting"],
            layout=values["layout"],
            is_default=values["is_default"],
            status=TemplateStatus.ACTIVE.value,
        )
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)

        self._audit(user, template, "create", request, new_values={"name": template.name, "type": template.type})
        logger.info(f"Template {template.id} created by {user.username}")
        return template

    def update_template(
        self, template_id: str, data: TemplateUpdate, user: User, request: Optional[Request] = None
    ) -> ExportTemplate:
        template = self.get_template(template_id, user)
        if template.is_default:
            raise PermissionError("Cannot modify default templates")

        changes = data.model_dump(exclude_unset=True)
        merged = {field: getattr(template, field) for field in EDITABLE_FIELDS}
        merged.update(changes)
        self._validate(merged, user)

        old_values = {field: getattr(template, field) for field in changes}
        for field, value in changes.items():
            if field in EDITABLE_FIELDS:
                setattr(template, field, value)
        template.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(template)

        self._audit(user, template, "update", request, old_values=old_values, new_values=changes)
        return template

    def delete_template(self, template_id: str, user: User, request: Optional[Request] = None) -> None:
        template = self.get_template(template_id, user)
        if template.is_default:
            raise PermissionError("Cannot delete default templates")
        template.status = TemplateStatus.DELETED.value
        self.db.commit()
        self._audit(user, template, "delete", request, old_values={"name": template.name})

    def duplicate_template(
        self, template_id: str, user: User, name: Optional[str] = None, request: Optional[Request] = None
    ) -> ExportTemplate:
        source = self.get_template(template_id, user)
        return self.create_template(
            TemplateCreate(
                name=name or f"{source.name} (Copy)",
                description=source.description,
                type=source.type,
                content=source.content,
                supported_formats=source.supported_formats,
                sections=source.sections or [],
                charts=source.charts or [],
                formatting=source.formatting or {},
                layout=source.layout or {},
                is_default=False,
            ),
            user,
            request,
        )

    def export_template(self, template_id: str, user: User, export_format: str = "json") -> Dict[str, Any]:
        if export_format not in TEMPLATE_EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {export_format}")
        template = self.get_template(template_id, user)
        return {
            "template": {
                "id": template.id,
                "name": template.name,
                "description": template.description,
                "type": template.type,
                "content": template.content,
                "supportedFormats": template.supported_formats,
                "sections": template.sections,
                "charts": template.charts,
                "formatting": template.formatting,
                "layout": template.layout,
                "isDefault": template.is_default,
                "createdAt": template.created_at.isoformat() if template.created_at else None,
                "updatedAt": template.updated_at.isoformat() if template.updated_at else None,
            },
            "metadata": {
                "exportedAt": datetime.utcnow().isoformat() + "Z",
                "exportedBy": user.id,
                "format": export_format,
                "version": TEMPLATE_EXPORT_VERSION,
            },
        }

    def import_template(
        self, template_data: Dict[str, Any], user: User, request: Optional[Request] = None
    ) -> ExportTemplate:
        if not template_data.get("name") or not template_data.get("type"):
            raise ValueError("Invalid template data: missing required fields")

        content = template_data.get("content") or {
            "sections": template_data.get("sections"),
            "formatting": template_data.get("formatting"),
            "layout": template_data.get("layout"),
        }
        errors = validate_template_content(content)
        if errors:
            raise ValueError(f"Template validation failed: {', '.join(errors)}")

        return self.create_template(
            TemplateCreate(
                name=template_data["name"],
                description=template_data.get("description") or "",
                type=template_data["type"],
                content=template_data.get("content"),
                supported_formats=template_data.get("supportedFormats")
                or template_data.get("supported_formats"),
                sections=template_data.get("sections") or content.get("sections") or [],
                charts=template_data.get("charts") or [],
                formatting=template_data.get("formatting") or {},
                layout=template_data.get("layout") or {},
                is_default=False,
            ),
            user,
            request,
        )

    @staticmethod
    def default_templates() -> Dict[str, Dict[str, Any]]:
        return DEFAULT_TEMPLATES

    def _audit(self, user, template, action, request, old_values=None, new_values=None) -> None:
        safe_log_action(
            self.db,
            user_id=user.id,
            action_type=AuditActionType.TEMPLATE_MANAGEMENT.value,
            table_name="export_templates",
            record_id=template.id,
            old_values=_jsonable(old_values),
            new_values=dict(_jsonable(new_values) or {}, action=action),
            request=request,
        )


def _jsonable(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if values is None:
        return None
    return json.loads(json.dumps(values, default=str))
