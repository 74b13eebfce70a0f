# backend/modules/exports/services/export_service.py

"""
Dashboard export pipeline.

An export moves through preparing (0) → fetching (20) → processing (60)
→ writing (80) → completed (100). Each step is committed so that
``GET /exports/{id}`` reports progress while the file is produced.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import logging
import os
import re

from fastapi import Request
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import NotFoundError, PermissionError, ValidationError
from core.identifiers import generate_prefixed_id
from modules.audit.models.audit_models import AuditActionType
from modules.audit.services.audit_service import safe_log_action
from modules.revenue.schemas.revenue_schemas import DateRangeType, RevenueFilters, SortOrder
from modules.revenue.services.aggregation_service import calculate_kpis
from modules.revenue.services.filter_service import (
    apply_filters,
    sort_records,
    to_source_query,
    validate_filters,
)
from modules.revenue.services.master_view_service import RevenueMasterViewService, record_to_json
from modules.users.models.user_models import User

from ..constants import (
    CUSTOM_TEMPLATE,
    EXPORT_FORMATS,
    EXPORT_TEMPLATES,
    FILE_EXTENSIONS,
    FILE_PREFIX,
)
from ..models.export_models import ExportHistory, ExportStatus
from ..schemas.export_schemas import ExportRequest
from .export_writers import WRITERS

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class ExportError(Exception):
    """Raised when an export fails after its history row was created"""

    def __init__(self, export_id: str, message: str):
        super().__init__(message)
        self.export_id = export_id
        self.message = message


def filter_summary(filters: Optional[RevenueFilters]) -> str:
    parts = []
    if filters is not None:
        date_range = filters.date_range
        if date_range is not None:
            if date_range.type == DateRangeType.CUSTOM and date_range.start_date and date_range.end_date:
                parts.append(f"custom-{date_range.start_date}-to-{date_range.end_date}")
            else:
                parts.append(date_range.type.value)
        if filters.companies and filters.companies.selected_companies:
            parts.append(f"{len(filters.companies.selected_companies)}-companies")
        if filters.payment_methods and filters.payment_methods.selected_methods:
            parts.append(f"{len(filters.payment_methods.selected_methods)}-methods")
        if filters.employees and filters.employees.selected_employees:
            parts.append(f"{len(filters.employees.selected_employees)}-employees")
    return "-".join(parts) if parts else "all-data"


def generate_file_name(
    export_format: str,
    template: Optional[str],
    username: str,
    filters: Optional[RevenueFilters],
    now: datetime,
) -> str:
    """``revenue-dashboard_{template}_{user}_{filters}_{YYYY-MM-DD}_{HH-MM-SS}.{ext}``"""
    safe_user = _UNSAFE_FILENAME_CHARS.sub("-", username).strip("-") or "user"
    return (
        f"{FILE_PREFIX}_{template or CUSTOM_TEMPLATE}_{safe_user}_{filter_summary(filters)}"
        f"_{now.strftime('%Y-%m-%d')}_{now.strftime('%H-%M-%S')}.{FILE_EXTENSIONS[export_format]}"
    )


class ExportService:
    def __init__(self, db: Session, export_dir: Optional[str] = None):
        self.db = db
        self.export_dir = export_dir or settings.export_dir

    def count_today(self, user: User, now: Optional[datetime] = None) -> int:
        now = now or datetime.utcnow()
        day_start = datetime(now.year, now.month, now.day)
        return (
            self.db.query(ExportHistory)
            .filter(
                ExportHistory.user_id == user.id,
                ExportHistory.created_at >= day_start,
                ExportHistory.created_at < day_start + timedelta(days=1),
            )
            .count()
        )

    def validate_request(self, request: ExportRequest, user: User, now: Optional[datetime] = None) -> None:
        if request.format not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {request.format}")
        if request.template and request.template not in EXPORT_TEMPLATES:
            raise ValueError(f"Unsupported export template: {request.template}")

        errors = validate_filters(request.filters)
        if errors:
            raise ValidationError("Invalid export filters", details=errors)

        if self.count_today(user, now) >= settings.export_daily_limit:
            raise ValueError("Export limit exceeded. Please try again tomorrow.")

    def fetch_records(self, filters: RevenueFilters, now: Optional[datetime] = None) -> List[Any]:
        """Newest matching master records, capped at the per-export maximum"""
        now = now or datetime.utcnow()
        records = RevenueMasterViewService(self.db).build_records(to_source_query(filters, now))
        filtered = apply_filters(records, filters, now)
        ordered = sort_records(filtered, "created_at", SortOrder.DESC)
        return ordered[: settings.export_max_records]

    def create_export(
        self, request: ExportRequest, user: User, http_request: Optional[Request] = None
    ) -> ExportHistory:
        now = datetime.utcnow()
        self.validate_request(request, user, now)

        template = EXPORT_TEMPLATES.get(request.template) if request.template else None
        filters_data = request.filters.model_dump(mode="json", exclude_none=True)
        export = ExportHistory(
            id=generate_prefixed_id("export"),
            user_id=user.id,
            export_type="dashboard",
            format=request.format,
            template_name=request.template,
            filters=filters_data,
            status=ExportStatus.PREPARING.value,
            progress=0,
            message="Preparing export",
            created_at=now,
            updated_at=now,
        )
        self.db.add(export)
        self.db.commit()

        try:
            self._set_progress(export, ExportStatus.FETCHING, 20, "Fetching dashboard data")
            records = self.fetch_records(request.filters, now)

            self._set_progress(export, ExportStatus.PROCESSING, 60, "Processing records")
            rows = [record_to_json(record) for record in records]
            metadata = {
                "exportDate": now.isoformat() + "Z",
                "template": request.template or CUSTOM_TEMPLATE,
                "templateTitle": template["title"] if template else "Revenue Dashboard Export",
                "recordCount": len(rows),
                "filters": filters_data,
                "kpis": calculate_kpis(records).model_dump(),
            }

            self._set_progress(export, ExportStatus.WRITING, 80, "Writing export file")
            os.makedirs(self.export_dir, exist_ok=True)
            file_name = generate_file_name(request.format, request.template, user.username, request.filters, now)
            file_path = os.path.join(self.export_dir, file_name)
            WRITERS[request.format](file_path, rows, metadata)

            export.file_name = file_name
            export.file_path = file_path
            export.file_size = os.path.getsize(file_path)
            export.record_count = len(rows)
            export.export_metadata = {
                "templateTitle": metadata["templateTitle"],
                "sections": template["sections"] if template else [],
                "charts": template["charts"] if template else [],
                "kpis": metadata["kpis"],
            }
            export.completed_at = datetime.utcnow()
            export.expires_at = export.completed_at + timedelta(days=settings.export_retention_days)
            self._set_progress(export, ExportStatus.COMPLETED, 100, "Export completed")
        except Exception as e:
            logger.error(f"Export {export.id} failed: {e}")
            self.db.rollback()
            export.status = ExportStatus.ERROR.value
            export.progress = 0
            export.message = "Export failed"
            export.error_message = str(e)
            self.db.commit()
            raise ExportError(export.id, str(e))

        safe_log_action(
            self.db,
            user_id=user.id,
            action_type=AuditActionType.EXPORT_DATA.value,
            table_name="export_history",
            record_id=export.id,
            new_values={
                "format": export.format,
                "template": export.template_name,
                "record_count": export.record_count,
            },
            request=http_request,
        )
        logger.info(f"Export {export.id} completed for {user.username}: {export.record_count} records")
        return export

    def _set_progress(self, export: ExportHistory, status: ExportStatus, progress: int, message: str) -> None:
        export.status = status.value
        export.progress = progress
        export.message = message
        export.updated_at = datetime.utcnow()
        self.db.commit()

    def get_export(self, export_id: str, user: User) -> ExportHistory:
        export = self.db.query(ExportHistory).filter(ExportHistory.id == export_id).first()
        if export is None:
            raise NotFoundError("Export not found")
        if export.user_id != user.id:
            raise PermissionError("Access denied")
        return export

    def history(self, user: User, limit: int = 10) -> List[ExportHistory]:
        return (
            self.db.query(ExportHistory)
            .filter(ExportHistory.user_id == user.id)
            .order_by(ExportHistory.created_at.desc(), ExportHistory.id.desc())
            .limit(limit)
            .all()
        )

    def resolve_download(self, export_id: str, user: User) -> ExportHistory:
        export = self.get_export(export_id, user)
        if (
            export.status != ExportStatus.COMPLETED.value
            or not export.file_path
            or not os.path.exists(export.file_path)
        ):
            raise NotFoundError("Export file not found")
        return export

    def cleanup_expired_exports(self, now: Optional[datetime] = None) -> int:
        """Delete expired export files and mark their rows ``deleted``"""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(days=settings.export_retention_days)
        expired = (
            self.db.query(ExportHistory)
            .filter(
                ExportHistory.status != ExportStatus.DELETED.value,
                ExportHistory.created_at < cutoff,
            )
            .all()
        )
        for export in expired:
            if export.file_path and os.path.exists(export.file_path):
                try:
                    os.remove(export.file_path)
                except OSError as e:
                    logger.warning(f"Could not remove export file {export.file_path}: {e}")
                    continue
            export.status = ExportStatus.DELETED.value
            export.message = "Export expired"
        self.db.commit()

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired exports")
        return len(expired)
