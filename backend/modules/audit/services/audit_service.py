# backend/modules/audit/services/audit_service.py

"""
Audit trail writer and reader.

Writes are committed immediately so that an audit entry survives even if
the caller's own transaction is later rolled back.
"""

from datetime import datetime, time
from math import ceil
from typing import Any, Dict, NamedTuple, Optional, Tuple
import csv
import io
import json
import logging

from fastapi import Request
from sqlalchemy.orm import Session

from ..models.audit_models import AuditLog
from ..schemas.audit_schemas import (
    AuditLogFilter,
    AuditLogListResponse,
    AuditLogResponse,
    PaginationInfo,
)

logger = logging.getLogger(__name__)

AUDIT_EXPORT_FORMATS = ("csv", "json")
AUDIT_EXPORT_MAX_ROWS = 10000

AUDIT_CSV_COLUMNS = (
    ("ID", "id"),
    ("Timestamp", "created_at"),
    ("User ID", "user_id"),
    ("User Name", "user_username"),
    ("Table Name", "table_name"),
    ("Record ID", "record_id"),
    ("Action", "action_type"),
    ("Old Value", "old_values"),
    ("New Value", "new_values"),
    ("IP Address", "ip_address"),
    ("User Agent", "user_agent"),
)


class AuditExport(NamedTuple):
    content: str
    media_type: str
    file_name: str


def _csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def get_client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


class AuditService:
    """Service for recording and querying audit log entries"""

    def __init__(self, db: Session):
        self.db = db

    def log_action(
        self,
        user_id: Optional[int],
        action_type: str,
        table_name: Optional[str] = None,
        record_id: Optional[Any] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action_type=action_type,
            table_name=table_name,
            record_id=str(record_id) if record_id is not None else None,
            old_values=old_values,
            new_values=new_values,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent") if request else None,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info(f"Audit: user={user_id} action={action_type} table={table_name} record={record_id}")
        return entry

    def _filtered_query(self, filters: AuditLogFilter):
        query = self.db.query(AuditLog)

        if filters.user_id is not None:
            query = query.filter(AuditLog.user_id == filters.user_id)
        if filters.action_type:
            query = query.filter(AuditLog.action_type == filters.action_type)
        if filters.table_name:
            query = query.filter(AuditLog.table_name == filters.table_name)
        if filters.record_id:
            query = query.filter(AuditLog.record_id == filters.record_id)
        if filters.start_date:
            query = query.filter(AuditLog.created_at >= datetime.combine(filters.start_date, time.min))
        if filters.end_date:
            query = query.filter(AuditLog.created_at <= datetime.combine(filters.end_date, time.max))
        return query

    def list_logs(self, filters: AuditLogFilter) -> AuditLogListResponse:
        query = self._filtered_query(filters)
        total = query.count()
        entries = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
            .all()
        )

        return AuditLogListResponse(
            logs=[self._to_response(entry) for entry in entries],
            pagination=PaginationInfo(
                page=filters.page,
                limit=filters.limit,
                total=total,
                pages=ceil(total / filters.limit) if total else 0,
            ),
        )

    def export_logs(self, filters: AuditLogFilter, export_format: str = "csv") -> AuditExport:
        """Every entry matching ``filters``, newest first, as CSV or JSON.

        Pagination fields on ``filters`` are ignored.
        """
        if export_format not in AUDIT_EXPORT_FORMATS:
            raise ValueError('Invalid format. Use "csv" or "json"')

        entries = (
            self._filtered_query(filters)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(AUDIT_EXPORT_MAX_ROWS)
            .all()
        )
        logs = [self._to_response(entry) for entry in entries]
        file_name = f"audit-logs-{datetime.utcnow().strftime('%Y-%m-%d')}.{export_format}"

        if export_format == "json":
            content = json.dumps([log.model_dump(mode="json") for log in logs], indent=2)
            media_type = "application/json"
        else:
            buffer = io.StringIO()
            writer = csv.writer(buffer)
            writer.writerow([header for header, _ in AUDIT_CSV_COLUMNS])
            for log in logs:
                writer.writerow([_csv_value(getattr(log, field)) for _, field in AUDIT_CSV_COLUMNS])
            content = buffer.getvalue()
            media_type = "text/csv"

        logger.info(f"Exported {len(logs)} audit log entries as {export_format}")
        return AuditExport(content=content, media_type=media_type, file_name=file_name)

    def _to_response(self, entry: AuditLog) -> AuditLogResponse:
        response = AuditLogResponse.model_validate(entry)
        response.user_username = entry.user.username if entry.user else None
        return response


def safe_log_action(db: Session, *args, **kwargs) -> Tuple[bool, Optional[AuditLog]]:
    """Record an audit entry without letting a failure escape.

    Used where the audited operation must complete regardless of the audit
    trail, e.g. logout.
    """
    try:
        return True, AuditService(db).log_action(*args, **kwargs)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to write audit log entry: {e}")
        return False, None
