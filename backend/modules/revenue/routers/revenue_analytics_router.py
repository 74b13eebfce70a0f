# backend/modules/revenue/routers/revenue_analytics_router.py

from datetime import date, datetime
from math import ceil
from types import SimpleNamespace
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.exceptions import ServiceUnavailableError
from core.permissions import Permission, require_permission
from modules.audit.models.audit_models import AuditActionType
from modules.audit.services.audit_service import safe_log_action
from modules.zoho.services.zoho_client import (
    ZohoAnalyticsClient,
    ZohoError,
    ZohoRateLimitError,
    get_zoho_client,
)

from ..schemas.revenue_schemas import (
    CacheCleanupResponse,
    FilterOptionsResponse,
    RevenueAnalyticsResponse,
    SyncRequest,
    SyncStatusResponse,
)
from ..services.revenue_data_service import (
    DEFAULT_ZOHO_TABLE,
    RevenueDataService,
    normalize_external_record,
)

router = APIRouter(prefix="/revenue-analytics", tags=["Revenue Analytics"])
logger = logging.getLogger(__name__)


def parse_id_list(value: Optional[str], name: str) -> List[int]:
    """``"1,2, 3"`` -> ``[1, 2, 3]``"""
    if not value:
        return []
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise ValueError(f"{name} must be a comma separated list of ids")


@router.get("", response_model=RevenueAnalyticsResponse)
async def get_revenue_analytics(
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    companyIds: Optional[str] = Query(None),
    employeeIds: Optional[str] = Query(None),
    source: str = Query("cache", pattern="^(cache|zoho)$"),
    db: Session = Depends(get_db),
    zoho_client: ZohoAnalyticsClient = Depends(get_zoho_client),
    current_user=Depends(require_permission(Permission.VIEW_REVENUE_ANALYSIS)),
):
    """
    Revenue summary and records.

    ``source=cache`` reads the materialized cache table; ``source=zoho``
    reads the master view straight from Zoho Analytics.
    """
    try:
        if startDate and endDate and startDate > endDate:
            raise ValueError("startDate must be before or equal to endDate")
        company_ids = parse_id_list(companyIds, "companyIds")
        employee_ids = parse_id_list(employeeIds, "employeeIds")
        service = RevenueDataService(db)

        if source == "zoho":
            records = await _zoho_records(zoho_client, startDate, endDate, company_ids, employee_ids)
        else:
            records = service.get_cached_records(startDate, endDate, company_ids, employee_ids)

        return RevenueAnalyticsResponse(
            data=service.get_analytics(records),
            source=source,
            timestamp=datetime.utcnow(),
        )

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ZohoRateLimitError as e:
        raise ServiceUnavailableError(
            "Upstream rate limited by Zoho", retry_after=max(1, ceil(e.retry_after))
        )
    except ZohoError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error fetching revenue analytics: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch revenue analytics",
        )


async def _zoho_records(client, start, end, company_ids, employee_ids):
    if not client.configured:
        raise ValueError("Zoho Analytics is not configured")
    rows = []
    for raw in await client.read_rows(DEFAULT_ZOHO_TABLE):
        row = normalize_external_record(raw, DEFAULT_ZOHO_TABLE)
        if row is None:
            continue
        created = row.get("created_at")
        if start and (created is None or created.date() < start):
            continue
        if end and (created is None or created.date() > end):
            continue
        if company_ids and row.get("company_id") not in company_ids:
            continue
        if employee_ids and row.get("emp_id") not in employee_ids:
            continue
        rows.append(SimpleNamespace(**row))
    return rows


@router.get("/filter-options", response_model=FilterOptionsResponse)
async def get_filter_options(
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.VIEW_DASHBOARD)),
):
    """Distinct companies, employees, payment methods, statuses and partners in the cache."""
    try:
        return RevenueDataService(db).get_filter_options()
    except Exception as e:
        logger.error(f"Error fetching filter options: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch filter options",
        )


@router.post("/sync", response_model=SyncStatusResponse)
async def sync_revenue_cache(
    payload: SyncRequest,
    request: Request,
    db: Session = Depends(get_db),
    zoho_client: ZohoAnalyticsClient = Depends(get_zoho_client),
    current_user=Depends(require_permission(Permission.MANAGE_DATA_SYNC)),
):
    """Rebuild the revenue cache from the source tables or from Zoho (admin only)."""
    try:
        sync = await RevenueDataService(db).run_sync(payload, zoho_client)
        safe_log_action(
            db,
            current_user.id,
            AuditActionType.DATA_SYNC.value,
            table_name="revenue_master_view_cache",
            record_id=sync.id,
            new_values={
                "sync_type": sync.sync_type,
                "source": payload.source,
                "records_inserted": sync.records_inserted,
                "records_updated": sync.records_updated,
            },
            request=request,
        )
        return sync

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ZohoRateLimitError as e:
        raise ServiceUnavailableError(
            "Upstream rate limited by Zoho", retry_after=max(1, ceil(e.retry_after))
        )
    except ZohoError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error syncing revenue cache: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sync revenue data",
        )


@router.get("/sync-status", response_model=Optional[SyncStatusResponse])
async def get_sync_status(
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.VIEW_DASHBOARD)),
):
    """Most recent sync run, or null if the cache was never synced."""
    try:
        return RevenueDataService(db).latest_sync_status()
    except Exception as e:
        logger.error(f"Error fetching sync status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch sync status",
        )


@router.delete("/cache", response_model=CacheCleanupResponse)
async def clean_revenue_cache(
    request: Request,
    months: int = Query(settings.revenue_cache_retention_months, ge=1, le=120),
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.MANAGE_DATA_SYNC)),
):
    """Delete cached rows synced more than ``months`` months ago (admin only)."""
    try:
        deleted, cutoff = RevenueDataService(db).clean_old_data(months)
        safe_log_action(
            db,
            current_user.id,
            AuditActionType.DATA_SYNC.value,
            table_name="revenue_master_view_cache",
            old_values={"deleted": deleted, "cutoff": cutoff.isoformat()},
            request=request,
        )
        return CacheCleanupResponse(deleted=deleted, cutoff=cutoff)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error cleaning revenue cache: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clean revenue cache",
        )
