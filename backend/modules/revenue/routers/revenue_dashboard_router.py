# backend/modules/revenue/routers/revenue_dashboard_router.py

from datetime import datetime
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import ValidationError
from core.permissions import Permission, require_permission

from ..schemas.revenue_schemas import DashboardQueryRequest, DashboardQueryResponse
from ..services.aggregation_service import build_charts, calculate_kpis
from ..services.filter_service import (
    apply_filters,
    paginate,
    sort_records,
    to_source_query,
    validate_dashboard_request,
)
from ..services.master_view_service import RevenueMasterViewService, record_to_json

router = APIRouter(prefix="/revenue-dashboard", tags=["Revenue Dashboard"])
logger = logging.getLogger(__name__)


@router.post("/query", response_model=DashboardQueryResponse)
async def query_dashboard(
    payload: DashboardQueryRequest,
    db: Session = Depends(get_db),
    current_user=Depends(require_permission(Permission.VIEW_DASHBOARD)),
):
    """
    Filtered, sorted and paginated revenue master records.

    KPIs and charts are computed over every record matching the filters,
    not just the returned page.
    """
    errors = validate_dashboard_request(payload)
    if errors:
        raise ValidationError("Invalid dashboard query", details=errors)

    try:
        started = time.perf_counter()
        now = datetime.utcnow()
        records = RevenueMasterViewService(db).build_records(to_source_query(payload.filters, now))
        filtered = apply_filters(records, payload.filters, now)
        ordered = sort_records(filtered, payload.sort_field, payload.sort_order)
        page, pagination = paginate(ordered, payload.page, payload.page_size)
        kpis = calculate_kpis(filtered)

        return DashboardQueryResponse(
            data=[record_to_json(record) for record in page],
            pagination=pagination,
            kpis=kpis,
            charts=build_charts(filtered, kpis),
            metadata={
                "generated_at": now.isoformat() + "Z",
                "query_time_ms": round((time.perf_counter() - started) * 1000, 2),
                "sort_field": payload.sort_field,
                "sort_order": payload.sort_order.value,
                "filters_applied": payload.filters.model_dump(exclude_none=True),
            },
        )

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error querying revenue dashboard: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to query revenue dashboard",
        )
