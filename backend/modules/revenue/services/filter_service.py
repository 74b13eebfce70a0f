# backend/modules/revenue/services/filter_service.py

"""
Dashboard filter validation and application.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from math import ceil
from typing import Any, List, Optional, Sequence, Tuple
import re

from ..schemas.revenue_schemas import (
    DashboardQueryRequest,
    DateRangeFilter,
    DateRangeType,
    PaginationMeta,
    RevenueFilters,
    SortOrder,
)
from .master_view_service import SourceQuery

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MIN_RANGE_DAYS = 1
MAX_RANGE_DAYS = 365 * 2
MIN_AMOUNT = 0
MAX_AMOUNT = 999999999.99
MAX_SELECTION_ITEMS = 100
MAX_PAGE = 10000
MAX_PAGE_SIZE = 1000
DEFAULT_PAGE_SIZE = 50

# Public sort names mapped onto record attributes
SORT_FIELDS = {
    "id": "dt_id",
    "disbursement_id": "disbursement_id",
    "payment_method_id": "payment_method_id",
    "created_at": "created_at",
    "updated_at": "updated_at",
    "amount": "amount",
    "company_id": "company_id",
    "employee_name": "employee_name",
    "commission_amount": "employee_commission",
    "referral_partner_name": "referral_partner_name",
    "vendor_name": "vendor_name",
    "payment_method_description": "payment_method_description",
}


def parse_iso_date(value: str) -> Optional[date]:
    if not value or not DATE_PATTERN.match(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def subtract_months(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    day = moment.day
    while True:
        try:
            return moment.replace(year=year, month=month + 1, day=day)
        except ValueError:
            day -= 1


def resolve_date_bounds(
    date_range: Optional[DateRangeFilter], now: Optional[datetime] = None
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Turn a date range filter into inclusive datetime bounds."""
    if date_range is None:
        return None, None
    now = now or datetime.utcnow()

    if date_range.type == DateRangeType.CUSTOM:
        start = parse_iso_date(date_range.start_date)
        end = parse_iso_date(date_range.end_date)
        if start is None or end is None:
            return None, None
        return datetime.combine(start, time.min), datetime.combine(end, time.max)
    if date_range.type == DateRangeType.LAST_30_DAYS:
        return now - timedelta(days=30), None
    if date_range.type == DateRangeType.LAST_90_DAYS:
        return now - timedelta(days=90), None
    if date_range.type == DateRangeType.LAST_12_MONTHS:
        return subtract_months(now, 12), None
    if date_range.type == DateRangeType.YTD:
        return datetime(now.year, 1, 1), None
    return None, None


def _validate_selection(name: str, values: Sequence[Any], errors: List[str]) -> None:
    if len(values) > MAX_SELECTION_ITEMS:
        errors.append(f"{name} cannot contain more than {MAX_SELECTION_ITEMS} items")
    for value in values:
        if isinstance(value, str) and not value.strip():
            errors.append(f"{name} cannot contain empty values")
            break
        if isinstance(value, int) and value < 0:
            errors.append(f"{name} cannot contain negative ids")
            break


def validate_filters(filters: RevenueFilters) -> List[str]:
    errors: List[str] = []

    date_range = filters.date_range
    if date_range is not None and date_range.type == DateRangeType.CUSTOM:
        if not date_range.start_date or not date_range.end_date:
            errors.append("Custom date range requires start_date and end_date")
        else:
            start = parse_iso_date(date_range.start_date)
            end = parse_iso_date(date_range.end_date)
            if start is None:
                errors.append("start_date must be a valid date in YYYY-MM-DD format")
            if end is None:
                errors.append("end_date must be a valid date in YYYY-MM-DD format")
            if start and end:
                if start > end:
                    errors.append("start_date must be before or equal to end_date")
                else:
                    span = (end - start).days
                    if span < MIN_RANGE_DAYS or span > MAX_RANGE_DAYS:
                        errors.append(
                            f"Date range must be between {MIN_RANGE_DAYS} and {MAX_RANGE_DAYS} days"
                        )

    amount_range = filters.amount_range
    if amount_range is not None:
        for label, value in (("min_amount", amount_range.min_amount), ("max_amount", amount_range.max_amount)):
            if value is not None and not (MIN_AMOUNT <= value <= MAX_AMOUNT):
                errors.append(f"{label} must be between {MIN_AMOUNT} and {MAX_AMOUNT}")
        if (
            amount_range.min_amount is not None
            and amount_range.max_amount is not None
            and amount_range.min_amount > amount_range.max_amount
        ):
            errors.append("min_amount cannot be greater than max_amount")

    _validate_selection("companies", filters.company_ids(), errors)
    _validate_selection("payment_methods", filters.payment_method_ids(), errors)
    _validate_selection("employees", filters.employee_names(), errors)
    _validate_selection("disbursement_status", filters.status_ids(), errors)
    _validate_selection("referral_partners", filters.partner_names(), errors)
    return errors


def validate_dashboard_request(request: DashboardQueryRequest) -> List[str]:
    errors = validate_filters(request.filters)
    if not 1 <= request.page <= MAX_PAGE:
        errors.append(f"page must be between 1 and {MAX_PAGE}")
    if not 1 <= request.page_size <= MAX_PAGE_SIZE:
        errors.append(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
    if request.sort_field not in SORT_FIELDS:
        errors.append(
            f"Invalid sort_field '{request.sort_field}'. Allowed: {', '.join(sorted(SORT_FIELDS))}"
        )
    return errors


def to_source_query(filters: RevenueFilters, now: Optional[datetime] = None) -> SourceQuery:
    start, end = resolve_date_bounds(filters.date_range, now)
    return SourceQuery(
        start=start,
        end=end,
        company_ids=filters.company_ids() or None,
        payment_method_ids=filters.payment_method_ids() or None,
    )


def record_matches(record: Any, filters: RevenueFilters, bounds: Tuple[Optional[datetime], Optional[datetime]]) -> bool:
    start, end = bounds
    created_at = record.created_at
    if start is not None and (created_at is None or created_at < start):
        return False
    if end is not None and (created_at is None or created_at > end):
        return False

    if filters.company_ids() and record.company_id not in filters.company_ids():
        return False
    if filters.payment_method_ids() and record.payment_method_id not in filters.payment_method_ids():
        return False
    if filters.employee_names() and record.employee_name not in filters.employee_names():
        return False
    if filters.status_ids() and record.disbursement_status_id not in filters.status_ids():
        return False
    if filters.partner_names() and record.referral_partner_name not in filters.partner_names():
        return False

    amount_range = filters.amount_range
    if amount_range is not None:
        amount = record.amount
        if amount_range.min_amount is not None and (
            amount is None or Decimal(str(amount)) < Decimal(str(amount_range.min_amount))
        ):
            return False
        if amount_range.max_amount is not None and (
            amount is None or Decimal(str(amount)) > Decimal(str(amount_range.max_amount))
        ):
            return False
    return True


def apply_filters(records: Sequence[Any], filters: RevenueFilters, now: Optional[datetime] = None) -> List[Any]:
    bounds = resolve_date_bounds(filters.date_range, now)
    return [r for r in records if record_matches(r, filters, bounds)]


def sort_records(records: Sequence[Any], sort_field: str, sort_order: SortOrder) -> List[Any]:
    """Sort by an allowed field; records missing the value always go last."""
    attribute = SORT_FIELDS.get(sort_field, "created_at")
    present = [r for r in records if getattr(r, attribute) is not None]
    missing = [r for r in records if getattr(r, attribute) is None]
    present.sort(key=lambda r: getattr(r, attribute), reverse=sort_order == SortOrder.DESC)
    return present + missing


def build_pagination(total: int, page: int, page_size: int) -> PaginationMeta:
    total_pages = ceil(total / page_size) if total else 0
    start_record = (page - 1) * page_size + 1 if total else 0
    end_record = min(page * page_size, total) if total else 0
    if start_record > total:
        start_record, end_record = 0, 0
    has_next = page < total_pages
    has_previous = page > 1
    return PaginationMeta(
        currentPage=page,
        pageSize=page_size,
        totalRecords=total,
        totalPages=total_pages,
        hasNextPage=has_next,
        hasPreviousPage=has_previous,
        nextPage=page + 1 if has_next else None,
        previousPage=page - 1 if has_previous else None,
        startRecord=start_record,
        endRecord=end_record,
        recordRange=f"{start_record}-{end_record} of {total}",
    )


def paginate(records: Sequence[Any], page: int, page_size: int) -> Tuple[List[Any], PaginationMeta]:
    offset = (page - 1) * page_size
    return list(records[offset: offset + page_size]), build_pagination(len(records), page, page_size)
