# backend/modules/revenue/services/revenue_data_service.py

"""
Revenue master cache maintenance.

Materializes master records into ``revenue_master_view_cache`` (either
rebuilt from the source tables or fetched from Zoho Analytics), keeps a
``revenue_sync_status`` row per run, and serves the cache-backed
analytics endpoints.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import re

from sqlalchemy import and_, distinct
from sqlalchemy.orm import Session

from ..models.revenue_models import RevenueMasterCache, RevenueSyncStatus, SyncStatus, SyncType
from ..schemas.revenue_schemas import (
    FilterOptionsResponse,
    RevenueAnalyticsData,
    SyncRequest,
)
from .aggregation_service import calculate_summary
from .filter_service import subtract_months
from .master_view_service import (
    RECORD_FIELDS,
    RevenueMasterViewService,
    SourceQuery,
    record_to_json,
)
from .revenue_calculator import to_decimal

logger = logging.getLogger(__name__)

UNKNOWN_COMPANY = "Unknown Company"
UNKNOWN_EMPLOYEE = "Unknown Employee"
DEFAULT_ZOHO_TABLE = "revenue_master_view"

KEY_FIELDS = ("dt_id", "disbursement_id", "company_id", "emp_id", "employee_commission_id")

INTEGER_FIELDS = {
    "dt_id",
    "disbursement_id",
    "payment_method_id",
    "company_id",
    "disbursement_status_id",
    "emp_id",
    "employee_commission_id",
    "is_revenue_transaction",
    "is_total_transaction",
}
DATETIME_FIELDS = {"created_at", "updated_at", "disbursement_updated_at"}
TEXT_FIELDS = {
    "api_transaction_status",
    "company",
    "payment_method_description",
    "vendor_name",
    "employee_name",
    "referral_partner_name",
    "referral_partner_type",
}

# Extra column names seen in exported views, beyond the generated variants
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "dt_id": ("dt.id", "id", "ID", "DT_ID"),
    "company_id": ("d.company_id", "companyId", "Company_ID"),
    "company": ("ic.company", "company_name", "Company_Name", "Company Name", "companyName"),
    "amount": ("otp.amount", "transaction_amount"),
    "disbursement_status_id": ("otp.disbursement_status_id", "status_id"),
    "payment_method_description": ("payment_method", "Payment_Method"),
    "cost_amount": ("vc.cost_amount", "vendor_cost", "Vendor_Cost"),
    "cost_percentage": ("vc.cost_percentage", "cost_percent", "vendor_cost_percentage"),
    "vendor_name": ("vc.vendor_name", "vendor"),
    "emp_id": ("employee_id", "Employee_ID", "empId", "employeeId"),
    "employee_name": ("ec.employee_name", "Employee", "employee", "staff_name", "employeeName"),
    "employee_commission_amount": ("commission_amount",),
    "employee_commission_percentage": ("commission_percentage",),
    "base_fee_upcharge": ("cuf.base_fee_upcharge",),
    "multiplier_upcharge": ("cuf.multiplier_upcharge",),
    "max_fee_upcharge": ("cuf.max_fee_upcharge",),
}

_DMY_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s+(\d{1,2}):(\d{2})(?::(\d{2}))?)?$")
_CURRENCY_CLEANUP = re.compile(r"[$,\s]")


def field_aliases(field: str) -> List[str]:
    """Candidate column names for a cache field, most specific first."""
    title = "_".join(part.capitalize() for part in field.split("_"))
    names = [field, title, title.replace("_", " "), field.upper()]
    if field.startswith("dt_"):
        names.append("dt." + field[3:])
    names.append("dt." + field)
    names.extend(FIELD_ALIASES.get(field, ()))
    seen = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


def lookup_field(raw: Dict[str, Any], field: str) -> Any:
    for name in field_aliases(field):
        value = raw.get(name)
        if value is not None and value != "":
            return value
    return None


def parse_currency(value: Any) -> Optional[Decimal]:
    """``"$21,000.00"`` -> ``Decimal("21000.00")``; unparseable -> None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return to_decimal(value)
    return to_decimal(_CURRENCY_CLEANUP.sub("", str(value)))


def parse_integer(value: Any) -> Optional[int]:
    parsed = parse_currency(value)
    if parsed is None:
        return None
    try:
        return int(parsed)
    except (ValueError, ArithmeticError):
        return None


def parse_external_date(value: Any) -> Optional[datetime]:
    """Accept ISO timestamps and ``DD/MM/YYYY[ HH:MM[:SS]]``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)

    text = str(value).strip()
    match = _DMY_DATE.match(text)
    if match:
        day, month, year, hour, minute, second = match.groups()
        try:
            return datetime(
                int(year), int(month), int(day),
                int(hour or 0), int(minute or 0), int(second or 0),
            )
        except ValueError:
            return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def normalize_external_record(raw: Dict[str, Any], source_table: str) -> Optional[Dict[str, Any]]:
    """Map an externally fetched row onto cache columns.

    Returns None when the row carries neither a company nor an employee.
    """
    company = lookup_field(raw, "company")
    employee = lookup_field(raw, "employee_name")
    if not company and not employee:
        return None

    normalized: Dict[str, Any] = {}
    for field in RECORD_FIELDS:
        value = lookup_field(raw, field)
        if field in INTEGER_FIELDS:
            normalized[field] = parse_integer(value)
        elif field in DATETIME_FIELDS:
            normalized[field] = parse_external_date(value)
        elif field in TEXT_FIELDS:
            normalized[field] = str(value).strip() if value is not None else None
        else:
            normalized[field] = parse_currency(value)

    normalized["company"] = normalized["company"] or UNKNOWN_COMPANY
    normalized["employee_name"] = normalized["employee_name"] or UNKNOWN_EMPLOYEE
    normalized["source_table"] = source_table
    row_id = raw.get("ROWID") or raw.get("zoho_row_id") or raw.get("dt.id") or raw.get("id")
    normalized["zoho_row_id"] = str(row_id) if row_id is not None else None
    return normalized


class RevenueDataService:
    def __init__(self, db: Session):
        self.db = db

    # Sync

    async def run_sync(self, request: SyncRequest, zoho_client: Any = None) -> RevenueSyncStatus:
        if request.sync_type == SyncType.DATE_RANGE.value:
            if request.start_date is None or request.end_date is None:
                raise ValueError("start_date and end_date are required for date_range sync")
            if request.start_date > request.end_date:
                raise ValueError("start_date must be before or equal to end_date")

        if request.source == "zoho":
            if zoho_client is None or not zoho_client.configured:
                raise ValueError("Zoho Analytics is not configured")
            return await self.sync_from_zoho(
                zoho_client,
                request.table_name or DEFAULT_ZOHO_TABLE,
                request.sync_type,
                request.start_date,
                request.end_date,
            )
        return self.sync_from_database(request.sync_type, request.start_date, request.end_date)

    def sync_from_database(
        self,
        sync_type: str = SyncType.FULL.value,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> RevenueSyncStatus:
        status = self._start_sync(sync_type, start_date, end_date, "database")
        try:
            source_query = SourceQuery()
            if sync_type == SyncType.DATE_RANGE.value:
                source_query.start = datetime.combine(start_date, time.min)
                source_query.end = datetime.combine(end_date, time.max)
            elif sync_type == SyncType.INCREMENTAL.value:
                source_query.updated_since = self._last_completed_sync_time(exclude_id=status.id)

            records = RevenueMasterViewService(self.db).build_records(source_query)
            rows = [
                dict(record.to_dict(), source_table="disbursement_transactions", zoho_row_id=None)
                for record in records
            ]
            inserted, updated = self.upsert_records(rows)
            return self._finish_sync(status, len(rows), inserted, updated, 0)
        except Exception as e:
            self._fail_sync(status, e)
            raise

    async def sync_from_zoho(
        self,
        zoho_client: Any,
        table_name: str,
        sync_type: str = SyncType.FULL.value,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> RevenueSyncStatus:
        status = self._start_sync(sync_type, start_date, end_date, "zoho")
        try:
            raw_rows = await zoho_client.read_rows(table_name)
            normalized = []
            skipped = 0
            for raw in raw_rows:
                row = normalize_external_record(raw, table_name)
                if row is None or not self._in_range(row, sync_type, start_date, end_date):
                    skipped += 1
                    continue
                normalized.append(row)
            if skipped:
                logger.warning(f"Skipped {skipped} of {len(raw_rows)} rows from Zoho table {table_name}")

            inserted, updated = self.upsert_records(normalized)
            return self._finish_sync(status, len(raw_rows), inserted, updated, skipped)
        except Exception as e:
            self._fail_sync(status, e)
            raise

    def upsert_records(self, rows: Iterable[Dict[str, Any]]) -> Tuple[int, int]:
        """Insert or update cache rows by their natural key; commits once."""
        inserted = updated = 0
        pending: Dict[Tuple[Any, ...], RevenueMasterCache] = {}
        for row in rows:
            key = tuple(row.get(name) for name in KEY_FIELDS)
            existing = pending.get(key) or self._find_cached(key)
            values = {name: value for name, value in row.items() if hasattr(RevenueMasterCache, name)}
            if existing is None:
                entry = RevenueMasterCache(**values)
                self.db.add(entry)
                pending[key] = entry
                inserted += 1
            else:
                for name, value in values.items():
                    setattr(existing, name, value)
                existing.sync_updated_at = datetime.utcnow()
                pending[key] = existing
                updated += 1
        self.db.commit()
        return inserted, updated

    def _find_cached(self, key: Tuple[Any, ...]) -> Optional[RevenueMasterCache]:
        conditions = []
        for name, value in zip(KEY_FIELDS, key):
            column = getattr(RevenueMasterCache, name)
            conditions.append(column.is_(None) if value is None else column == value)
        return self.db.query(RevenueMasterCache).filter(and_(*conditions)).first()

    def _in_range(self, row: Dict[str, Any], sync_type: str, start: Optional[date], end: Optional[date]) -> bool:
        if sync_type != SyncType.DATE_RANGE.value:
            return True
        created_at = row.get("created_at")
        if created_at is None:
            return False
        return start <= created_at.date() <= end

    def _start_sync(self, sync_type: str, start_date, end_date, method: str) -> RevenueSyncStatus:
        status = RevenueSyncStatus(
            sync_type=sync_type,
            start_date=start_date,
            end_date=end_date,
            fetch_method=method,
            status=SyncStatus.RUNNING.value,
            started_at=datetime.utcnow(),
        )
        self.db.add(status)
        self.db.commit()
        self.db.refresh(status)
        logger.info(f"Revenue sync {status.id} started ({sync_type} from {method})")
        return status

    def _finish_sync(
        self, status: RevenueSyncStatus, fetched: int, inserted: int, updated: int, skipped: int
    ) -> RevenueSyncStatus:
        completed = datetime.utcnow()
        status.records_fetched = fetched
        status.records_inserted = inserted
        status.records_updated = updated
        status.records_skipped = skipped
        status.status = SyncStatus.COMPLETED.value
        status.completed_at = completed
        status.duration_seconds = int((completed - status.started_at).total_seconds())
        self.db.commit()
        self.db.refresh(status)
        logger.info(
            f"Revenue sync {status.id} completed: fetched={fetched} inserted={inserted} "
            f"updated={updated} skipped={skipped}"
        )
        return status

    def _fail_sync(self, status: RevenueSyncStatus, error: Exception) -> None:
        self.db.rollback()
        completed = datetime.utcnow()
        status.status = SyncStatus.FAILED.value
        status.error_message = str(error)
        status.completed_at = completed
        status.duration_seconds = int((completed - status.started_at).total_seconds())
        self.db.commit()
        logger.error(f"Revenue sync {status.id} failed: {error}")

    def _last_completed_sync_time(self, exclude_id: Optional[int] = None) -> Optional[datetime]:
        query = self.db.query(RevenueSyncStatus).filter(
            RevenueSyncStatus.status == SyncStatus.COMPLETED.value
        )
        if exclude_id is not None:
            query = query.filter(RevenueSyncStatus.id != exclude_id)
        last = query.order_by(RevenueSyncStatus.started_at.desc()).first()
        return last.started_at if last else None

    def latest_sync_status(self) -> Optional[RevenueSyncStatus]:
        return (
            self.db.query(RevenueSyncStatus)
            .order_by(RevenueSyncStatus.started_at.desc(), RevenueSyncStatus.id.desc())
            .first()
        )

    # Reads

    def get_cached_records(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        company_ids: Optional[Sequence[int]] = None,
        employee_ids: Optional[Sequence[int]] = None,
    ) -> List[RevenueMasterCache]:
        query = self.db.query(RevenueMasterCache)
        if start_date:
            query = query.filter(RevenueMasterCache.created_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(RevenueMasterCache.created_at <= datetime.combine(end_date, time.max))
        if company_ids:
            query = query.filter(RevenueMasterCache.company_id.in_(list(company_ids)))
        if employee_ids:
            query = query.filter(RevenueMasterCache.emp_id.in_(list(employee_ids)))
        return query.order_by(RevenueMasterCache.created_at.desc(), RevenueMasterCache.id).all()

    def get_analytics(self, records: Sequence[Any]) -> RevenueAnalyticsData:
        return RevenueAnalyticsData(
            summary=calculate_summary(records),
            records=[record_to_json(record) for record in records],
            companies=sorted({r.company for r in records if r.company}),
            employees=sorted({r.employee_name for r in records if r.employee_name}),
        )

    def get_filter_options(self) -> FilterOptionsResponse:
        cache = RevenueMasterCache
        companies = (
            self.db.query(cache.company_id, cache.company)
            .filter(cache.company_id.isnot(None))
            .distinct()
            .order_by(cache.company)
            .all()
        )
        methods = (
            self.db.query(cache.payment_method_id, cache.payment_method_description)
            .filter(cache.payment_method_id.isnot(None))
            .distinct()
            .order_by(cache.payment_method_id)
            .all()
        )
        employees = self.db.query(distinct(cache.employee_name)).filter(cache.employee_name.isnot(None)).all()
        statuses = (
            self.db.query(distinct(cache.disbursement_status_id))
            .filter(cache.disbursement_status_id.isnot(None))
            .all()
        )
        partners = (
            self.db.query(distinct(cache.referral_partner_name))
            .filter(cache.referral_partner_name.isnot(None))
            .all()
        )
        return FilterOptionsResponse(
            companies=[{"id": company_id, "name": name} for company_id, name in companies],
            employees=sorted(name for (name,) in employees),
            payment_methods=[
                {"id": method_id, "description": description} for method_id, description in methods
            ],
            disbursement_statuses=sorted(status_id for (status_id,) in statuses),
            referral_partners=sorted(name for (name,) in partners),
        )

    # Maintenance

    def clean_old_data(self, months: int) -> Tuple[int, datetime]:
        if months < 1:
            raise ValueError("months must be at least 1")
        cutoff = subtract_months(datetime.utcnow(), months)
        deleted = (
            self.db.query(RevenueMasterCache)
            .filter(RevenueMasterCache.synced_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Removed {deleted} cached revenue rows synced before {cutoff.isoformat()}")
        return deleted, cutoff
