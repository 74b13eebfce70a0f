# backend/modules/revenue/schemas/revenue_schemas.py

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class DateRangeType(str, Enum):
    CUSTOM = "custom"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"
    LAST_12_MONTHS = "last_12_months"
    YTD = "ytd"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class DateRangeFilter(BaseModel):
    type: DateRangeType = DateRangeType.CUSTOM
    # Kept as strings so the YYYY-MM-DD format can be reported precisely
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class CompanyFilter(BaseModel):
    selected_companies: List[int] = Field(default_factory=list)


class PaymentMethodFilter(BaseModel):
    selected_methods: List[int] = Field(default_factory=list)


class EmployeeFilter(BaseModel):
    selected_employees: List[str] = Field(default_factory=list)


class DisbursementStatusFilter(BaseModel):
    selected_statuses: List[int] = Field(default_factory=list)


class ReferralPartnerFilter(BaseModel):
    selected_partners: List[str] = Field(default_factory=list)


class AmountRangeFilter(BaseModel):
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None


class RevenueFilters(BaseModel):
    """Dashboard filter object as sent by the frontend"""

    date_range: Optional[DateRangeFilter] = None
    companies: Optional[CompanyFilter] = None
    payment_methods: Optional[PaymentMethodFilter] = None
    employees: Optional[EmployeeFilter] = None
    disbursement_status: Optional[DisbursementStatusFilter] = None
    referral_partners: Optional[ReferralPartnerFilter] = None
    amount_range: Optional[AmountRangeFilter] = None

    def company_ids(self) -> List[int]:
        return self.companies.selected_companies if self.companies else []

    def payment_method_ids(self) -> List[int]:
        return self.payment_methods.selected_methods if self.payment_methods else []

    def employee_names(self) -> List[str]:
        return self.employees.selected_employees if self.employees else []

    def status_ids(self) -> List[int]:
        return self.disbursement_status.selected_statuses if self.disbursement_status else []

    def partner_names(self) -> List[str]:
        return self.referral_partners.selected_partners if self.referral_partners else []


class DashboardQueryRequest(BaseModel):
    filters: RevenueFilters = Field(default_factory=RevenueFilters)
    page: int = 1
    page_size: int = 50
    sort_field: str = "created_at"
    sort_order: SortOrder = SortOrder.DESC


class PaginationMeta(BaseModel):
    currentPage: int
    pageSize: int
    totalRecords: int
    totalPages: int
    hasNextPage: bool
    hasPreviousPage: bool
    nextPage: Optional[int] = None
    previousPage: Optional[int] = None
    startRecord: int
    endRecord: int
    recordRange: str


class RevenueKPIs(BaseModel):
    total_revenue: float = 0.0
    total_transactions: int = 0
    average_transaction_amount: float = 0.0
    payee_fee_revenue: float = 0.0
    payor_fee_revenue: float = 0.0
    total_costs: float = 0.0
    gross_profit: float = 0.0
    total_commissions: float = 0.0
    net_profit: float = 0.0
    profit_margin: float = 0.0


class CompanyPerformance(BaseModel):
    label: str
    value: float
    category: str = "Revenue"
    transactions: int = 0
    costs: float = 0.0
    commissions: float = 0.0
    profit: float = 0.0


class FeeSplitSlice(BaseModel):
    label: str
    value: float
    percentage: float


class ChartData(BaseModel):
    bar_chart: List[CompanyPerformance] = Field(default_factory=list)
    pie_chart: List[FeeSplitSlice] = Field(default_factory=list)


class DashboardQueryResponse(BaseModel):
    success: bool = True
    data: List[Dict[str, Any]]
    pagination: PaginationMeta
    kpis: RevenueKPIs
    charts: ChartData
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RevenueSummary(BaseModel):
    totalTransactions: int = 0
    totalRevenue: float = 0.0
    totalEmployeeCommissions: float = 0.0
    totalReferralCommissions: float = 0.0
    totalVendorCosts: float = 0.0
    totalUpcharges: float = 0.0
    netProfit: float = 0.0
    averageRevenuePerTransaction: float = 0.0


class RevenueAnalyticsData(BaseModel):
    summary: RevenueSummary
    records: List[Dict[str, Any]]
    companies: List[str]
    employees: List[str]


class RevenueAnalyticsResponse(BaseModel):
    success: bool = True
    data: RevenueAnalyticsData
    source: str = "cache"
    timestamp: datetime


class FilterOptionsResponse(BaseModel):
    companies: List[Dict[str, Any]]
    employees: List[str]
    payment_methods: List[Dict[str, Any]]
    disbursement_statuses: List[int]
    referral_partners: List[str]


class SyncRequest(BaseModel):
    sync_type: str = Field("full", pattern="^(full|incremental|date_range)$")
    source: str = Field("database", pattern="^(database|zoho)$")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    table_name: Optional[str] = Field(None, description="Zoho table to read when source is zoho")


class SyncStatusResponse(BaseModel):
    id: int
    sync_type: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    records_fetched: int = 0
    records_inserted: int = 0
    records_updated: int = 0
    records_skipped: int = 0
    fetch_method: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None

    class Config:
        from_attributes = True


class CacheCleanupResponse(BaseModel):
    success: bool = True
    deleted: int
    cutoff: datetime
