# backend/modules/revenue/models/revenue_models.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import enum

from core.database import Base


class SyncType(str, enum.Enum):
    FULL = "full"
    INCREMENTAL = "incremental"
    DATE_RANGE = "date_range"


class SyncStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Shared column types for money amounts and percentage rates
MONEY = Numeric(14, 2)
RATE = Numeric(7, 4)


class RevenueMasterCache(Base):
    """Materialized rows of the revenue master view"""

    __tablename__ = "revenue_master_view_cache"

    id = Column(Integer, primary_key=True)
    dt_id = Column(Integer, index=True)
    disbursement_id = Column(Integer, index=True)
    payment_method_id = Column(Integer)
    payment_method_payee_fee = Column(MONEY)
    payment_method_payor_fee = Column(MONEY)
    check_delivery_payee_fee = Column(MONEY)
    check_delivery_payor_fee = Column(MONEY)
    bundle_charges = Column(MONEY)
    postage_fee = Column(MONEY)
    api_transaction_status = Column(String(50))
    created_at = Column(DateTime, index=True)
    updated_at = Column(DateTime)
    disbursement_updated_at = Column(DateTime)
    company_id = Column(Integer, index=True)
    company = Column(String(255), index=True)
    amount = Column(MONEY)
    disbursement_status_id = Column(Integer)
    payment_method_description = Column(String(255))
    cost_amount = Column(MONEY)
    cost_percentage = Column(RATE)
    vendor_name = Column(String(255))
    emp_id = Column(Integer, index=True)
    employee_commission_id = Column(Integer)
    employee_name = Column(String(255), index=True)
    employee_commission_amount = Column(MONEY)
    employee_commission_percentage = Column(RATE)
    referral_partner_name = Column(String(255))
    referral_partner_type = Column(String(100))
    partner_default_rate = Column(RATE)
    company_override_rate = Column(RATE)
    base_fee_upcharge = Column(MONEY)
    multiplier_upcharge = Column(RATE)
    max_fee_upcharge = Column(MONEY)
    applied_employee_commission_percentage = Column(RATE)
    applied_employee_commission_amount = Column(MONEY)
    applied_referral_rate = Column(RATE)
    company_upcharge_fees = Column(MONEY)
    is_revenue_transaction = Column(Integer)
    gross_revenue = Column(MONEY)
    is_total_transaction = Column(Integer)
    payor_fee_revenue = Column(MONEY)
    payee_fee_revenue = Column(MONEY)
    total_combined_revenue = Column(MONEY)
    revenue_per_transaction = Column(MONEY)
    total_vendor_cost = Column(MONEY)
    revenue_after_upcharges = Column(MONEY)
    revenue_after_operational_costs = Column(MONEY)
    employee_commission = Column(MONEY)
    revenue_after_employee_commission = Column(MONEY)
    referral_partner_commission = Column(MONEY)
    final_net_profit = Column(MONEY)
    source_table = Column(String(100))
    zoho_row_id = Column(String(100))
    synced_at = Column(DateTime, default=func.now(), index=True)
    sync_updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "dt_id", "disbursement_id", "company_id", "emp_id", "employee_commission_id",
            name="uq_revenue_cache_record",
        ),
    )


class RevenueSyncStatus(Base):
    __tablename__ = "revenue_sync_status"

    id = Column(Integer, primary_key=True)
    sync_type = Column(String(50), nullable=False, index=True)
    start_date = Column(Date)
    end_date = Column(Date)
    records_fetched = Column(Integer, default=0)
    records_inserted = Column(Integer, default=0)
    records_updated = Column(Integer, default=0)
    records_skipped = Column(Integer, default=0)
    fetch_method = Column(String(50))
    status = Column(String(20), default=SyncStatus.RUNNING.value)
    error_message = Column(Text)
    started_at = Column(DateTime, default=func.now(), index=True)
    completed_at = Column(DateTime)
    duration_seconds = Column(Integer)

    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'completed', 'failed')", name="ck_revenue_sync_status"
        ),
        Index("idx_revenue_sync_type_started", "sync_type", "started_at"),
    )
