# backend/modules/revenue/services/master_view_service.py

"""
Revenue master view assembly.

Joins disbursement transactions with their payee, company, payment type,
vendor cost, employee commission rules, referral partner and upcharge
terms, and runs the revenue formulas over each combination.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from ..models.source_models import (
    ACTIVE_TRUE,
    ACTIVE_YES,
    CompanyReferralMapping,
    CompanyUpchargeFee,
    Disbursement,
    DisbursementPayee,
    DisbursementTransaction,
    EmployeeCommission,
    InsuranceCompany,
    PaymentType,
    ReferralPartner,
    VendorCost,
)
from .revenue_calculator import (
    EmployeeCommissionTerms,
    ReferralTerms,
    TransactionInputs,
    UpchargeTerms,
    VendorCostTerms,
    calculate_revenue,
    group_leaders,
    match_commission_rules,
    parse_money,
    select_payee,
)

logger = logging.getLogger(__name__)


@dataclass
class RevenueMasterRecord:
    dt_id: int
    disbursement_id: Optional[int] = None
    payment_method_id: Optional[int] = None
    payment_method_payee_fee: Optional[Decimal] = None
    payment_method_payor_fee: Optional[Decimal] = None
    check_delivery_payee_fee: Optional[Decimal] = None
    check_delivery_payor_fee: Optional[Decimal] = None
    bundle_charges: Optional[Decimal] = None
    postage_fee: Optional[Decimal] = None
    api_transaction_status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    disbursement_updated_at: Optional[datetime] = None
    company_id: Optional[int] = None
    company: Optional[str] = None
    amount: Optional[Decimal] = None
    disbursement_status_id: Optional[int] = None
    payment_method_description: Optional[str] = None
    cost_amount: Optional[Decimal] = None
    cost_percentage: Optional[Decimal] = None
    vendor_name: Optional[str] = None
    emp_id: Optional[int] = None
    employee_commission_id: Optional[int] = None
    employee_name: Optional[str] = None
    employee_commission_amount: Optional[Decimal] = None
    employee_commission_percentage: Optional[Decimal] = None
    referral_partner_name: Optional[str] = None
    referral_partner_type: Optional[str] = None
    partner_default_rate: Optional[Decimal] = None
    company_override_rate: Optional[Decimal] = None
    base_fee_upcharge: Optional[Decimal] = None
    multiplier_upcharge: Optional[Decimal] = None
    max_fee_upcharge: Optional[Decimal] = None
    applied_employee_commission_percentage: Decimal = Decimal("0")
    applied_employee_commission_amount: Decimal = Decimal("0")
    applied_referral_rate: Decimal = Decimal("0")
    company_upcharge_fees: Decimal = Decimal("0")
    is_revenue_transaction: int = 0
    gross_revenue: Decimal = Decimal("0")
    is_total_transaction: int = 0
    payor_fee_revenue: Decimal = Decimal("0")
    payee_fee_revenue: Decimal = Decimal("0")
    total_combined_revenue: Decimal = Decimal("0")
    revenue_per_transaction: Decimal = Decimal("0")
    total_vendor_cost: Decimal = Decimal("0")
    revenue_after_upcharges: Decimal = Decimal("0")
    revenue_after_operational_costs: Decimal = Decimal("0")
    employee_commission: Decimal = Decimal("0")
    revenue_after_employee_commission: Decimal = Decimal("0")
    referral_partner_commission: Decimal = Decimal("0")
    final_net_profit: Decimal = Decimal("0")

    @property
    def key(self) -> Tuple[Any, ...]:
        return (
            self.dt_id, self.disbursement_id, self.company_id, self.emp_id, self.employee_commission_id
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


RECORD_FIELDS = [f.name for f in fields(RevenueMasterRecord)]


def serialize_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def record_to_json(record: Any) -> Dict[str, Any]:
    """JSON-friendly dict for a master record or a cached row"""
    return {name: serialize_value(getattr(record, name, None)) for name in RECORD_FIELDS}


@dataclass
class SourceQuery:
    """Database-level restrictions applied before the formulas run"""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    company_ids: Optional[List[int]] = None
    payment_method_ids: Optional[List[int]] = None
    updated_since: Optional[datetime] = None


class RevenueMasterViewService:
    def __init__(self, db: Session):
        self.db = db

    def build_records(self, source_query: Optional[SourceQuery] = None) -> List[RevenueMasterRecord]:
        source_query = source_query or SourceQuery()
        rows = self._load_transactions(source_query)
        if not rows:
            return []

        disbursement_ids = {d.id for _, d in rows if d is not None}
        payees = self._payees_by_disbursement(disbursement_ids)
        companies = {c.id: c for c in self.db.query(InsuranceCompany).all()}
        payment_types = {p.id: p for p in self.db.query(PaymentType).all()}
        vendors = self._vendor_costs_by_method()
        rule_leaders = group_leaders(
            self.db.query(EmployeeCommission).filter(EmployeeCommission.active == ACTIVE_YES).all()
        )
        referrals = self._referrals_by_company()
        upcharges = self._upcharges_by_scope()

        records: List[RevenueMasterRecord] = []
        for txn, disbursement in rows:
            company_id = disbursement.company_id if disbursement else None
            payee = select_payee(payees.get(disbursement.id, [])) if disbursement else None
            company = companies.get(company_id)
            payment_type = payment_types.get(txn.payment_method_id)
            vendor = vendors.get(txn.payment_method_id)
            mapping, partner = referrals.get(company_id, (None, None))
            upcharge = upcharges.get((company_id, txn.payment_method_id))

            base = RevenueMasterRecord(
                dt_id=txn.id,
                disbursement_id=txn.disbursement_id,
                payment_method_id=txn.payment_method_id,
                payment_method_payee_fee=txn.payment_method_payee_fee,
                payment_method_payor_fee=txn.payment_method_payor_fee,
                check_delivery_payee_fee=txn.check_delivery_payee_fee,
                check_delivery_payor_fee=txn.check_delivery_payor_fee,
                bundle_charges=txn.bundle_charges,
                postage_fee=txn.postage_fee,
                api_transaction_status=txn.api_transaction_status,
                created_at=txn.created_at,
                updated_at=txn.updated_at,
                disbursement_updated_at=disbursement.updated_at if disbursement else None,
                company_id=company_id,
                company=company.company if company else None,
                amount=payee.amount if payee else None,
                disbursement_status_id=payee.disbursement_status_id if payee else None,
                payment_method_description=payment_type.description if payment_type else None,
                cost_amount=vendor.cost_amount if vendor else None,
                cost_percentage=vendor.cost_percentage if vendor else None,
                vendor_name=vendor.vendor_name if vendor else None,
                referral_partner_name=partner.partner_name if partner else None,
                referral_partner_type=partner.partner_type if partner else None,
                partner_default_rate=partner.commission_percentage if partner else None,
                company_override_rate=mapping.commission_percentage if mapping else None,
                base_fee_upcharge=upcharge.base_fee_upcharge if upcharge else None,
                multiplier_upcharge=upcharge.multiplier_upcharge if upcharge else None,
                max_fee_upcharge=upcharge.max_fee_upcharge if upcharge else None,
            )

            matched_rules = match_commission_rules(rule_leaders, txn.payment_method_id, company_id)
            for rule in matched_rules or [None]:
                records.append(self._apply_formulas(base, rule))

        logger.info(f"Built {len(records)} revenue master records from {len(rows)} transactions")
        return records

    def _apply_formulas(
        self, base: RevenueMasterRecord, rule: Optional[EmployeeCommission]
    ) -> RevenueMasterRecord:
        record = RevenueMasterRecord(**base.to_dict())
        if rule is not None:
            record.emp_id = rule.employee_id
            record.employee_commission_id = rule.id
            record.employee_name = rule.employee_name
            record.employee_commission_amount = parse_money(rule.commission_amount)
            record.employee_commission_percentage = rule.commission_percentage

        breakdown = calculate_revenue(
            TransactionInputs(
                payment_method_id=record.payment_method_id,
                payee_fee=record.payment_method_payee_fee,
                payor_fee=record.payment_method_payor_fee,
                disbursement_status_id=record.disbursement_status_id,
                amount=record.amount,
                upcharge=UpchargeTerms(
                    base_fee=record.base_fee_upcharge,
                    multiplier=record.multiplier_upcharge,
                    max_fee=record.max_fee_upcharge,
                ),
                vendor=VendorCostTerms(
                    cost_amount=record.cost_amount,
                    cost_percentage=record.cost_percentage,
                ),
                employee=EmployeeCommissionTerms(
                    percentage=rule.commission_percentage,
                    flat_amount=rule.commission_amount,
                )
                if rule is not None
                else None,
                referral=ReferralTerms(
                    override_rate=record.company_override_rate,
                    default_rate=record.partner_default_rate,
                ),
            )
        )
        for name, value in asdict(breakdown).items():
            setattr(record, name, value)
        return record

    def _load_transactions(self, source_query: SourceQuery):
        query = self.db.query(DisbursementTransaction, Disbursement).outerjoin(
            Disbursement, DisbursementTransaction.disbursement_id == Disbursement.id
        )
        if source_query.start is not None:
            query = query.filter(DisbursementTransaction.created_at >= source_query.start)
        if source_query.end is not None:
            query = query.filter(DisbursementTransaction.created_at <= source_query.end)
        if source_query.company_ids:
            query = query.filter(Disbursement.company_id.in_(source_query.company_ids))
        if source_query.payment_method_ids:
            query = query.filter(
                DisbursementTransaction.payment_method_id.in_(source_query.payment_method_ids)
            )
        if source_query.updated_since is not None:
            query = query.filter(DisbursementTransaction.updated_at >= source_query.updated_since)
        return query.order_by(DisbursementTransaction.id).all()

    def _payees_by_disbursement(self, disbursement_ids: Iterable[int]) -> Dict[int, List[DisbursementPayee]]:
        grouped: Dict[int, List[DisbursementPayee]] = {}
        ids = list(disbursement_ids)
        if not ids:
            return grouped
        for payee in self.db.query(DisbursementPayee).filter(DisbursementPayee.disbursement_id.in_(ids)):
            grouped.setdefault(payee.disbursement_id, []).append(payee)
        return grouped

    def _vendor_costs_by_method(self) -> Dict[int, VendorCost]:
        vendors: Dict[int, VendorCost] = {}
        for vendor in self.db.query(VendorCost).order_by(VendorCost.id):
            vendors.setdefault(vendor.payment_method_id, vendor)
        return vendors

    def _referrals_by_company(self):
        partners = {
            p.id: p
            for p in self.db.query(ReferralPartner).filter(ReferralPartner.active == ACTIVE_YES)
        }
        referrals = {}
        mappings = (
            self.db.query(CompanyReferralMapping)
            .filter(CompanyReferralMapping.active == ACTIVE_TRUE)
            .order_by(CompanyReferralMapping.id)
        )
        for mapping in mappings:
            if mapping.company_id not in referrals:
                referrals[mapping.company_id] = (mapping, partners.get(mapping.referral_partner_id))
        return referrals

    def _upcharges_by_scope(self) -> Dict[Tuple[int, int], CompanyUpchargeFee]:
        upcharges: Dict[Tuple[int, int], CompanyUpchargeFee] = {}
        rows = (
            self.db.query(CompanyUpchargeFee)
            .filter(CompanyUpchargeFee.active == ACTIVE_TRUE)
            .order_by(CompanyUpchargeFee.id)
        )
        for row in rows:
            upcharges.setdefault((row.company_id, row.payment_method_id), row)
        return upcharges
