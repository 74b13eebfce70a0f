# backend/modules/revenue/models/source_models.py

"""
Source tables the revenue master view is derived from.

Activity flags keep the string values used by the upstream system:
employee commissions and referral partners use 'Yes'/'No', referral
mappings and upcharge fees use 'TRUE'/'FALSE'.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from core.database import Base

ACTIVE_YES = "Yes"
ACTIVE_TRUE = "TRUE"


class DisbursementTransaction(Base):
    __tablename__ = "disbursement_transactions"

    id = Column(Integer, primary_key=True)
    disbursement_id = Column(Integer, ForeignKey("disbursements.id"), index=True)
    payment_method_id = Column(Integer, index=True)
    payment_method_payee_fee = Column(Numeric(12, 2))
    payment_method_payor_fee = Column(Numeric(12, 2))
    api_transaction_status = Column(String(50))
    check_delivery_payee_fee = Column(Numeric(12, 2))
    check_delivery_payor_fee = Column(Numeric(12, 2))
    bundle_charges = Column(Numeric(12, 2))
    postage_fee = Column(Numeric(12, 2))
    created_at = Column(DateTime, default=func.now(), index=True)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class Disbursement(Base):
    __tablename__ = "disbursements"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("insurance_companies.id"), index=True)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class DisbursementPayee(Base):
    __tablename__ = "disbursement_payees"

    id = Column(Integer, primary_key=True)
    disbursement_id = Column(Integer, ForeignKey("disbursements.id"), index=True)
    amount = Column(Numeric(14, 2))
    disbursement_status_id = Column(Integer)


class InsuranceCompany(Base):
    __tablename__ = "insurance_companies"

    id = Column(Integer, primary_key=True)
    company = Column(String(255))


class PaymentType(Base):
    __tablename__ = "payment_types"

    id = Column(Integer, primary_key=True)
    description = Column(String(255))


class VendorCost(Base):
    __tablename__ = "vendor_costs"

    id = Column(Integer, primary_key=True)
    payment_method_id = Column(Integer, index=True)
    vendor_name = Column(String(255))
    cost_amount = Column(Numeric(12, 2))
    cost_percentage = Column(Numeric(7, 4))


class EmployeeCommission(Base):
    __tablename__ = "employee_commissions"

    id = Column(Integer, primary_key=True)
    employee_name = Column(String(255))
    employee_id = Column(Integer)
    payment_method_id = Column(Integer, nullable=True)
    company_id = Column(Integer, nullable=True)
    # Free text as entered upstream, e.g. "$1,250.00"
    commission_amount = Column(String(50))
    commission_percentage = Column(Numeric(7, 4))
    effective_start_date = Column(DateTime)
    effective_end_date = Column(DateTime)
    active = Column(String(10), default=ACTIVE_YES)
    description = Column(Text)


class ReferralPartner(Base):
    __tablename__ = "referral_partners"

    id = Column(Integer, primary_key=True)
    partner_name = Column(String(255))
    partner_type = Column(String(100))
    commission_percentage = Column(Numeric(7, 4))
    active = Column(String(10), default=ACTIVE_YES)


class CompanyReferralMapping(Base):
    __tablename__ = "company_referral_mappings"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, index=True)
    referral_partner_id = Column(Integer, ForeignKey("referral_partners.id"))
    commission_percentage = Column(Numeric(7, 4))
    active = Column(String(10), default=ACTIVE_TRUE)


class CompanyUpchargeFee(Base):
    __tablename__ = "company_upcharge_fees"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, index=True)
    payment_method_id = Column(Integer)
    base_fee_upcharge = Column(Numeric(12, 2))
    multiplier_upcharge = Column(Numeric(7, 4))
    max_fee_upcharge = Column(Numeric(12, 2))
    effective_start_date = Column(DateTime)
    effective_end_date = Column(DateTime)
    active = Column(String(10), default=ACTIVE_TRUE)
