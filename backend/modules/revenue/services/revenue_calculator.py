# backend/modules/revenue/services/revenue_calculator.py

"""
Per-transaction revenue, cost and commission formulas.

Two predicates drive every derived figure:

* ``is_revenue_transaction``: the transaction earned fee revenue. Payee
  fee must be non-zero; then payment method 5 needs a positive payee fee,
  method 2 needs status 3 and a positive payor fee, and methods 1, 3, 4,
  6, 7 need status 3 and a positive payee fee.
* ``is_total_transaction`` (the "total condition"): same as above except
  method 2 only needs status 3 and there is no up-front payee fee check.

Gross revenue, upcharges and vendor costs are gated on the first
predicate. Combined revenue and both commission layers are gated on the
second. All arithmetic is done in ``Decimal``; results are rounded to
cents.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Sequence, TypeVar
import re

ZERO = Decimal("0")
CENT = Decimal("0.01")
PERCENT = Decimal("0.01")
NO_MAX_FEE = Decimal("999999")

DIRECT_PAYMENT_METHOD = 5
PAYOR_FUNDED_METHOD = 2
STATUS_GATED_METHODS = frozenset({1, 3, 4, 6, 7})
COMPLETED_STATUS = 3

_MONEY_CLEANUP = re.compile(r"[$,\s]")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce numbers and numeric strings to Decimal; None stays None."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    text = str(value).strip()
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def parse_money(value: Any) -> Decimal:
    """Parse a money value that may be formatted like ``"$1,250.00"``.

    Unparseable or empty values count as zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return to_decimal(value)
    negative = False
    text = _MONEY_CLEANUP.sub("", str(value))
    if text.startswith("(") and text.endswith(")"):
        negative, text = True, text[1:-1]
    parsed = to_decimal(text)
    if parsed is None:
        return ZERO
    return -parsed if negative else parsed


def quantize(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class UpchargeTerms:
    base_fee: Optional[Decimal] = None
    multiplier: Optional[Decimal] = None
    max_fee: Optional[Decimal] = None


@dataclass
class VendorCostTerms:
    cost_amount: Optional[Decimal] = None
    cost_percentage: Optional[Decimal] = None


@dataclass
class EmployeeCommissionTerms:
    percentage: Optional[Decimal] = None
    flat_amount: Any = None


@dataclass
class ReferralTerms:
    override_rate: Optional[Decimal] = None
    default_rate: Optional[Decimal] = None

    @property
    def has_rate(self) -> bool:
        return self.override_rate is not None or self.default_rate is not None

    @property
    def applied_rate(self) -> Decimal:
        if self.override_rate is not None:
            return self.override_rate
        if self.default_rate is not None:
            return self.default_rate
        return ZERO


@dataclass
class TransactionInputs:
    payment_method_id: Optional[int]
    payee_fee: Optional[Decimal]
    payor_fee: Optional[Decimal]
    disbursement_status_id: Optional[int]
    amount: Optional[Decimal]
    upcharge: Optional[UpchargeTerms] = None
    vendor: Optional[VendorCostTerms] = None
    employee: Optional[EmployeeCommissionTerms] = None
    referral: Optional[ReferralTerms] = None


@dataclass
class RevenueBreakdown:
    is_revenue_transaction: int
    is_total_transaction: int
    gross_revenue: Decimal
    payor_fee_revenue: Decimal
    payee_fee_revenue: Decimal
    total_combined_revenue: Decimal
    revenue_per_transaction: Decimal
    company_upcharge_fees: Decimal
    total_vendor_cost: Decimal
    revenue_after_upcharges: Decimal
    revenue_after_operational_costs: Decimal
    applied_employee_commission_percentage: Decimal
    applied_employee_commission_amount: Decimal
    employee_commission: Decimal
    revenue_after_employee_commission: Decimal
    applied_referral_rate: Decimal
    referral_partner_commission: Decimal
    final_net_profit: Decimal


def _positive(value: Optional[Decimal]) -> bool:
    return value is not None and value > 0


def is_total_transaction(
    payment_method_id: Optional[int],
    payee_fee: Optional[Decimal],
    disbursement_status_id: Optional[int],
) -> bool:
    if payment_method_id == DIRECT_PAYMENT_METHOD:
        return _positive(payee_fee)
    if payment_method_id == PAYOR_FUNDED_METHOD:
        return disbursement_status_id == COMPLETED_STATUS
    if payment_method_id in STATUS_GATED_METHODS:
        return disbursement_status_id == COMPLETED_STATUS and _positive(payee_fee)
    return False


def is_revenue_transaction(
    payment_method_id: Optional[int],
    payee_fee: Optional[Decimal],
    payor_fee: Optional[Decimal],
    disbursement_status_id: Optional[int],
) -> bool:
    if payee_fee is None or payee_fee == 0:
        return False
    if payment_method_id == DIRECT_PAYMENT_METHOD:
        return _positive(payee_fee)
    if payment_method_id == PAYOR_FUNDED_METHOD:
        return disbursement_status_id == COMPLETED_STATUS and _positive(payor_fee)
    if payment_method_id in STATUS_GATED_METHODS:
        return disbursement_status_id == COMPLETED_STATUS and _positive(payee_fee)
    return False


def upcharge_fee(terms: Optional[UpchargeTerms], amount: Decimal, payee_fee: Decimal) -> Decimal:
    if terms is None or terms.base_fee is None:
        return ZERO
    fee = terms.base_fee + amount * (terms.multiplier or ZERO) * PERCENT
    threshold = terms.max_fee if terms.max_fee is not None else NO_MAX_FEE
    if payee_fee >= threshold:
        fee += terms.max_fee or ZERO
    return fee


def vendor_cost(terms: Optional[VendorCostTerms], amount: Decimal) -> Decimal:
    if terms is None or terms.cost_amount is None:
        return ZERO
    return terms.cost_amount + amount * (terms.cost_percentage or ZERO) * PERCENT


def calculate_revenue(inputs: TransactionInputs) -> RevenueBreakdown:
    """Apply every revenue master formula to one transaction."""
    payee = inputs.payee_fee
    payor = inputs.payor_fee
    payee_value = payee or ZERO
    payor_value = payor or ZERO
    amount = inputs.amount or ZERO
    fees = payee_value + payor_value

    revenue_flag = is_revenue_transaction(
        inputs.payment_method_id, payee, payor, inputs.disbursement_status_id
    )
    total_flag = is_total_transaction(
        inputs.payment_method_id, payee, inputs.disbursement_status_id
    )

    gross = fees if revenue_flag else ZERO
    upcharge = upcharge_fee(inputs.upcharge, amount, payee_value) if revenue_flag else ZERO
    raw_vendor_cost = vendor_cost(inputs.vendor, amount)
    total_vendor_cost = raw_vendor_cost if revenue_flag else ZERO

    employee = inputs.employee
    employee_pct = (employee.percentage if employee else None) or ZERO
    employee_flat = parse_money(employee.flat_amount) if employee else ZERO

    employee_commission = ZERO
    after_employee = ZERO
    if total_flag:
        net_of_vendor = fees - raw_vendor_cost
        if employee is not None:
            employee_commission = net_of_vendor * employee_pct * PERCENT + employee_flat
        after_employee = net_of_vendor - employee_commission

    referral = inputs.referral or ReferralTerms()
    referral_commission = ZERO
    if total_flag and referral.has_rate:
        referral_commission = after_employee * referral.applied_rate * PERCENT

    net_profit = after_employee - referral_commission if total_flag else ZERO

    return RevenueBreakdown(
        is_revenue_transaction=int(revenue_flag),
        is_total_transaction=int(total_flag),
        gross_revenue=quantize(gross),
        payor_fee_revenue=quantize(payor_value if total_flag else ZERO),
        payee_fee_revenue=quantize(payee_value if total_flag else ZERO),
        total_combined_revenue=quantize(fees if total_flag else ZERO),
        revenue_per_transaction=quantize(fees if total_flag else ZERO),
        company_upcharge_fees=quantize(upcharge),
        total_vendor_cost=quantize(total_vendor_cost),
        revenue_after_upcharges=quantize(gross - upcharge),
        revenue_after_operational_costs=quantize(gross - upcharge - total_vendor_cost),
        applied_employee_commission_percentage=employee_pct,
        applied_employee_commission_amount=quantize(employee_flat),
        employee_commission=quantize(employee_commission),
        revenue_after_employee_commission=quantize(after_employee),
        applied_referral_rate=referral.applied_rate,
        referral_partner_commission=quantize(referral_commission),
        final_net_profit=quantize(net_profit),
    )


T = TypeVar("T")


def commission_specificity(rule: Any) -> int:
    """Rank a commission rule: payment method + company 4, method 3, company 2, neither 1."""
    has_method = rule.payment_method_id is not None
    has_company = rule.company_id is not None
    if has_method and has_company:
        return 4
    if has_method:
        return 3
    if has_company:
        return 2
    return 1


def rule_matches(rule: Any, payment_method_id: Optional[int], company_id: Optional[int]) -> bool:
    return (rule.payment_method_id is None or rule.payment_method_id == payment_method_id) and (
        rule.company_id is None or rule.company_id == company_id
    )


def group_leaders(rules: Iterable[T]) -> List[T]:
    """Keep the lowest-id rule for each (payment method, company) scope."""
    leaders = {}
    for rule in sorted(rules, key=lambda r: r.id):
        leaders.setdefault((rule.payment_method_id, rule.company_id), rule)
    return list(leaders.values())


def match_commission_rules(
    leaders: Sequence[T], payment_method_id: Optional[int], company_id: Optional[int]
) -> List[T]:
    """Every scope leader that applies, most specific first, then by id."""
    matched = [r for r in leaders if rule_matches(r, payment_method_id, company_id)]
    return sorted(matched, key=lambda r: (-commission_specificity(r), r.id))


def select_payee(payees: Iterable[T]) -> Optional[T]:
    """Prefer a completed (status 3) payee, then the most recent one."""
    ranked = sorted(
        payees,
        key=lambda p: (0 if p.disbursement_status_id == COMPLETED_STATUS else 1, -p.id),
    )
    return ranked[0] if ranked else None
