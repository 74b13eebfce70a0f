# backend/modules/revenue/services/aggregation_service.py

"""
KPI and chart aggregation over revenue master records.

Works on anything exposing the master record attributes, so both freshly
built ``RevenueMasterRecord`` objects and ``RevenueMasterCache`` rows can
be aggregated.
"""

from decimal import Decimal
from typing import Any, Dict, List, Sequence

from ..schemas.revenue_schemas import (
    ChartData,
    CompanyPerformance,
    FeeSplitSlice,
    RevenueKPIs,
    RevenueSummary,
)
from .revenue_calculator import ZERO, quantize, to_decimal

UNKNOWN_COMPANY = "Unknown Company"


def _sum(records: Sequence[Any], attribute: str) -> Decimal:
    total = ZERO
    for record in records:
        value = to_decimal(getattr(record, attribute, None))
        if value is not None:
            total += value
    return total


def _money(value: Decimal) -> float:
    return float(quantize(value))


def calculate_kpis(records: Sequence[Any]) -> RevenueKPIs:
    total_revenue = _sum(records, "gross_revenue")
    total_transactions = int(_sum(records, "is_total_transaction"))
    payee_revenue = _sum(records, "payee_fee_revenue")
    payor_revenue = _sum(records, "payor_fee_revenue")
    total_costs = _sum(records, "total_vendor_cost") + _sum(records, "company_upcharge_fees")
    total_commissions = _sum(records, "employee_commission") + _sum(
        records, "referral_partner_commission"
    )
    gross_profit = total_revenue - total_costs
    net_profit = gross_profit - total_commissions

    average = total_revenue / total_transactions if total_transactions else ZERO
    margin = net_profit / total_revenue * 100 if total_revenue else ZERO

    return RevenueKPIs(
        total_revenue=_money(total_revenue),
        total_transactions=total_transactions,
        average_transaction_amount=_money(average),
        payee_fee_revenue=_money(payee_revenue),
        payor_fee_revenue=_money(payor_revenue),
        total_costs=_money(total_costs),
        gross_profit=_money(gross_profit),
        total_commissions=_money(total_commissions),
        net_profit=_money(net_profit),
        profit_margin=_money(margin),
    )


def company_performance(records: Sequence[Any]) -> List[CompanyPerformance]:
    grouped: Dict[str, List[Any]] = {}
    for record in records:
        grouped.setdefault(record.company or UNKNOWN_COMPANY, []).append(record)

    bars = []
    for company, rows in grouped.items():
        revenue = _sum(rows, "gross_revenue")
        costs = _sum(rows, "total_vendor_cost") + _sum(rows, "company_upcharge_fees")
        commissions = _sum(rows, "employee_commission") + _sum(rows, "referral_partner_commission")
        bars.append(
            CompanyPerformance(
                label=company,
                value=_money(revenue),
                transactions=int(_sum(rows, "is_total_transaction")),
                costs=_money(costs),
                commissions=_money(commissions),
                profit=_money(_sum(rows, "final_net_profit")),
            )
        )
    bars.sort(key=lambda bar: bar.value, reverse=True)
    return bars


def fee_split(kpis: RevenueKPIs) -> List[FeeSplitSlice]:
    total = kpis.payee_fee_revenue + kpis.payor_fee_revenue

    def percentage(value: float) -> float:
        return round(value / total * 100, 2) if total else 0.0

    return [
        FeeSplitSlice(label="Payee Fees", value=kpis.payee_fee_revenue, percentage=percentage(kpis.payee_fee_revenue)),
        FeeSplitSlice(label="Payor Fees", value=kpis.payor_fee_revenue, percentage=percentage(kpis.payor_fee_revenue)),
    ]


def build_charts(records: Sequence[Any], kpis: RevenueKPIs) -> ChartData:
    return ChartData(bar_chart=company_performance(records), pie_chart=fee_split(kpis))


def calculate_summary(records: Sequence[Any]) -> RevenueSummary:
    """Totals reported by the analytics endpoint"""
    transactions = int(_sum(records, "is_total_transaction"))
    revenue = _sum(records, "gross_revenue")
    return RevenueSummary(
        totalTransactions=transactions,
        totalRevenue=_money(revenue),
        totalEmployeeCommissions=_money(_sum(records, "employee_commission")),
        totalReferralCommissions=_money(_sum(records, "referral_partner_commission")),
        totalVendorCosts=_money(_sum(records, "total_vendor_cost")),
        totalUpcharges=_money(_sum(records, "company_upcharge_fees")),
        netProfit=_money(_sum(records, "final_net_profit")),
        averageRevenuePerTransaction=_money(revenue / transactions if transactions else ZERO),
    )
