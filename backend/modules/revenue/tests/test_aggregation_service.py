"""
KPI, chart and summary aggregation tests.
"""

from decimal import Decimal
from types import SimpleNamespace

from modules.revenue.services.aggregation_service import (
    UNKNOWN_COMPANY,
    build_charts,
    calculate_kpis,
    calculate_summary,
    company_performance,
)
from modules.revenue.services.master_view_service import RevenueMasterViewService


class TestKpis:
    def test_kpis_over_seeded_records(self, seeded_sources):
        records = RevenueMasterViewService(seeded_sources).build_records()
        kpis = calculate_kpis(records)

        assert kpis.total_revenue == 15.0
        assert kpis.total_transactions == 2
        assert kpis.average_transaction_amount == 7.5
        assert kpis.payee_fee_revenue == 14.0
        assert kpis.payor_fee_revenue == 1.0
        assert kpis.total_costs == 6.5
        assert kpis.gross_profit == 8.5
        assert kpis.total_commissions == 1.53
        assert kpis.net_profit == 6.97
        assert kpis.profit_margin == 46.47

    def test_empty_records(self):
        kpis = calculate_kpis([])
        assert kpis.total_revenue == 0.0
        assert kpis.total_transactions == 0
        assert kpis.average_transaction_amount == 0.0
        assert kpis.profit_margin == 0.0

    def test_cached_rows_with_missing_values(self):
        rows = [
            SimpleNamespace(
                gross_revenue=Decimal("4.00"),
                is_total_transaction=1,
                payee_fee_revenue=Decimal("4.00"),
                payor_fee_revenue=None,
                total_vendor_cost=None,
                company_upcharge_fees=None,
                employee_commission=None,
                referral_partner_commission=None,
            )
        ]
        kpis = calculate_kpis(rows)
        assert kpis.total_revenue == 4.0
        assert kpis.net_profit == 4.0
        assert kpis.profit_margin == 100.0


class TestCharts:
    def test_company_bars_sorted_by_revenue(self, seeded_sources):
        records = RevenueMasterViewService(seeded_sources).build_records()
        bars = company_performance(records)

        assert [bar.label for bar in bars] == ["Acme Insurance", "Beta Mutual"]
        acme = bars[0]
        assert acme.value == 10.0
        assert acme.transactions == 1
        assert acme.costs == 6.5
        assert acme.commissions == 1.53
        assert acme.profit == 2.47
        assert bars[1].profit == 5.0

    def test_bar_profit_sums_final_net_profit(self):
        rows = [
            SimpleNamespace(
                company="Acme Insurance",
                gross_revenue=Decimal("10.00"),
                is_total_transaction=1,
                total_vendor_cost=Decimal("2.00"),
                company_upcharge_fees=Decimal("3.00"),
                employee_commission=Decimal("1.00"),
                referral_partner_commission=Decimal("0.00"),
                final_net_profit=Decimal("7.00"),
            )
        ]
        bar = company_performance(rows)[0]

        assert bar.costs == 5.0
        assert bar.commissions == 1.0
        assert bar.profit == 7.0

    def test_records_without_company_are_grouped(self):
        rows = [
            SimpleNamespace(
                company=None,
                gross_revenue=1,
                is_total_transaction=1,
                total_vendor_cost=0,
                company_upcharge_fees=0,
                employee_commission=0,
                referral_partner_commission=0,
            )
        ]
        assert company_performance(rows)[0].label == UNKNOWN_COMPANY

    def test_fee_split_percentages(self, seeded_sources):
        records = RevenueMasterViewService(seeded_sources).build_records()
        charts = build_charts(records, calculate_kpis(records))

        payee, payor = charts.pie_chart
        assert payee.label == "Payee Fees"
        assert payee.percentage == 93.33
        assert payor.percentage == 6.67

    def test_fee_split_with_no_fees(self):
        charts = build_charts([], calculate_kpis([]))
        assert [s.percentage for s in charts.pie_chart] == [0.0, 0.0]
        assert charts.bar_chart == []


class TestSummary:
    def test_summary_totals(self, seeded_sources):
        records = RevenueMasterViewService(seeded_sources).build_records()
        summary = calculate_summary(records)

        assert summary.totalTransactions == 2
        assert summary.totalRevenue == 15.0
        assert summary.totalEmployeeCommissions == 1.4
        assert summary.totalReferralCommissions == 0.13
        assert summary.totalVendorCosts == 6.0
        assert summary.totalUpcharges == 0.5
        assert summary.netProfit == 7.47
        assert summary.averageRevenuePerTransaction == 7.5
