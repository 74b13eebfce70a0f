"""
Tests for the per-transaction revenue formulas.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from modules.revenue.services.revenue_calculator import (
    EmployeeCommissionTerms,
    ReferralTerms,
    TransactionInputs,
    UpchargeTerms,
    VendorCostTerms,
    calculate_revenue,
    commission_specificity,
    group_leaders,
    is_revenue_transaction,
    is_total_transaction,
    match_commission_rules,
    parse_money,
    select_payee,
    upcharge_fee,
    vendor_cost,
)

D = Decimal


class TestTransactionPredicates:
    """Revenue and total-condition predicates per payment method"""

    @pytest.mark.parametrize("method", [1, 3, 4, 6, 7])
    def test_status_gated_methods_need_completed_status(self, method):
        assert is_revenue_transaction(method, D("2"), D("0"), 3)
        assert not is_revenue_transaction(method, D("2"), D("0"), 2)
        assert is_total_transaction(method, D("2"), 3)
        assert not is_total_transaction(method, D("2"), 1)

    def test_direct_method_ignores_status(self):
        assert is_revenue_transaction(5, D("1"), None, None)
        assert is_total_transaction(5, D("1"), 1)
        assert not is_total_transaction(5, D("0"), 3)

    def test_payor_funded_method(self):
        assert is_revenue_transaction(2, D("1"), D("2"), 3)
        assert not is_revenue_transaction(2, D("1"), D("0"), 3)
        # The total condition only checks status for method 2
        assert is_total_transaction(2, None, 3)
        assert not is_total_transaction(2, D("1"), 2)

    def test_zero_or_missing_payee_fee_is_never_revenue(self):
        assert not is_revenue_transaction(2, D("0"), D("5"), 3)
        assert not is_revenue_transaction(5, None, D("5"), 3)

    def test_unknown_method(self):
        assert not is_revenue_transaction(9, D("1"), D("1"), 3)
        assert not is_total_transaction(9, D("1"), 3)


class TestComponentFormulas:
    def test_upcharge_without_terms(self):
        assert upcharge_fee(None, D("100"), D("1")) == D("0")
        assert upcharge_fee(UpchargeTerms(), D("100"), D("1")) == D("0")

    def test_upcharge_base_plus_multiplier(self):
        terms = UpchargeTerms(base_fee=D("1.00"), multiplier=D("2"))
        assert upcharge_fee(terms, D("100"), D("1")) == D("3.00")

    def test_upcharge_adds_max_fee_when_payee_fee_reaches_it(self):
        terms = UpchargeTerms(base_fee=D("1.00"), multiplier=D("0"), max_fee=D("5.00"))
        assert upcharge_fee(terms, D("100"), D("4.99")) == D("1.00")
        assert upcharge_fee(terms, D("100"), D("5.00")) == D("6.00")

    def test_vendor_cost(self):
        assert vendor_cost(None, D("100")) == D("0")
        assert vendor_cost(VendorCostTerms(cost_amount=D("1.25")), D("100")) == D("1.25")
        terms = VendorCostTerms(cost_amount=D("1.00"), cost_percentage=D("0.5"))
        assert vendor_cost(terms, D("1000")) == D("6.00")

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("$1,250.00", D("1250.00")),
            ("(12.50)", D("-12.50")),
            ("", D("0")),
            ("n/a", D("0")),
            (None, D("0")),
            (3, D("3")),
        ],
    )
    def test_parse_money(self, raw, expected):
        assert parse_money(raw) == expected

    def test_referral_rate_prefers_company_override(self):
        assert ReferralTerms(override_rate=D("2"), default_rate=D("5")).applied_rate == D("2")
        assert ReferralTerms(default_rate=D("5")).applied_rate == D("5")
        assert not ReferralTerms().has_rate


class TestCalculateRevenue:
    """Full breakdown for a single transaction"""

    def _inputs(self, **overrides):
        values = dict(
            payment_method_id=1,
            payee_fee=D("10.00"),
            payor_fee=D("0.00"),
            disbursement_status_id=3,
            amount=D("1000.00"),
            upcharge=UpchargeTerms(base_fee=D("0.50"), multiplier=D("0")),
            vendor=VendorCostTerms(cost_amount=D("1.00"), cost_percentage=D("0.5")),
            employee=EmployeeCommissionTerms(percentage=D("10"), flat_amount="$1.00"),
            referral=ReferralTerms(default_rate=D("5")),
        )
        values.update(overrides)
        return TransactionInputs(**values)

    def test_revenue_transaction_breakdown(self):
        result = calculate_revenue(self._inputs())

        assert result.is_revenue_transaction == 1
        assert result.is_total_transaction == 1
        assert result.gross_revenue == D("10.00")
        assert result.payee_fee_revenue == D("10.00")
        assert result.payor_fee_revenue == D("0.00")
        assert result.company_upcharge_fees == D("0.50")
        assert result.total_vendor_cost == D("6.00")
        assert result.revenue_after_upcharges == D("9.50")
        assert result.revenue_after_operational_costs == D("3.50")
        assert result.employee_commission == D("1.40")
        assert result.revenue_after_employee_commission == D("2.60")
        assert result.applied_referral_rate == D("5")
        assert result.referral_partner_commission == D("0.13")
        assert result.final_net_profit == D("2.47")

    def test_non_revenue_transaction_zeroes_everything(self):
        result = calculate_revenue(self._inputs(disbursement_status_id=1))

        assert result.is_revenue_transaction == 0
        assert result.is_total_transaction == 0
        assert result.gross_revenue == D("0.00")
        assert result.company_upcharge_fees == D("0.00")
        assert result.total_vendor_cost == D("0.00")
        assert result.employee_commission == D("0.00")
        assert result.referral_partner_commission == D("0.00")
        assert result.final_net_profit == D("0.00")

    def test_total_condition_without_revenue_still_pays_commissions(self):
        # Method 2 at status 3 with no payor fee: total condition only
        result = calculate_revenue(
            self._inputs(payment_method_id=2, payee_fee=D("3.00"), payor_fee=D("0.00"))
        )

        assert result.is_revenue_transaction == 0
        assert result.is_total_transaction == 1
        assert result.gross_revenue == D("0.00")
        assert result.total_vendor_cost == D("0.00")
        assert result.total_combined_revenue == D("3.00")
        # Commission base still subtracts the raw vendor cost
        assert result.employee_commission == D("0.70")
        assert result.revenue_after_employee_commission == D("-3.70")

    def test_no_employee_rule(self):
        result = calculate_revenue(self._inputs(employee=None, referral=None))

        assert result.employee_commission == D("0.00")
        assert result.applied_employee_commission_percentage == D("0")
        assert result.revenue_after_employee_commission == D("4.00")
        assert result.referral_partner_commission == D("0.00")
        assert result.final_net_profit == D("4.00")

    def test_missing_fees_count_as_zero(self):
        result = calculate_revenue(
            TransactionInputs(
                payment_method_id=5,
                payee_fee=D("2.00"),
                payor_fee=None,
                disbursement_status_id=None,
                amount=None,
            )
        )

        assert result.gross_revenue == D("2.00")
        assert result.final_net_profit == D("2.00")


class TestCommissionRuleMatching:
    def _rule(self, id, method=None, company=None):
        return SimpleNamespace(id=id, payment_method_id=method, company_id=company)

    def test_specificity_ranking(self):
        assert commission_specificity(self._rule(1, 1, 1)) == 4
        assert commission_specificity(self._rule(1, 1, None)) == 3
        assert commission_specificity(self._rule(1, None, 1)) == 2
        assert commission_specificity(self._rule(1)) == 1

    def test_group_leaders_keep_lowest_id_per_scope(self):
        rules = [self._rule(5, 1, 1), self._rule(2, 1, 1), self._rule(3, None, 1)]
        leaders = group_leaders(rules)
        assert sorted(r.id for r in leaders) == [2, 3]

    def test_matched_rules_most_specific_first(self):
        leaders = [
            self._rule(1),
            self._rule(2, None, 10),
            self._rule(3, 4, None),
            self._rule(4, 4, 10),
            self._rule(5, 4, 11),
        ]
        matched = match_commission_rules(leaders, 4, 10)
        assert [r.id for r in matched] == [4, 3, 2, 1]

    def test_select_payee_prefers_completed_then_latest(self):
        payees = [
            SimpleNamespace(id=1, disbursement_status_id=3),
            SimpleNamespace(id=2, disbursement_status_id=1),
            SimpleNamespace(id=3, disbursement_status_id=3),
        ]
        assert select_payee(payees).id == 3
        assert select_payee([SimpleNamespace(id=4, disbursement_status_id=1)]).id == 4
        assert select_payee([]) is None
