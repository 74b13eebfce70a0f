"""
Tests for master view assembly over the seeded source tables.
"""

from datetime import datetime
from decimal import Decimal

from modules.revenue.services.master_view_service import (
    RECORD_FIELDS,
    RevenueMasterViewService,
    SourceQuery,
    record_to_json,
)


class TestBuildRecords:
    def test_one_record_per_transaction_and_matched_rule(self, seeded_sources):
        records = RevenueMasterViewService(seeded_sources).build_records()

        assert [r.dt_id for r in records] == [1, 2]
        assert records[0].key == (1, 100, 1, 7, 1)
        assert records[1].key == (2, 200, 2, None, None)

    def test_joined_reference_data(self, seeded_sources):
        acme, beta = RevenueMasterViewService(seeded_sources).build_records()

        assert acme.company == "Acme Insurance"
        assert acme.payment_method_description == "ACH"
        assert acme.amount == Decimal("1000.00")
        assert acme.disbursement_status_id == 3
        # Lowest id vendor row wins for the payment method
        assert acme.vendor_name == "VendorA"
        assert acme.employee_name == "Jane Doe"
        assert acme.employee_commission_amount == Decimal("1.00")
        assert acme.referral_partner_name == "Partner P"
        assert acme.referral_partner_type == "Broker"
        assert acme.company_override_rate is None
        assert acme.disbursement_updated_at == datetime(2024, 3, 1, 12, 0)

        assert beta.company == "Beta Mutual"
        assert beta.vendor_name is None
        assert beta.employee_name is None
        assert beta.referral_partner_name is None

    def test_formulas_applied(self, seeded_sources):
        acme, beta = RevenueMasterViewService(seeded_sources).build_records()

        assert acme.gross_revenue == Decimal("10.00")
        assert acme.company_upcharge_fees == Decimal("0.50")
        assert acme.total_vendor_cost == Decimal("6.00")
        assert acme.employee_commission == Decimal("1.40")
        assert acme.referral_partner_commission == Decimal("0.13")
        assert acme.final_net_profit == Decimal("2.47")

        assert beta.gross_revenue == Decimal("5.00")
        assert beta.payee_fee_revenue == Decimal("4.00")
        assert beta.payor_fee_revenue == Decimal("1.00")
        assert beta.final_net_profit == Decimal("5.00")

    def test_inactive_commission_rules_are_ignored(self, seeded_sources):
        records = RevenueMasterViewService(seeded_sources).build_records()
        assert "Retired Rep" not in {r.employee_name for r in records}

    def test_source_query_restrictions(self, seeded_sources):
        service = RevenueMasterViewService(seeded_sources)

        assert [r.dt_id for r in service.build_records(SourceQuery(company_ids=[2]))] == [2]
        assert [r.dt_id for r in service.build_records(SourceQuery(payment_method_ids=[1]))] == [1]
        assert [
            r.dt_id
            for r in service.build_records(SourceQuery(start=datetime(2024, 3, 2)))
        ] == [2]
        assert service.build_records(SourceQuery(end=datetime(2024, 2, 1))) == []

    def test_no_transactions(self, db_session):
        assert RevenueMasterViewService(db_session).build_records() == []


class TestRecordSerialization:
    def test_record_to_json_converts_decimals_and_datetimes(self, seeded_sources):
        record = RevenueMasterViewService(seeded_sources).build_records()[0]
        data = record_to_json(record)

        assert set(data) == set(RECORD_FIELDS)
        assert data["gross_revenue"] == 10.0
        assert data["created_at"] == "2024-03-01T10:00:00"
        assert data["employee_name"] == "Jane Doe"
