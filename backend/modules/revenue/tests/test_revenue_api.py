"""
API tests for the revenue dashboard and revenue analytics endpoints.
"""

from modules.audit.models.audit_models import AuditLog
from modules.zoho.services.zoho_client import get_zoho_client


class TestDashboardQuery:
    """POST /api/revenue-dashboard/query"""

    def test_requires_authentication(self, client):
        response = client.post("/api/revenue-dashboard/query", json={})
        assert response.status_code == 401
        assert response.json()["error_code"] == "TOKEN_MISSING"

    def test_default_query(self, client, seeded_sources, user_headers):
        response = client.post("/api/revenue-dashboard/query", json={}, headers=user_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        # Newest first by default
        assert [row["dt_id"] for row in body["data"]] == [2, 1]
        assert body["pagination"]["totalRecords"] == 2
        assert body["pagination"]["recordRange"] == "1-2 of 2"
        assert body["kpis"]["total_revenue"] == 15.0
        assert body["kpis"]["net_profit"] == 6.97
        assert body["charts"]["bar_chart"][0]["label"] == "Acme Insurance"
        assert body["metadata"]["sort_field"] == "created_at"

    def test_kpis_cover_all_pages(self, client, seeded_sources, user_headers):
        response = client.post(
            "/api/revenue-dashboard/query",
            json={"page": 2, "page_size": 1, "sort_field": "amount", "sort_order": "asc"},
            headers=user_headers,
        )

        body = response.json()
        assert [row["dt_id"] for row in body["data"]] == [1]
        assert body["pagination"]["hasPreviousPage"] is True
        assert body["pagination"]["hasNextPage"] is False
        assert body["kpis"]["total_transactions"] == 2

    def test_filters(self, client, seeded_sources, user_headers):
        response = client.post(
            "/api/revenue-dashboard/query",
            json={
                "filters": {
                    "date_range": {
                        "type": "custom",
                        "start_date": "2024-03-01",
                        "end_date": "2024-03-02",
                    },
                    "employees": {"selected_employees": ["Jane Doe"]},
                }
            },
            headers=user_headers,
        )

        body = response.json()
        assert [row["dt_id"] for row in body["data"]] == [1]
        assert body["kpis"]["total_revenue"] == 10.0
        assert body["metadata"]["filters_applied"]["employees"] == {
            "selected_employees": ["Jane Doe"]
        }

    def test_invalid_query_lists_every_problem(self, client, user_headers):
        response = client.post(
            "/api/revenue-dashboard/query",
            json={"page_size": 5000, "sort_field": "nope"},
            headers=user_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid dashboard query"
        assert body["error_code"] == "VALIDATION_ERROR"
        assert len(body["details"]) == 2

    def test_malformed_body(self, client, user_headers):
        response = client.post(
            "/api/revenue-dashboard/query", json={"page": "first"}, headers=user_headers
        )
        assert response.status_code == 400


class TestRevenueAnalytics:
    """/api/revenue-analytics endpoints"""

    def test_sync_requires_admin(self, client, user_headers):
        response = client.post("/api/revenue-analytics/sync", json={}, headers=user_headers)
        assert response.status_code == 403

    def test_sync_then_read_from_cache(self, client, seeded_sources, admin_headers, user_headers):
        sync = client.post("/api/revenue-analytics/sync", json={}, headers=admin_headers)

        assert sync.status_code == 200
        assert sync.json()["records_inserted"] == 2
        assert sync.json()["status"] == "completed"
        audit = seeded_sources.query(AuditLog).filter(AuditLog.action_type == "data_sync").one()
        assert audit.table_name == "revenue_master_view_cache"

        response = client.get("/api/revenue-analytics", headers=user_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "cache"
        assert body["data"]["summary"]["totalRevenue"] == 15.0
        assert body["data"]["companies"] == ["Acme Insurance", "Beta Mutual"]

        filtered = client.get(
            "/api/revenue-analytics",
            params={"companyIds": "2", "startDate": "2024-03-01", "endDate": "2024-03-31"},
            headers=user_headers,
        )
        assert filtered.json()["data"]["summary"]["totalRevenue"] == 5.0

    def test_bad_query_parameters(self, client, user_headers):
        reversed_dates = client.get(
            "/api/revenue-analytics",
            params={"startDate": "2024-03-02", "endDate": "2024-03-01"},
            headers=user_headers,
        )
        assert reversed_dates.status_code == 400

        bad_ids = client.get(
            "/api/revenue-analytics", params={"companyIds": "1,x"}, headers=user_headers
        )
        assert bad_ids.status_code == 400
        assert bad_ids.json()["error"] == "companyIds must be a comma separated list of ids"

    def test_zoho_source_when_not_configured(self, client, user_headers):
        class UnconfiguredClient:
            configured = False

        client.app.dependency_overrides[get_zoho_client] = lambda: UnconfiguredClient()
        response = client.get(
            "/api/revenue-analytics", params={"source": "zoho"}, headers=user_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Zoho Analytics is not configured"

    def test_sync_status_and_filter_options(self, client, seeded_sources, admin_headers, user_headers):
        empty = client.get("/api/revenue-analytics/sync-status", headers=user_headers)
        assert empty.status_code == 200
        assert empty.json() is None

        client.post("/api/revenue-analytics/sync", json={}, headers=admin_headers)

        status = client.get("/api/revenue-analytics/sync-status", headers=user_headers).json()
        assert status["status"] == "completed"
        assert status["fetch_method"] == "database"

        options = client.get("/api/revenue-analytics/filter-options", headers=user_headers).json()
        assert [c["name"] for c in options["companies"]] == ["Acme Insurance", "Beta Mutual"]

    def test_cache_cleanup(self, client, seeded_sources, admin_headers, user_headers):
        client.post("/api/revenue-analytics/sync", json={}, headers=admin_headers)

        forbidden = client.delete("/api/revenue-analytics/cache", headers=user_headers)
        assert forbidden.status_code == 403

        response = client.delete(
            "/api/revenue-analytics/cache", params={"months": 1}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["deleted"] == 0
