"""
Tests for the admin analytics routes: auth, date range parsing and
error rendering. Report services are replaced with mocks.
"""
from datetime import datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from behavior_analytics.core.exceptions import AnalyticsError
from behavior_analytics.main import app
from behavior_analytics.routers.analytics import get_analytics_service
from behavior_analytics.schemas.events import EventType
from behavior_analytics.services.analytics_facade import AnalyticsService

HCM = ZoneInfo("Asia/Ho_Chi_Minh")

SALES_REPORT = {
    "summary": {
        "totalRevenue": 350.0,
        "orderCount": 2,
        "averageOrderValue": 175.0,
        "revenueChange": 0.0,
        "orderCountChange": 0.0,
        "totalTax": 35.0,
    },
    "timeSeries": [{"date": "2024-03-01", "revenue": 350.0, "orders": 2}],
}


@pytest.fixture
def analytics() -> AsyncMock:
    service = AsyncMock(spec=AnalyticsService)
    service.sales_report.return_value = SALES_REPORT
    service.user_behavior_report.return_value = {"summary": {}, "visitorData": []}
    service.inventory_report.return_value = {"summary": {"totalProducts": 0}}
    service.funnel_analysis.return_value = {
        "steps": [
            {
                "step": "product_viewed",
                "label": "Product View",
                "users": 3,
                "dropoff": 0,
                "conversionRate": 100.0,
            },
        ],
        "overallConversion": 100.0,
    }
    service.low_stock_products.return_value = {
        "items": [],
        "total": 0,
        "page": 1,
        "limit": 10,
        "pages": 0,
    }
    app.dependency_overrides[get_analytics_service] = lambda: service
    return service


class TestAuth:

    def test_requires_token(self, client, analytics):
        response = client.get("/api/analytics/sales")

        assert response.status_code == 401
        analytics.sales_report.assert_not_awaited()

    def test_requires_admin_role(self, client, analytics, customer_headers):
        response = client.get("/api/analytics/sales", headers=customer_headers)

        assert response.status_code == 403

    def test_rejects_garbage_token(self, client, analytics):
        response = client.get(
            "/api/analytics/sales",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401


class TestDateRange:

    def test_date_bounds_cover_whole_end_day(self, client, analytics, admin_headers):
        response = client.get(
            "/api/analytics/sales?startDate=2024-03-01&endDate=2024-03-07",
            headers=admin_headers,
        )

        assert response.status_code == 200
        date_range = analytics.sales_report.await_args.args[0]
        assert date_range.start == datetime(2024, 3, 1, tzinfo=HCM)
        assert date_range.end == datetime(2024, 3, 8, tzinfo=HCM)

    def test_datetime_bounds_keep_offset(self, client, analytics, admin_headers):
        client.get(
            "/api/analytics/user-behavior",
            params={"startDate": "2024-03-01T00:00:00Z", "endDate": "2024-03-02T12:00:00+07:00"},
            headers=admin_headers,
        )

        date_range = analytics.user_behavior_report.await_args.args[0]
        assert date_range.start.utcoffset().total_seconds() == 0
        assert date_range.end.utcoffset().total_seconds() == 7 * 3600

    def test_defaults_to_last_thirty_days(self, client, analytics, admin_headers):
        client.get("/api/analytics/sales", headers=admin_headers)

        date_range = analytics.sales_report.await_args.args[0]
        assert date_range.duration.days == 30

    def test_invalid_date(self, client, analytics, admin_headers):
        response = client.get(
            "/api/analytics/sales?startDate=yesterday",
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid date format for startDate"
        analytics.sales_report.assert_not_awaited()

    def test_start_after_end(self, client, analytics, admin_headers):
        response = client.get(
            "/api/analytics/sales?startDate=2024-03-10&endDate=2024-03-01",
            headers=admin_headers,
        )

        assert response.status_code == 400


class TestReports:

    def test_sales_report_body(self, client, analytics, admin_headers):
        response = client.get("/api/analytics/sales", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == SALES_REPORT

    @pytest.mark.parametrize("path", ["/api/analytics/sales", "/api/analytics/sales-report"])
    def test_sales_alias(self, client, analytics, admin_headers, path):
        assert client.get(path, headers=admin_headers).status_code == 200

    @pytest.mark.parametrize("path", ["/api/analytics/inventory", "/api/analytics/inventory-report"])
    def test_inventory_alias(self, client, analytics, admin_headers, path):
        response = client.get(path, headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"summary": {"totalProducts": 0}}

    def test_report_failure(self, client, analytics, admin_headers):
        analytics.sales_report.side_effect = AnalyticsError("sales report", "connection lost")

        response = client.get("/api/analytics/sales", headers=admin_headers)

        assert response.status_code == 500
        assert response.json() == {
            "detail": "Failed to build sales report",
            "report": "sales report",
        }

    def test_low_stock_paging(self, client, analytics, admin_headers):
        response = client.get(
            "/api/analytics/inventory/low-stock?page=2&limit=20&search=rtx",
            headers=admin_headers,
        )

        assert response.status_code == 200
        analytics.low_stock_products.assert_awaited_once_with(2, 20, "rtx")

    def test_low_stock_limit_validation(self, client, analytics, admin_headers):
        response = client.get(
            "/api/analytics/inventory/low-stock?limit=500",
            headers=admin_headers,
        )

        assert response.status_code == 422


class TestFunnelSteps:

    def test_default_steps(self, client, analytics, admin_headers):
        response = client.get("/api/analytics/funnel", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["steps"][0]["conversionRate"] == 100.0
        assert analytics.funnel_analysis.await_args.args[1] is None

    def test_custom_steps(self, client, analytics, admin_headers):
        client.get(
            "/api/analytics/funnel?steps=product_viewed, order_created",
            headers=admin_headers,
        )

        assert analytics.funnel_analysis.await_args.args[1] == [
            EventType.PRODUCT_VIEWED,
            EventType.ORDER_CREATED,
        ]

    def test_unknown_step(self, client, analytics, admin_headers):
        response = client.get(
            "/api/analytics/funnel?steps=product_viewed,wishlist_added",
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown funnel step: wishlist_added"
