"""
Tests for SalesAnalyticsService.
"""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.exc import OperationalError

from behavior_analytics.core.exceptions import AnalyticsError
from behavior_analytics.models.order import COMPLETED_STATUSES, Order, OrderItem
from behavior_analytics.models.product import Product
from behavior_analytics.services.aggregation import DateRange
from behavior_analytics.services.sales_analytics import SalesAnalyticsService

UTC = timezone.utc
HCM = ZoneInfo("Asia/Ho_Chi_Minh")


def order(total, at: datetime, status: str = "delivered") -> Order:
    return Order(total=Decimal(str(total)), order_date=at, status=status)


def item(product: Product, quantity: int, price=None) -> OrderItem:
    line = OrderItem(quantity=quantity, price=None if price is None else Decimal(str(price)))
    line.product = product
    return line


@pytest.fixture
def orders() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(orders: AsyncMock) -> SalesAnalyticsService:
    return SalesAnalyticsService(orders, tz=HCM, tax_rate=0.1)


@pytest.fixture
def march() -> DateRange:
    return DateRange.of(datetime(2024, 3, 1), datetime(2024, 3, 4), HCM)


class TestSalesReport:

    async def test_summary(self, service, orders, march):
        orders.list_between.side_effect = [
            [
                order(100, datetime(2024, 3, 1, 10, tzinfo=UTC)),
                order(250, datetime(2024, 3, 2, 20, tzinfo=UTC)),
            ],
            [order(200, datetime(2024, 2, 27, 10, tzinfo=UTC))],
        ]

        report = await service.sales_report(march)

        assert report["summary"] == {
            "totalRevenue": 350.0,
            "orderCount": 2,
            "averageOrderValue": 175.0,
            "revenueChange": 75.0,
            "orderCountChange": 100.0,
            "totalTax": 35.0,
        }

    async def test_daily_series_is_dense_in_local_time(self, service, orders, march):
        orders.list_between.side_effect = [
            [
                order(100, datetime(2024, 3, 1, 10, tzinfo=UTC)),
                # 20:00 UTC on the 2nd is the 3rd locally
                order(250, datetime(2024, 3, 2, 20, tzinfo=UTC)),
            ],
            [],
        ]

        report = await service.sales_report(march)

        assert report["timeSeries"] == [
            {"date": "2024-03-01", "revenue": 100.0, "orders": 1},
            {"date": "2024-03-02", "revenue": 0.0, "orders": 0},
            {"date": "2024-03-03", "revenue": 250.0, "orders": 1},
        ]

    async def test_queries_current_and_previous_window(self, service, orders, march):
        orders.list_between.side_effect = [[], []]

        await service.sales_report(march)

        current, previous = orders.list_between.await_args_list
        assert current.args == (march.start, march.end, COMPLETED_STATUSES)
        assert previous.args[1] == march.start

    async def test_no_orders(self, service, orders, march):
        orders.list_between.side_effect = [[], []]

        report = await service.sales_report(march)

        assert report["summary"]["averageOrderValue"] == 0.0
        assert report["summary"]["revenueChange"] == 0.0
        assert len(report["timeSeries"]) == 3

    async def test_failure_is_reported(self, service, orders, march):
        orders.list_between.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        with pytest.raises(AnalyticsError) as exc_info:
            await service.sales_report(march)

        assert exc_info.value.report == "sales report"


class TestBestSellers:

    @pytest.fixture
    def catalogue(self) -> dict[str, Product]:
        return {
            "gpu": Product(id="p-gpu", name="RTX 4070", price=Decimal("15000000"), category="GPU"),
            "cpu": Product(id="p-cpu", name="Ryzen 5", price=Decimal("4000000"), category="CPU"),
            "ram": Product(id="p-ram", name="DDR5 32GB", price=Decimal("2500000"), category=None),
        }

    async def test_products_ranked_by_revenue(self, service, orders, march, catalogue):
        orders.completed_items_between.return_value = [
            item(catalogue["cpu"], 3, price=3900000),
            item(catalogue["gpu"], 1),
            item(catalogue["cpu"], 1),
            item(catalogue["ram"], 2),
        ]

        ranked = await service.best_selling_products(march)

        assert [p["productId"] for p in ranked] == ["p-cpu", "p-gpu", "p-ram"]
        assert ranked[0] == {
            "productId": "p-cpu",
            "name": "Ryzen 5",
            "quantity": 4,
            "revenue": 15700000.0,
        }

    async def test_categories_skip_uncategorised(self, service, orders, march, catalogue):
        orders.completed_items_between.return_value = [
            item(catalogue["gpu"], 2),
            item(catalogue["cpu"], 1),
            item(catalogue["ram"], 10),
        ]

        ranked = await service.best_selling_categories(march)

        assert ranked == [
            {"name": "GPU", "value": 30000000.0},
            {"name": "CPU", "value": 4000000.0},
        ]

    async def test_items_without_product_are_ignored(self, service, orders, march):
        orders.completed_items_between.return_value = [OrderItem(quantity=1, price=Decimal("10"))]

        assert await service.best_selling_products(march) == []
