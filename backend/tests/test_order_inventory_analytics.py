"""
Tests for OrderAnalyticsService and InventoryAnalyticsService.
"""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from behavior_analytics.models.order import PLACED_STATUSES, REFUND_STATUSES, Order
from behavior_analytics.models.product import Product
from behavior_analytics.services.aggregation import DateRange
from behavior_analytics.services.inventory_analytics import InventoryAnalyticsService
from behavior_analytics.services.order_analytics import OrderAnalyticsService

UTC = timezone.utc
HCM = ZoneInfo("Asia/Ho_Chi_Minh")


@pytest.fixture
def march() -> DateRange:
    return DateRange.of(datetime(2024, 3, 1), datetime(2024, 3, 3), HCM)


class TestRefundReport:

    async def test_summary_and_series(self, march):
        orders = AsyncMock()
        refunded = [Order(total=Decimal("50"), order_date=datetime(2024, 3, 1, 4, tzinfo=UTC))]
        placed = refunded + [
            Order(total=Decimal("10"), order_date=datetime(2024, 3, 1, 5, tzinfo=UTC))
            for _ in range(3)
        ]
        orders.list_between.side_effect = [refunded, placed]
        service = OrderAnalyticsService(orders, AsyncMock(), tz=HCM)

        report = await service.refund_report(march)

        assert orders.list_between.await_args_list[0].args[2] == REFUND_STATUSES
        assert report["summary"] == {
            "totalRefunds": 1,
            "refundRate": 25.0,
            "totalRefundAmount": 50.0,
            "refundToOrderRatio": 0.25,
        }
        assert report["timeSeries"] == [
            {"date": "2024-03-01", "refunds": 1, "amount": 50.0},
            {"date": "2024-03-02", "refunds": 0, "amount": 0.0},
        ]

    async def test_no_orders(self, march):
        orders = AsyncMock()
        orders.list_between.side_effect = [[], []]
        service = OrderAnalyticsService(orders, AsyncMock(), tz=HCM)

        report = await service.refund_report(march)

        assert report["summary"]["refundRate"] == 0.0
        assert report["summary"]["refundToOrderRatio"] == 0.0


class TestAbandonedCarts:

    async def test_sessions_without_orders_are_abandoned(self, march, make_event):
        day1 = datetime(2024, 3, 1, 4, tzinfo=UTC)
        day2 = datetime(2024, 3, 2, 4, tzinfo=UTC)
        events = AsyncMock()
        events.list_between.return_value = [
            make_event("product_added_to_cart", day1, session_id="converted"),
            make_event("order_created", day1.replace(hour=5), session_id="converted"),
            make_event("product_added_to_cart", day1, session_id="ordered-elsewhere", customer_id=7),
            make_event("product_added_to_cart", day2, session_id="abandoned"),
            make_event("order_created", day2, session_id="order-only"),
        ]
        orders = AsyncMock()
        orders.customers_with_orders.return_value = {7}
        service = OrderAnalyticsService(orders, events, tz=HCM)

        report = await service.abandoned_carts(march)

        assert orders.customers_with_orders.await_args.args[2] == PLACED_STATUSES
        assert report["summary"] == {"totalCarts": 3, "abandonedCarts": 1, "rate": 33.3}
        assert report["timeSeries"] == [
            {"date": "2024-03-01", "totalCarts": 2, "abandonedCarts": 0, "rate": 0.0},
            {"date": "2024-03-02", "totalCarts": 1, "abandonedCarts": 1, "rate": 100.0},
        ]


class TestInventory:

    @pytest.fixture
    def products(self) -> AsyncMock:
        return AsyncMock()

    @pytest.fixture
    def service(self, products: AsyncMock) -> InventoryAnalyticsService:
        return InventoryAnalyticsService(
            products, tz=HCM, low_stock_threshold=5, excess_stock_threshold=50
        )

    async def test_inventory_report(self, service, products):
        products.list_all.return_value = [
            Product(id="a", name="Sold out GPU", price=Decimal("100"), stock_quantity=0, category="GPU"),
            Product(id="b", name="Last GPUs", price=Decimal("10"), stock_quantity=3, category="GPU"),
            Product(id="c", name="Cables", price=Decimal("1"), stock_quantity=60, category=None),
            Product(id="d", name="CPU", price=Decimal("5"), stock_quantity=10, category="CPU"),
        ]

        report = await service.inventory_report()

        assert report["summary"] == {
            "totalProducts": 4,
            "totalValue": 140.0,
            "outOfStock": 1,
            "lowStock": 1,
            "excessStock": 1,
        }
        assert [c["name"] for c in report["categories"]] == ["Uncategorized", "CPU", "GPU"]
        assert report["lowStockItems"] == [
            {"id": "b", "name": "Last GPUs", "stock": 3, "threshold": 5},
        ]
        assert report["outOfStockItems"] == [
            {"id": "a", "name": "Sold out GPU", "lastInStock": None},
        ]

    async def test_low_stock_page(self, service, products):
        products.stock_page.return_value = (
            [
                Product(
                    id="b",
                    name="Last GPUs",
                    price=Decimal("10"),
                    stock_quantity=3,
                    category="GPU",
                    updated_at=datetime(2024, 3, 1, 20, tzinfo=UTC),
                ),
            ],
            11,
        )

        page = await service.low_stock_products(page=2, limit=5, search="")

        assert page["total"] == 11
        assert page["pages"] == 3
        assert page["items"][0]["updatedAt"] == "2024-03-02"
        kwargs = products.stock_page.await_args.kwargs
        assert kwargs == {"page": 2, "limit": 5, "search": None}

    async def test_page_size_is_clamped(self, service, products):
        products.stock_page.return_value = ([], 0)

        page = await service.out_of_stock_products(page=0, limit=500, search="rtx")

        assert page == {"items": [], "total": 0, "page": 1, "limit": 100, "pages": 0}
        assert products.stock_page.await_args.kwargs["search"] == "rtx"

    async def test_product_categories(self, service, products):
        products.category_counts.return_value = [("GPU", 4), ("CPU", 2)]

        assert await service.product_categories() == [
            {"name": "GPU", "count": 4},
            {"name": "CPU", "count": 2},
        ]
