"""
Sales analytics - revenue, best sellers and category revenue from orders.
"""
from typing import Any, Optional
from zoneinfo import ZoneInfo

from behavior_analytics.core.config import settings
from behavior_analytics.core.exceptions import report_operation
from behavior_analytics.core.logging import get_logger
from behavior_analytics.models.order import COMPLETED_STATUSES, OrderItem
from behavior_analytics.repositories.order import OrderRepository
from behavior_analytics.services.aggregation import (
    DateRange,
    day_buckets,
    percentage,
    to_float,
    to_int,
)

logger = get_logger(__name__)

TOP_N = 5


def _unit_price(item: OrderItem) -> float:
    """Price paid per unit: the line price, else the current product price."""
    if item.price is not None:
        return to_float(item.price)
    if item.product is not None:
        return to_float(item.product.price)
    return 0.0


class SalesAnalyticsService:
    """Reports over completed orders (delivered, paid or completed)."""

    def __init__(
        self,
        orders: OrderRepository,
        tz: Optional[ZoneInfo] = None,
        tax_rate: Optional[float] = None,
    ) -> None:
        self.orders = orders
        self.tz = tz
        self.tax_rate = settings.estimated_tax_rate if tax_rate is None else tax_rate

    @report_operation("sales report")
    async def sales_report(self, date_range: DateRange) -> dict[str, Any]:
        """
        Revenue summary with change against the previous equally long window,
        plus a dense daily revenue series.
        """
        previous_range = date_range.previous()
        orders = await self.orders.list_between(
            date_range.start, date_range.end, COMPLETED_STATUSES
        )
        previous = await self.orders.list_between(
            previous_range.start, previous_range.end, COMPLETED_STATUSES
        )

        total_revenue = sum(to_float(order.total) for order in orders)
        previous_revenue = sum(to_float(order.total) for order in previous)
        order_count = len(orders)

        series = day_buckets(
            date_range,
            lambda label: {"date": label, "revenue": 0.0, "orders": 0},
            self.tz,
        )
        for order in orders:
            bucket = series.get(order.order_date)
            if bucket is not None:
                bucket["revenue"] += to_float(order.total)
                bucket["orders"] += 1

        for bucket in series.values():
            bucket["revenue"] = round(bucket["revenue"], 2)

        logger.debug(
            "Sales report computed",
            orders=order_count,
            previous_orders=len(previous),
        )

        return {
            "summary": {
                "totalRevenue": round(total_revenue, 2),
                "orderCount": order_count,
                "averageOrderValue": round(total_revenue / order_count, 2) if order_count else 0.0,
                "revenueChange": percentage(total_revenue - previous_revenue, previous_revenue, 2),
                "orderCountChange": percentage(order_count - len(previous), len(previous), 2),
                "totalTax": round(total_revenue * self.tax_rate, 2),
            },
            "timeSeries": series.values(),
        }

    @report_operation("best selling products")
    async def best_selling_products(self, date_range: DateRange) -> list[dict[str, Any]]:
        """Top products by revenue across completed orders in range."""
        items = await self.orders.completed_items_between(date_range.start, date_range.end)

        products: dict[str, dict[str, Any]] = {}
        for item in items:
            if item.product is None:
                continue
            quantity = to_int(item.quantity)
            entry = products.setdefault(
                str(item.product.id),
                {
                    "productId": str(item.product.id),
                    "name": item.product.name,
                    "quantity": 0,
                    "revenue": 0.0,
                },
            )
            entry["quantity"] += quantity
            entry["revenue"] += _unit_price(item) * quantity

        ranked = sorted(products.values(), key=lambda p: p["revenue"], reverse=True)[:TOP_N]
        for entry in ranked:
            entry["revenue"] = round(entry["revenue"], 2)
        return ranked

    @report_operation("best selling categories")
    async def best_selling_categories(self, date_range: DateRange) -> list[dict[str, Any]]:
        """Top product categories by revenue across completed orders in range."""
        items = await self.orders.completed_items_between(date_range.start, date_range.end)

        categories: dict[str, float] = {}
        for item in items:
            if item.product is None or not item.product.category:
                continue
            revenue = _unit_price(item) * to_int(item.quantity)
            categories[item.product.category] = categories.get(item.product.category, 0.0) + revenue

        ranked = sorted(categories.items(), key=lambda pair: pair[1], reverse=True)[:TOP_N]
        return [{"name": name, "value": round(value, 2)} for name, value in ranked]
