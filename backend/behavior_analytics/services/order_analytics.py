"""
Order analytics - refunds and abandoned carts.
"""
from typing import Any, Optional
from zoneinfo import ZoneInfo

from behavior_analytics.core.exceptions import report_operation
from behavior_analytics.models.order import PLACED_STATUSES, REFUND_STATUSES
from behavior_analytics.repositories.behavior_event import BehaviorEventRepository
from behavior_analytics.repositories.order import OrderRepository
from behavior_analytics.schemas.events import EventType
from behavior_analytics.services.aggregation import (
    DateRange,
    day_buckets,
    percentage,
    reconstruct_sessions,
    to_float,
)


class OrderAnalyticsService:
    """Reports over order outcomes and cart activity."""

    def __init__(
        self,
        orders: OrderRepository,
        events: BehaviorEventRepository,
        tz: Optional[ZoneInfo] = None,
    ) -> None:
        self.orders = orders
        self.events = events
        self.tz = tz

    @report_operation("refund report")
    async def refund_report(self, date_range: DateRange) -> dict[str, Any]:
        """Refunded and cancelled orders against all orders placed in range."""
        refunded = await self.orders.list_between(
            date_range.start, date_range.end, REFUND_STATUSES
        )
        all_orders = await self.orders.list_between(date_range.start, date_range.end)

        total_refunds = len(refunded)
        total_amount = sum(to_float(order.total) for order in refunded)

        series = day_buckets(
            date_range,
            lambda label: {"date": label, "refunds": 0, "amount": 0.0},
            self.tz,
        )
        for order in refunded:
            bucket = series.get(order.order_date)
            if bucket is not None:
                bucket["refunds"] += 1
                bucket["amount"] = round(bucket["amount"] + to_float(order.total), 2)

        return {
            "summary": {
                "totalRefunds": total_refunds,
                "refundRate": percentage(total_refunds, len(all_orders)),
                "totalRefundAmount": round(total_amount, 2),
                "refundToOrderRatio": round(total_refunds / max(len(all_orders), 1), 3),
            },
            "timeSeries": series.values(),
        }

    @report_operation("abandoned carts")
    async def abandoned_carts(self, date_range: DateRange) -> dict[str, Any]:
        """
        Sessions that added to cart, and how many of them were abandoned.

        A cart is abandoned when its session created no order and none of
        its customers has a placed order in range. Carts are dated by the
        session's first cart or order event.
        """
        events = await self.events.list_between(
            date_range.start,
            date_range.end,
            [EventType.PRODUCT_ADDED_TO_CART, EventType.ORDER_CREATED],
            by_session=True,
        )
        customers_with_orders = await self.orders.customers_with_orders(
            date_range.start, date_range.end, PLACED_STATUSES
        )

        series = day_buckets(
            date_range,
            lambda label: {"date": label, "totalCarts": 0, "abandonedCarts": 0, "rate": 0.0},
            self.tz,
        )
        for session in reconstruct_sessions(events).values():
            if not session.has(EventType.PRODUCT_ADDED_TO_CART):
                continue
            bucket = series.get(session.start)
            if bucket is None:
                continue

            bucket["totalCarts"] += 1
            converted = session.has(EventType.ORDER_CREATED)
            if not converted and not (session.customer_ids & customers_with_orders):
                bucket["abandonedCarts"] += 1

        days = series.values()
        for day in days:
            day["rate"] = percentage(day["abandonedCarts"], day["totalCarts"])

        total_carts = sum(day["totalCarts"] for day in days)
        total_abandoned = sum(day["abandonedCarts"] for day in days)
        return {
            "summary": {
                "totalCarts": total_carts,
                "abandonedCarts": total_abandoned,
                "rate": percentage(total_abandoned, total_carts),
            },
            "timeSeries": days,
        }
