"""
Single entry point for every report.

Each method forwards to exactly one analytics service; the facade only
wires repositories to services for a database session.
"""
from collections.abc import Sequence
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from behavior_analytics.repositories.behavior_event import BehaviorEventRepository
from behavior_analytics.repositories.order import OrderRepository
from behavior_analytics.repositories.product import ProductRepository
from behavior_analytics.schemas.events import EventType
from behavior_analytics.services.aggregation import DateRange
from behavior_analytics.services.inventory_analytics import InventoryAnalyticsService
from behavior_analytics.services.order_analytics import OrderAnalyticsService
from behavior_analytics.services.sales_analytics import SalesAnalyticsService
from behavior_analytics.services.user_behavior_analytics import UserBehaviorAnalyticsService


class AnalyticsService:
    """Facade over the sales, order, inventory and user-behavior services."""

    def __init__(
        self,
        sales: SalesAnalyticsService,
        orders: OrderAnalyticsService,
        inventory: InventoryAnalyticsService,
        behavior: UserBehaviorAnalyticsService,
    ) -> None:
        self.sales = sales
        self.orders = orders
        self.inventory = inventory
        self.behavior = behavior

    @classmethod
    def from_session(cls, session: AsyncSession, tz: Optional[ZoneInfo] = None) -> "AnalyticsService":
        events = BehaviorEventRepository(session)
        orders = OrderRepository(session)
        products = ProductRepository(session)
        return cls(
            sales=SalesAnalyticsService(orders, tz=tz),
            orders=OrderAnalyticsService(orders, events, tz=tz),
            inventory=InventoryAnalyticsService(products, tz=tz),
            behavior=UserBehaviorAnalyticsService(events, products, tz=tz),
        )

    # Sales
    async def sales_report(self, date_range: DateRange) -> dict[str, Any]:
        return await self.sales.sales_report(date_range)

    async def best_selling_products(self, date_range: DateRange) -> list[dict[str, Any]]:
        return await self.sales.best_selling_products(date_range)

    async def best_selling_categories(self, date_range: DateRange) -> list[dict[str, Any]]:
        return await self.sales.best_selling_categories(date_range)

    # Orders
    async def refund_report(self, date_range: DateRange) -> dict[str, Any]:
        return await self.orders.refund_report(date_range)

    async def abandoned_carts(self, date_range: DateRange) -> dict[str, Any]:
        return await self.orders.abandoned_carts(date_range)

    # Inventory
    async def inventory_report(self) -> dict[str, Any]:
        return await self.inventory.inventory_report()

    async def low_stock_products(
        self, page: int = 1, limit: int = 10, search: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.inventory.low_stock_products(page, limit, search)

    async def out_of_stock_products(
        self, page: int = 1, limit: int = 10, search: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.inventory.out_of_stock_products(page, limit, search)

    async def product_categories(self) -> list[dict[str, Any]]:
        return await self.inventory.product_categories()

    # User behavior
    async def user_behavior_report(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.user_behavior_report(date_range)

    async def user_engagement_metrics(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.user_engagement_metrics(date_range)

    async def most_viewed_products(self, date_range: DateRange) -> list[dict[str, Any]]:
        return await self.behavior.most_viewed_products(date_range)

    async def conversion_rates(self, date_range: DateRange) -> list[dict[str, Any]]:
        return await self.behavior.conversion_rates(date_range)

    async def user_journey(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.user_journey(date_range)

    async def search_analytics(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.search_analytics(date_range)

    async def user_interests(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.user_interests(date_range)

    async def shopping_behavior(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.shopping_behavior(date_range)

    async def discount_impact(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.discount_impact(date_range)

    async def behavior_insights(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.behavior_insights(date_range)

    async def pc_build_analytics(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.pc_build_analytics(date_range)

    async def funnel_analysis(
        self,
        date_range: DateRange,
        steps: Optional[Sequence[EventType]] = None,
    ) -> dict[str, Any]:
        return await self.behavior.funnel_analysis(date_range, steps)

    async def cohort_retention(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.cohort_retention(date_range)

    async def device_analytics(self, date_range: DateRange) -> dict[str, Any]:
        return await self.behavior.device_analytics(date_range)
