"""
Services package for business logic layer.
"""
from behavior_analytics.services.aggregation import DateRange
from behavior_analytics.services.analytics_facade import AnalyticsService
from behavior_analytics.services.event_service import HANDLERS, EventService
from behavior_analytics.services.inventory_analytics import InventoryAnalyticsService
from behavior_analytics.services.order_analytics import OrderAnalyticsService
from behavior_analytics.services.sales_analytics import SalesAnalyticsService
from behavior_analytics.services.user_behavior_analytics import UserBehaviorAnalyticsService

__all__ = [
    "AnalyticsService",
    "DateRange",
    "EventService",
    "HANDLERS",
    "InventoryAnalyticsService",
    "OrderAnalyticsService",
    "SalesAnalyticsService",
    "UserBehaviorAnalyticsService",
]
