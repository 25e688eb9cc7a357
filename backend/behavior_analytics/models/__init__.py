"""
SQLAlchemy models package.
All models are imported here for easy access and Alembic discovery.
"""
from behavior_analytics.models.behavior_event import BehaviorEvent
from behavior_analytics.models.customer import Customer, ViewedProduct
from behavior_analytics.models.order import (
    COMPLETED_STATUSES,
    PLACED_STATUSES,
    REFUND_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
)
from behavior_analytics.models.product import Product

__all__ = [
    "BehaviorEvent",
    "Customer",
    "ViewedProduct",
    "Order",
    "OrderItem",
    "OrderStatus",
    "COMPLETED_STATUSES",
    "PLACED_STATUSES",
    "REFUND_STATUSES",
    "Product",
]
