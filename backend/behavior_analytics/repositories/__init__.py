"""
Repository package for data access layer.
"""
from behavior_analytics.repositories.base import BaseRepository
from behavior_analytics.repositories.behavior_event import BehaviorEventRepository
from behavior_analytics.repositories.order import OrderRepository
from behavior_analytics.repositories.product import ProductRepository, is_product_id
from behavior_analytics.repositories.viewed_product import ViewedProductRepository

__all__ = [
    "BaseRepository",
    "BehaviorEventRepository",
    "OrderRepository",
    "ProductRepository",
    "ViewedProductRepository",
    "is_product_id",
]
