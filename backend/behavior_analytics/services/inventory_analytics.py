"""
Inventory analytics - stock levels and stock value by category.
"""
import math
from typing import Any, Optional
from zoneinfo import ZoneInfo

from behavior_analytics.core.config import settings
from behavior_analytics.core.exceptions import report_operation
from behavior_analytics.models.product import Product
from behavior_analytics.repositories.product import ProductRepository
from behavior_analytics.services.aggregation import local_day, to_float, to_int

TOP_CATEGORIES = 6
TOP_ITEMS = 5
MAX_PAGE_SIZE = 100


class InventoryAnalyticsService:
    """Reports over the product catalogue's stock levels."""

    def __init__(
        self,
        products: ProductRepository,
        tz: Optional[ZoneInfo] = None,
        low_stock_threshold: Optional[int] = None,
        excess_stock_threshold: Optional[int] = None,
    ) -> None:
        self.products = products
        self.tz = tz
        self.low_stock_threshold = (
            settings.low_stock_threshold if low_stock_threshold is None else low_stock_threshold
        )
        self.excess_stock_threshold = (
            settings.excess_stock_threshold
            if excess_stock_threshold is None
            else excess_stock_threshold
        )

    @report_operation("inventory report")
    async def inventory_report(self) -> dict[str, Any]:
        """Stock totals, value by category and the first low/out-of-stock items."""
        products = await self.products.list_all()

        total_value = 0.0
        out_of_stock: list[dict[str, Any]] = []
        low_stock: list[dict[str, Any]] = []
        excess_stock = 0
        categories: dict[str, dict[str, Any]] = {}

        for product in products:
            stock = to_int(product.stock_quantity)
            value = to_float(product.price) * stock
            total_value += value

            if stock <= 0:
                out_of_stock.append({
                    "id": str(product.id),
                    "name": product.name,
                    "lastInStock": self._day(product),
                })
            elif stock <= self.low_stock_threshold:
                low_stock.append({
                    "id": str(product.id),
                    "name": product.name,
                    "stock": stock,
                    "threshold": self.low_stock_threshold,
                })
            elif stock >= self.excess_stock_threshold:
                excess_stock += 1

            name = product.category or "Uncategorized"
            category = categories.setdefault(name, {"name": name, "count": 0, "value": 0.0})
            category["count"] += 1
            category["value"] += value

        top_categories = sorted(categories.values(), key=lambda c: c["value"], reverse=True)
        for category in top_categories:
            category["value"] = round(category["value"], 2)

        return {
            "summary": {
                "totalProducts": len(products),
                "totalValue": round(total_value, 2),
                "outOfStock": len(out_of_stock),
                "lowStock": len(low_stock),
                "excessStock": excess_stock,
            },
            "categories": top_categories[:TOP_CATEGORIES],
            "lowStockItems": low_stock[:TOP_ITEMS],
            "outOfStockItems": out_of_stock[:TOP_ITEMS],
        }

    @report_operation("low stock products")
    async def low_stock_products(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> dict[str, Any]:
        """Paginated products with 0 < stock <= the low stock threshold."""
        condition = (Product.stock_quantity > 0) & (
            Product.stock_quantity <= self.low_stock_threshold
        )
        return await self._stock_page(condition, page, limit, search)

    @report_operation("out of stock products")
    async def out_of_stock_products(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> dict[str, Any]:
        """Paginated products with no stock left."""
        return await self._stock_page(Product.stock_quantity <= 0, page, limit, search)

    @report_operation("product categories")
    async def product_categories(self) -> list[dict[str, Any]]:
        counts = await self.products.category_counts()
        return [{"name": name, "count": count} for name, count in counts]

    async def _stock_page(
        self,
        condition: Any,
        page: int,
        limit: int,
        search: Optional[str],
    ) -> dict[str, Any]:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        products, total = await self.products.stock_page(
            condition, page=page, limit=limit, search=search or None
        )
        return {
            "items": [
                {
                    "id": str(product.id),
                    "name": product.name,
                    "stock": to_int(product.stock_quantity),
                    "category": product.category,
                    "price": to_float(product.price),
                    "updatedAt": self._day(product),
                }
                for product in products
            ],
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if total else 0,
        }

    def _day(self, product: Product) -> Optional[str]:
        if product.updated_at is None:
            return None
        return local_day(product.updated_at, self.tz).isoformat()
