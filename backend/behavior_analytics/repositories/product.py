"""
Product repository for inventory reports and name enrichment.
"""
import re
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.sql.elements import ColumnElement

from behavior_analytics.models.product import Product
from behavior_analytics.repositories.base import BaseRepository

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_product_id(value: object) -> bool:
    """Whether a value can be looked up in the products table."""
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


class ProductRepository(BaseRepository[Product]):
    """Repository for Product model operations."""

    model = Product

    async def list_all(self) -> list[Product]:
        """Every product, ordered by name."""
        result = await self.session.execute(select(Product).order_by(Product.name))
        return list(result.scalars().all())

    async def names_for(self, product_ids: Iterable[str]) -> dict[str, str]:
        """Map product id to name. Ids that are not UUIDs are skipped."""
        valid_ids = sorted({pid for pid in product_ids if is_product_id(pid)})
        if not valid_ids:
            return {}

        stmt = select(Product.id, Product.name).where(Product.id.in_(valid_ids))
        result = await self.session.execute(stmt)
        return {str(row.id): row.name for row in result}

    async def exists(self, product_id: str) -> bool:
        """Whether a product with this id exists."""
        if not is_product_id(product_id):
            return False
        return await self.get_by_id(product_id) is not None

    async def stock_page(
        self,
        condition: ColumnElement[bool],
        *,
        page: int,
        limit: int,
        search: Optional[str] = None,
    ) -> tuple[list[Product], int]:
        """
        One page of products matching a stock condition.

        Returns (products, total matching). `search` is a case-insensitive
        substring match on the name.
        """
        filters = [condition]
        if search:
            filters.append(Product.name.ilike(f"%{search}%"))

        count_stmt = select(func.count()).select_from(Product).where(*filters)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Product)
            .where(*filters)
            .order_by(Product.stock_quantity, Product.name)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def category_counts(self) -> list[tuple[str, int]]:
        """(category, product count) pairs, largest first."""
        category = func.coalesce(Product.category, "Uncategorized")
        stmt = (
            select(category.label("category"), func.count().label("count"))
            .group_by(category)
            .order_by(func.count().desc(), category)
        )
        result = await self.session.execute(stmt)
        return [(row.category, row.count) for row in result]
