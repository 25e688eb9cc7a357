"""
Viewed-products repository: one row per (customer, product), refreshed on
each view.
"""
from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert

from behavior_analytics.models.customer import ViewedProduct
from behavior_analytics.repositories.base import BaseRepository


class ViewedProductRepository(BaseRepository[ViewedProduct]):
    """Repository for ViewedProduct model operations."""

    model = ViewedProduct

    async def record_view(self, customer_id: int, product_id: str) -> None:
        """Insert the pair or bump its `viewed_at` to now."""
        stmt = insert(ViewedProduct).values(customer_id=customer_id, product_id=product_id)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_viewed_products_customer_product",
            set_={"viewed_at": func.now()},
        )
        await self.session.execute(stmt)
