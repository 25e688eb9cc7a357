"""
Order repository for the sales and order reports.
"""
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.orm import contains_eager
from sqlalchemy.sql.elements import ColumnElement

from behavior_analytics.models.order import COMPLETED_STATUSES, Order, OrderItem, OrderStatus
from behavior_analytics.repositories.base import BaseRepository


def _ordered_between(start: datetime, end: datetime) -> ColumnElement[bool]:
    return and_(Order.order_date >= start, Order.order_date < end)


def _status_in(statuses: Iterable[OrderStatus]) -> ColumnElement[bool]:
    return func.lower(Order.status).in_([s.value for s in statuses])


class OrderRepository(BaseRepository[Order]):
    """Repository for Order model operations."""

    model = Order

    async def list_between(
        self,
        start: datetime,
        end: datetime,
        statuses: Optional[Iterable[OrderStatus]] = None,
    ) -> list[Order]:
        """Orders placed in range, optionally restricted to some statuses."""
        stmt = select(Order).where(_ordered_between(start, end))
        if statuses is not None:
            stmt = stmt.where(_status_in(statuses))
        stmt = stmt.order_by(Order.order_date)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def customers_with_orders(
        self,
        start: datetime,
        end: datetime,
        statuses: Iterable[OrderStatus],
    ) -> set[int]:
        """Ids of customers with at least one order in range in the given statuses."""
        stmt = (
            select(Order.customer_id)
            .where(
                _ordered_between(start, end),
                _status_in(statuses),
                Order.customer_id.is_not(None),
            )
            .distinct()
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def completed_items_between(self, start: datetime, end: datetime) -> list[OrderItem]:
        """Line items of completed orders in range, with their product loaded."""
        stmt = (
            select(OrderItem)
            .join(OrderItem.order)
            .join(OrderItem.product)
            .options(contains_eager(OrderItem.product))
            .where(_ordered_between(start, end), _status_in(COMPLETED_STATUSES))
            .order_by(Order.order_date, OrderItem.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

