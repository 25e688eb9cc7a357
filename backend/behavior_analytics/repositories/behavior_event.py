"""
Behavior event repository: the event store write path and every read the
reports need, including the grouped aggregates that run in the database.

All range arguments are half-open: `start <= created_at < end`.
"""
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import Integer, String, and_, case, cast, desc, distinct, func, select
from sqlalchemy.sql.elements import ColumnElement

from behavior_analytics.models.behavior_event import BehaviorEvent
from behavior_analytics.models.product import Product
from behavior_analytics.repositories.base import BaseRepository
from behavior_analytics.schemas.events import EventType

CONVERSION_EVENTS = (EventType.ORDER_CREATED.value, EventType.PAYMENT_COMPLETED.value)


def _in_range(start: datetime, end: datetime) -> ColumnElement[bool]:
    return and_(BehaviorEvent.created_at >= start, BehaviorEvent.created_at < end)


def _type_values(event_types: Iterable[Any]) -> list[str]:
    return [getattr(t, "value", t) for t in event_types]


class BehaviorEventRepository(BaseRepository[BehaviorEvent]):
    """Repository for BehaviorEvent model operations."""

    model = BehaviorEvent

    async def list_between(
        self,
        start: datetime,
        end: datetime,
        event_types: Optional[Iterable[Any]] = None,
        *,
        by_session: bool = False,
    ) -> list[BehaviorEvent]:
        """
        Events in range, optionally restricted to some kinds.

        Ordered by (session_id, created_at) when `by_session` is set,
        otherwise by created_at.
        """
        stmt = select(BehaviorEvent).where(_in_range(start, end))
        if event_types is not None:
            stmt = stmt.where(BehaviorEvent.event_type.in_(_type_values(event_types)))

        if by_session:
            stmt = stmt.order_by(BehaviorEvent.session_id, BehaviorEvent.created_at, BehaviorEvent.id)
        else:
            stmt = stmt.order_by(BehaviorEvent.created_at, BehaviorEvent.id)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_session(self, session_id: str, limit: int = 100) -> list[BehaviorEvent]:
        """Most recent events of a session."""
        return await self._recent(BehaviorEvent.session_id == session_id, limit)

    async def list_by_customer(self, customer_id: int, limit: int = 100) -> list[BehaviorEvent]:
        """Most recent events of a customer."""
        return await self._recent(BehaviorEvent.customer_id == customer_id, limit)

    async def list_by_type(self, event_type: str, limit: int = 100) -> list[BehaviorEvent]:
        """Most recent events of a kind."""
        return await self._recent(BehaviorEvent.event_type == event_type, limit)

    async def _recent(self, condition: ColumnElement[bool], limit: int) -> list[BehaviorEvent]:
        stmt = (
            select(BehaviorEvent)
            .where(condition)
            .order_by(desc(BehaviorEvent.created_at), desc(BehaviorEvent.id))
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Aggregates pushed down to the database
    # ------------------------------------------------------------------

    async def session_engagement(self, start: datetime, end: datetime) -> dict[str, Any]:
        """
        Per-session duration, page views and interaction counts, averaged.

        Sessions whose first and last event share a timestamp are left out.
        """
        activity = (
            select(
                BehaviorEvent.session_id.label("session_id"),
                func.min(BehaviorEvent.created_at).label("session_start"),
                func.max(BehaviorEvent.created_at).label("session_end"),
                func.count().label("event_count"),
                func.count()
                .filter(BehaviorEvent.event_type == EventType.PAGE_VIEW.value)
                .label("page_views"),
            )
            .where(_in_range(start, end), BehaviorEvent.session_id.is_not(None))
            .group_by(BehaviorEvent.session_id)
            .cte("session_activity")
        )

        durations = (
            select(
                activity.c.session_id,
                func.extract("epoch", activity.c.session_end - activity.c.session_start).label(
                    "duration_seconds"
                ),
                activity.c.event_count,
                activity.c.page_views,
            )
            .where(activity.c.session_start != activity.c.session_end)
            .cte("session_duration")
        )

        seconds = durations.c.duration_seconds
        stmt = select(
            func.avg(seconds).label("avg_session_duration"),
            func.max(seconds).label("max_session_duration"),
            func.avg(durations.c.page_views).label("avg_page_views"),
            func.avg(durations.c.event_count).label("avg_interactions"),
            func.count().label("total_sessions"),
            func.count().filter(durations.c.page_views == 1).label("bounce_sessions"),
            func.count().filter(seconds < 60).label("sessions_under_1min"),
            func.count().filter(and_(seconds >= 60, seconds < 180)).label("sessions_1_to_3min"),
            func.count().filter(and_(seconds >= 180, seconds < 300)).label("sessions_3_to_5min"),
            func.count().filter(seconds >= 300).label("sessions_over_5min"),
        )

        result = await self.session.execute(stmt)
        return dict(result.mappings().one())

    async def session_visitor_counts(self, start: datetime, end: datetime) -> dict[str, Any]:
        """Distinct sessions in range, and those with an authenticated event."""
        stmt = select(
            func.count(distinct(BehaviorEvent.session_id)).label("total_sessions"),
            func.count(
                distinct(
                    case(
                        (BehaviorEvent.customer_id.is_not(None), BehaviorEvent.session_id),
                    )
                )
            ).label("returning_sessions"),
        ).where(_in_range(start, end))

        result = await self.session.execute(stmt)
        return dict(result.mappings().one())

    async def cohort_activity(
        self,
        start: datetime,
        end: datetime,
        timezone: str,
    ) -> list[dict[str, Any]]:
        """
        Active sessions per (cohort week, weeks since cohort).

        A session's cohort is the local calendar week of its first event in
        range. Rows are ordered by cohort week then week number.
        """
        week = func.date_trunc("week", func.timezone(timezone, BehaviorEvent.created_at))
        session_weeks = (
            select(
                BehaviorEvent.session_id.label("session_id"),
                week.label("activity_week"),
            )
            .where(_in_range(start, end), BehaviorEvent.session_id.is_not(None))
            .group_by(BehaviorEvent.session_id, week)
            .cte("session_weeks")
        )

        cohorts = select(
            session_weeks.c.session_id,
            session_weeks.c.activity_week,
            func.min(session_weeks.c.activity_week)
            .over(partition_by=session_weeks.c.session_id)
            .label("cohort_week"),
        ).cte("cohorts")

        week_number = cast(
            func.extract("day", cohorts.c.activity_week - cohorts.c.cohort_week) / 7,
            Integer,
        )
        stmt = (
            select(
                cohorts.c.cohort_week,
                week_number.label("week_number"),
                func.count(distinct(cohorts.c.session_id)).label("sessions"),
            )
            .group_by(cohorts.c.cohort_week, week_number)
            .order_by(cohorts.c.cohort_week, week_number)
        )

        result = await self.session.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def device_sessions(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        """One device-info sample and a converted flag per session in range."""
        flags = (
            select(
                BehaviorEvent.session_id.label("session_id"),
                func.bool_or(BehaviorEvent.event_type.in_(CONVERSION_EVENTS)).label("converted"),
            )
            .where(_in_range(start, end), BehaviorEvent.session_id.is_not(None))
            .group_by(BehaviorEvent.session_id)
            .subquery("flags")
        )

        samples = (
            select(
                BehaviorEvent.session_id.label("session_id"),
                BehaviorEvent.device_info.label("device_info"),
            )
            .where(
                _in_range(start, end),
                BehaviorEvent.session_id.is_not(None),
                BehaviorEvent.device_info.is_not(None),
            )
            .distinct(BehaviorEvent.session_id)
            .order_by(BehaviorEvent.session_id, BehaviorEvent.created_at)
            .subquery("samples")
        )

        stmt = select(
            flags.c.session_id,
            samples.c.device_info,
            flags.c.converted,
        ).outerjoin(samples, samples.c.session_id == flags.c.session_id)

        result = await self.session.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def product_interaction_counts(
        self,
        start: datetime,
        end: datetime,
    ) -> list[dict[str, Any]]:
        """Click, view, add-to-cart and order counts per product name."""

        def count_of(kind: EventType) -> Any:
            return func.count().filter(BehaviorEvent.event_type == kind.value)

        view_count = count_of(EventType.PRODUCT_VIEWED).label("view_count")
        stmt = (
            select(
                Product.name.label("product_name"),
                count_of(EventType.PRODUCT_CLICK).label("click_count"),
                view_count,
                count_of(EventType.PRODUCT_ADDED_TO_CART).label("add_to_cart_count"),
                count_of(EventType.ORDER_CREATED).label("order_count"),
            )
            .select_from(BehaviorEvent)
            .outerjoin(Product, cast(Product.id, String) == BehaviorEvent.entity_id)
            .where(_in_range(start, end))
            .group_by(Product.name)
            .order_by(desc(view_count))
        )

        result = await self.session.execute(stmt)
        return [dict(row) for row in result.mappings().all()]
