"""
User behavior analytics.

Every report here starts from raw behavior events for a date range.
Most group the rows in memory (by session, day, product, query or page);
engagement, cohort, device and product-insight reports push their
grouping down to the database.
"""
from collections import Counter
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError

from behavior_analytics.core.exceptions import report_operation
from behavior_analytics.core.logging import get_logger
from behavior_analytics.repositories.behavior_event import BehaviorEventRepository
from behavior_analytics.repositories.product import ProductRepository
from behavior_analytics.schemas.events import (
    PC_BUILD_EVENTS,
    DiscountPayload,
    EventType,
    OrderPayload,
    PcBuildPayload,
    ProductPayload,
    SearchPayload,
)
from behavior_analytics.services.aggregation import (
    DateRange,
    average,
    day_buckets,
    is_bounce,
    local_day,
    percentage,
    reconstruct_sessions,
    report_zone,
    returning_sessions,
    to_float,
    to_int,
)
from behavior_analytics.services.classification import (
    DeviceClassifier,
    PageClassifier,
    event_label,
)
from behavior_analytics.services.text_mining import purpose_mentions, word_frequencies

logger = get_logger(__name__)

DEFAULT_FUNNEL = (
    EventType.PRODUCT_VIEWED,
    EventType.PRODUCT_ADDED_TO_CART,
    EventType.ORDER_CREATED,
    EventType.PAYMENT_COMPLETED,
)

SHOPPING_EVENTS = (
    EventType.PRODUCT_VIEWED,
    EventType.PRODUCT_ADDED_TO_CART,
    EventType.PRODUCT_REMOVED_FROM_CART,
    EventType.ORDER_CREATED,
    EventType.PAYMENT_COMPLETED,
)

# Upper bounds (seconds) beyond which a stage timing is treated as noise
VIEW_TO_CART_CAP = 3600
CART_TO_CHECKOUT_CAP = 7200
CHECKOUT_TO_PAYMENT_CAP = 1800
TOTAL_SHOPPING_CAP = 14400

WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

DURATION_RANGES = (
    ("< 1 phút", "sessions_under_1min"),
    ("1-3 phút", "sessions_1_to_3min"),
    ("3-5 phút", "sessions_3_to_5min"),
    ("> 5 phút", "sessions_over_5min"),
)

MANUAL_BUILD_ENTITY = "manual_build_pc"


def _seconds_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds()


def _ranked(counts: dict[str, int], key: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
    rows = [{key: name, "count": count} for name, count in counts.items()]
    rows.sort(key=lambda row: row["count"], reverse=True)
    return rows if limit is None else rows[:limit]


class UserBehaviorAnalyticsService:
    """Visitor, engagement, funnel and product-interest reports."""

    def __init__(
        self,
        events: BehaviorEventRepository,
        products: ProductRepository,
        pages: Optional[PageClassifier] = None,
        devices: Optional[DeviceClassifier] = None,
        tz: Optional[ZoneInfo] = None,
    ) -> None:
        self.events = events
        self.products = products
        self.pages = pages or PageClassifier()
        self.devices = devices or DeviceClassifier()
        self.tz = tz

    @property
    def zone(self) -> ZoneInfo:
        return self.tz or report_zone()

    # ------------------------------------------------------------------
    # Visitors and engagement
    # ------------------------------------------------------------------

    @report_operation("user behavior report")
    async def user_behavior_report(self, date_range: DateRange) -> dict[str, Any]:
        """
        Visitor counts, time on site, bounce and conversion, with a dense
        daily visitor series.

        A visitor is a session. It is returning when any of its events in
        range is authenticated; that is decided once for the whole range so
        the daily split and the summary agree.
        """
        events = await self.events.list_between(date_range.start, date_range.end, by_session=True)
        sessions = reconstruct_sessions(events)
        returning = returning_sessions(events)

        product_views = sum(1 for e in events if e.event_type == EventType.PRODUCT_VIEWED.value)
        orders_created = sum(1 for e in events if e.event_type == EventType.ORDER_CREATED.value)

        durations = [s.duration_seconds for s in sessions.values() if s.duration_seconds > 0]
        bounces = sum(1 for s in sessions.values() if is_bounce(s))

        series = day_buckets(
            date_range,
            lambda label: {"date": label, "visitors": 0, "newVisitors": 0, "returningVisitors": 0},
            self.tz,
        )
        counted: set[tuple[Any, str]] = set()
        for event in events:
            if not event.session_id:
                continue
            day = local_day(event.created_at, self.zone)
            bucket = series.for_day(day)
            if bucket is None or (day, event.session_id) in counted:
                continue
            counted.add((day, event.session_id))
            bucket["visitors"] += 1
            if event.session_id in returning:
                bucket["returningVisitors"] += 1
            else:
                bucket["newVisitors"] += 1

        total_visitors = len(sessions)
        returning_visitors = sum(1 for sid in sessions if sid in returning)

        return {
            "summary": {
                "totalVisitors": total_visitors,
                "newVisitors": total_visitors - returning_visitors,
                "returningVisitors": returning_visitors,
                "averageTimeOnSite": round(average(durations)),
                "bounceRate": percentage(bounces, len(sessions)),
                "conversionRate": percentage(orders_created, product_views, 2),
            },
            "visitorData": series.values(),
        }

    @report_operation("user engagement metrics")
    async def user_engagement_metrics(self, date_range: DateRange) -> dict[str, Any]:
        """Session duration, depth and return rate, computed in the database."""
        metrics = await self.events.session_engagement(date_range.start, date_range.end)
        visitors = await self.events.session_visitor_counts(date_range.start, date_range.end)

        total_sessions = to_int(metrics.get("total_sessions"))
        distribution = [
            {
                "range": label,
                "percentage": round(percentage(to_int(metrics.get(column)), total_sessions)),
            }
            for label, column in DURATION_RANGES
        ]

        return {
            "metrics": {
                "avgSessionDuration": round(to_float(metrics.get("avg_session_duration"))),
                "avgPageViews": round(to_float(metrics.get("avg_page_views")), 1),
                "avgInteractions": round(to_float(metrics.get("avg_interactions")), 1),
                "bounceRate": percentage(to_int(metrics.get("bounce_sessions")), total_sessions),
                "returnRate": percentage(
                    to_int(visitors.get("returning_sessions")),
                    to_int(visitors.get("total_sessions")),
                ),
                "totalSessions": total_sessions,
            },
            "sessionDistribution": distribution,
        }

    # ------------------------------------------------------------------
    # Products and pages
    # ------------------------------------------------------------------

    @report_operation("most viewed products")
    async def most_viewed_products(self, date_range: DateRange) -> list[dict[str, Any]]:
        """Top products by views, with purchases from order line items."""
        views = await self.events.list_between(
            date_range.start, date_range.end, [EventType.PRODUCT_VIEWED]
        )
        orders = await self.events.list_between(
            date_range.start, date_range.end, [EventType.ORDER_CREATED]
        )

        products: dict[str, dict[str, Any]] = {}

        def entry(product_id: str, name: Optional[str]) -> dict[str, Any]:
            if product_id not in products:
                products[product_id] = {
                    "productId": product_id,
                    "name": name or f"Product {product_id}",
                    "views": 0,
                    "purchases": 0,
                    "conversionRate": 0.0,
                }
            return products[product_id]

        for event in views:
            payload = ProductPayload.model_validate(event.event_data or {})
            product_id = event.entity_id or payload.product_id
            if product_id:
                entry(product_id, payload.product_name)["views"] += 1

        for event in orders:
            payload = OrderPayload.model_validate(event.event_data or {})
            for line in payload.products:
                if line.product_id:
                    entry(line.product_id, line.name)["purchases"] += line.quantity

        for product in products.values():
            product["conversionRate"] = percentage(product["purchases"], product["views"], 2)

        await self._enrich_names(products)

        ranked = sorted(products.values(), key=lambda p: p["views"], reverse=True)
        return ranked[:5]

    async def _enrich_names(self, products: dict[str, dict[str, Any]]) -> None:
        """Replace payload names with catalogue names where the lookup works."""
        if not products:
            return
        try:
            names = await self.products.names_for(products.keys())
        except SQLAlchemyError as e:
            logger.warning("Product name lookup failed", error=str(e))
            return

        for product_id, name in names.items():
            if product_id in products:
                products[product_id]["name"] = name

    @report_operation("conversion rates")
    async def conversion_rates(self, date_range: DateRange) -> list[dict[str, Any]]:
        """
        Per page category: sessions that visited it, and sessions whose
        first order was placed from it.
        """
        events = await self.events.list_between(date_range.start, date_range.end, by_session=True)

        visits: dict[str, set[str]] = {}
        conversions: Counter[str] = Counter()
        for session in reconstruct_sessions(events).values():
            for event in session.events:
                visits.setdefault(self.pages.listing_page(event.page_url), set()).add(
                    session.session_id
                )
            first_order = session.first(EventType.ORDER_CREATED)
            if first_order is not None:
                conversions[self.pages.listing_page(first_order.page_url)] += 1

        rows = [
            {
                "page": page,
                "visits": len(sessions),
                "conversions": conversions[page],
                "rate": percentage(conversions[page], len(sessions)),
            }
            for page, sessions in visits.items()
        ]
        rows.sort(key=lambda row: row["visits"], reverse=True)
        return rows

    @report_operation("user journey")
    async def user_journey(self, date_range: DateRange) -> dict[str, Any]:
        """Common step transitions and entry/exit pages per session."""
        events = await self.events.list_between(date_range.start, date_range.end, by_session=True)
        sessions = reconstruct_sessions(events)

        transitions: Counter[str] = Counter()
        entry_pages: Counter[str] = Counter()
        exit_pages: Counter[str] = Counter()
        lengths: list[int] = []

        for session in sessions.values():
            steps = session.events
            lengths.append(len(steps))
            entry_pages[self.pages.page_type(steps[0].page_url)] += 1
            exit_pages[self.pages.page_type(steps[-1].page_url)] += 1
            for current, following in zip(steps, steps[1:]):
                transitions[
                    f"{event_label(current.event_type)} → {event_label(following.event_type)}"
                ] += 1

        session_count = len(sessions)

        def page_shares(counts: Counter[str]) -> list[dict[str, Any]]:
            return [
                {"page": page, "count": count, "percentage": percentage(count, session_count)}
                for page, count in counts.most_common()
            ]

        return {
            "summary": {
                "totalSessions": session_count,
                "avgJourneyLength": round(average(lengths), 1),
                "avgEventsPerSession": round(len(events) / max(session_count, 1), 1),
            },
            "commonPaths": [
                {"path": path, "count": count} for path, count in transitions.most_common(10)
            ],
            "entryPages": page_shares(entry_pages),
            "exitPages": page_shares(exit_pages),
        }

    # ------------------------------------------------------------------
    # Search, interests and shopping patterns
    # ------------------------------------------------------------------

    @report_operation("search analytics")
    async def search_analytics(self, date_range: DateRange) -> dict[str, Any]:
        """
        Query popularity, zero-result queries and search-to-purchase conversion.

        A (session, query) pair converts when an order is created later in
        the same session; each pair counts at most once.
        """
        searches = await self.events.list_between(
            date_range.start, date_range.end, [EventType.SEARCH]
        )
        orders = await self.events.list_between(
            date_range.start, date_range.end, [EventType.ORDER_CREATED]
        )

        frequency: Counter[str] = Counter()
        result_counts: dict[str, list[int]] = {}
        zero_results: dict[str, None] = {}
        first_searched: dict[tuple[str, str], datetime] = {}

        for event in searches:
            payload = SearchPayload.model_validate(event.event_data or {})
            query = (payload.query or "").strip().lower() or "unknown"
            frequency[query] += 1
            result_counts.setdefault(query, []).append(payload.results_count)
            if payload.results_count == 0:
                zero_results[query] = None
            if event.session_id:
                key = (event.session_id, query)
                if key not in first_searched or event.created_at < first_searched[key]:
                    first_searched[key] = event.created_at

        order_times: dict[str, list[datetime]] = {}
        for event in orders:
            if event.session_id:
                order_times.setdefault(event.session_id, []).append(event.created_at)

        converted: Counter[str] = Counter()
        for (session_id, query), searched_at in first_searched.items():
            if any(t > searched_at for t in order_times.get(session_id, ())):
                converted[query] += 1

        def rate(query: str) -> float:
            return percentage(converted[query], frequency[query])

        conversions = [
            {
                "query": query,
                "searches": count,
                "conversions": converted[query],
                "rate": rate(query),
            }
            for query, count in frequency.items()
        ]
        conversions.sort(key=lambda row: row["rate"], reverse=True)

        return {
            "summary": {
                "totalSearches": len(searches),
                "uniqueQueries": len(frequency),
                "zeroResultsRate": percentage(len(zero_results), len(frequency)),
                "searchToPurchaseRate": percentage(sum(converted.values()), len(first_searched)),
            },
            "topQueries": [
                {
                    "query": query,
                    "count": count,
                    "avgResults": round(average(result_counts[query])),
                    "conversion": rate(query),
                }
                for query, count in frequency.most_common(10)
            ],
            "zeroResultQueries": _ranked(
                {query: frequency[query] for query in zero_results}, "query", 10
            ),
            "searchConversions": conversions[:10],
        }

    @report_operation("user interests")
    async def user_interests(self, date_range: DateRange) -> dict[str, Any]:
        """Category popularity and per-customer primary interests."""
        events = await self.events.list_between(
            date_range.start,
            date_range.end,
            [EventType.PRODUCT_VIEWED, EventType.PRODUCT_CLICK],
        )

        category_counts: Counter[str] = Counter()
        product_counts: Counter[str] = Counter()
        customer_interests: dict[int, Counter[str]] = {}

        for event in events:
            payload = ProductPayload.model_validate(event.event_data or {})
            product_id = event.entity_id or payload.product_id
            if not product_id:
                continue
            category = payload.category or "unknown"

            product_counts[product_id] += 1
            category_counts[category] += 1
            if event.customer_id is not None:
                customer_interests.setdefault(event.customer_id, Counter())[category] += 1

        segments = []
        for customer_id, interests in customer_interests.items():
            primary, count = interests.most_common(1)[0]
            segments.append({
                "customerId": customer_id,
                "primaryInterest": primary,
                "interactionCount": count,
            })

        return {
            "summary": {
                "totalInteractions": len(events),
                "uniqueProducts": len(product_counts),
                "uniqueCategories": len(category_counts),
                "uniqueUsers": len(customer_interests),
            },
            "categoryPopularity": [
                {"category": category, "count": count}
                for category, count in category_counts.most_common()
            ],
            "mostViewedProducts": [
                {"productId": product_id, "count": count}
                for product_id, count in product_counts.most_common(10)
            ],
            "userSegmentation": {
                "segments": self._segments(segments),
                "topUserInterests": segments[:20],
            },
        }

    @staticmethod
    def _segments(users: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        groups: dict[str, list[dict[str, Any]]] = {}
        for user in users:
            groups.setdefault(user["primaryInterest"], []).append(user)

        segments = [
            {
                "segment": interest,
                "userCount": len(members),
                "percentageOfUsers": percentage(len(members), len(users)),
                "avgInteractionCount": round(average(m["interactionCount"] for m in members), 1),
            }
            for interest, members in groups.items()
        ]
        segments.sort(key=lambda s: s["userCount"], reverse=True)
        return segments

    @report_operation("shopping behavior")
    async def shopping_behavior(self, date_range: DateRange) -> dict[str, Any]:
        """
        How sessions move through view, cart, order and payment, how long
        each stage takes, and when shoppers are active (local time).
        """
        events = await self.events.list_between(
            date_range.start, date_range.end, SHOPPING_EVENTS, by_session=True
        )
        sessions = reconstruct_sessions(events)

        patterns = Counter(
            browse_only=0,
            add_to_cart=0,
            cart_abandonment=0,
            purchase=0,
            multiple_views=0,
            cart_modifications=0,
        )
        timings: dict[str, list[float]] = {
            "view_to_cart": [],
            "cart_to_checkout": [],
            "checkout_to_payment": [],
            "total": [],
        }
        hourly = [0] * 24
        weekdays = [0] * 7

        def record(name: str, start: Any, end: Any, cap: float) -> None:
            if start is None or end is None:
                return
            seconds = _seconds_between(start.created_at, end.created_at)
            if 0 < seconds < cap:
                timings[name].append(seconds)

        for session in sessions.values():
            steps = session.events
            if len(steps) == 1 and steps[0].event_type != EventType.PRODUCT_VIEWED.value:
                continue

            viewed = session.has(EventType.PRODUCT_VIEWED)
            carted = session.has(EventType.PRODUCT_ADDED_TO_CART)
            ordered = session.has(EventType.ORDER_CREATED)
            paid = session.has(EventType.PAYMENT_COMPLETED)

            if viewed and not carted:
                patterns["browse_only"] += 1
            if viewed and carted:
                patterns["add_to_cart"] += 1
                if not ordered:
                    patterns["cart_abandonment"] += 1
            if ordered or paid:
                patterns["purchase"] += 1
            if session.count(EventType.PRODUCT_VIEWED) > 3:
                patterns["multiple_views"] += 1
            if carted and session.has(EventType.PRODUCT_REMOVED_FROM_CART):
                patterns["cart_modifications"] += 1

            first_view = session.first(EventType.PRODUCT_VIEWED)
            first_cart = session.first(EventType.PRODUCT_ADDED_TO_CART)
            first_order = session.first(EventType.ORDER_CREATED)
            first_payment = session.first(EventType.PAYMENT_COMPLETED)
            record("view_to_cart", first_view, first_cart, VIEW_TO_CART_CAP)
            record("cart_to_checkout", first_cart, first_order, CART_TO_CHECKOUT_CAP)
            record("checkout_to_payment", first_order, first_payment, CHECKOUT_TO_PAYMENT_CAP)
            if len(steps) > 1:
                record("total", steps[0], steps[-1], TOTAL_SHOPPING_CAP)

            for event in steps:
                local = event.created_at.astimezone(self.zone)
                hourly[local.hour] += 1
                weekdays[(local.weekday() + 1) % 7] += 1

        total_sessions = len(sessions)
        return {
            "summary": {
                "totalSessions": total_sessions,
                "browseOnlyRate": percentage(patterns["browse_only"], total_sessions),
                "cartAbandonmentRate": percentage(
                    patterns["cart_abandonment"], patterns["add_to_cart"]
                ),
                "conversionRate": percentage(patterns["purchase"], total_sessions),
            },
            "timeMetrics": {
                "avgViewToCartTime": round(average(timings["view_to_cart"])),
                "avgCartToCheckoutTime": round(average(timings["cart_to_checkout"])),
                "avgCheckoutToPaymentTime": round(average(timings["checkout_to_payment"])),
                "avgTotalShoppingTime": round(average(timings["total"])),
            },
            "timing": {
                "peakHour": hourly.index(max(hourly)),
                "peakDay": WEEKDAYS[weekdays.index(max(weekdays))],
                "hourlyActivity": [{"hour": h, "count": c} for h, c in enumerate(hourly)],
                "dailyActivity": [
                    {"day": WEEKDAYS[d], "count": c} for d, c in enumerate(weekdays)
                ],
            },
            "patterns": {
                "browseOnly": patterns["browse_only"],
                "addToCart": patterns["add_to_cart"],
                "cartAbandonment": patterns["cart_abandonment"],
                "completePurchase": patterns["purchase"],
                "multipleProductViews": patterns["multiple_views"],
                "cartModifications": patterns["cart_modifications"],
            },
        }

    @report_operation("discount impact")
    async def discount_impact(self, date_range: DateRange) -> dict[str, Any]:
        """Discount usage against orders, and its effect on order value and size."""
        discounts = await self.events.list_between(
            date_range.start, date_range.end, [EventType.DISCOUNT_USAGE]
        )
        orders = await self.events.list_between(
            date_range.start, date_range.end, [EventType.ORDER_CREATED]
        )

        series = day_buckets(
            date_range,
            lambda label: {"date": label, "count": 0, "amount": 0.0, "orders": 0},
            self.tz,
        )
        by_type: Counter[str] = Counter()
        by_customer: Counter[int] = Counter()
        discounted_orders: set[str] = set()
        used = 0
        total_discount = 0.0
        discounted_value = 0.0

        for event in discounts:
            if not event.event_data:
                continue
            payload = DiscountPayload.model_validate(event.event_data)
            used += 1
            total_discount += payload.discount_amount
            discounted_value += payload.order_total
            by_type[payload.discount_type or "unknown"] += 1
            if event.entity_id:
                discounted_orders.add(event.entity_id)
            if event.customer_id is not None:
                by_customer[event.customer_id] += 1

            bucket = series.get(event.created_at)
            if bucket is not None:
                bucket["count"] += 1
                bucket["orders"] += 1
                bucket["amount"] = round(bucket["amount"] + payload.discount_amount, 2)

        total_orders = len(orders)
        total_value = 0.0
        sizes_with: list[int] = []
        sizes_without: list[int] = []
        for event in orders:
            if not event.event_data:
                continue
            payload = OrderPayload.model_validate(event.event_data)
            total_value += payload.order_total
            if "products" in event.event_data and isinstance(event.event_data["products"], list):
                target = sizes_with if event.entity_id in discounted_orders else sizes_without
                target.append(len(payload.products))

        undiscounted = total_orders - used
        aov_with = discounted_value / used if used else 0.0
        aov_without = (total_value - discounted_value) / undiscounted if undiscounted > 0 else 0.0
        size_with = average(sizes_with)
        size_without = average(sizes_without)

        return {
            "summary": {
                "totalOrders": total_orders,
                "ordersWithDiscount": used,
                "discountUsageRate": percentage(used, total_orders),
                "totalDiscount": round(total_discount, 2),
                "avgDiscountPerOrder": round(total_discount / used, 2) if used else 0.0,
            },
            "orderValueImpact": {
                "avgOrderValueWithDiscount": round(aov_with, 2),
                "avgOrderValueWithoutDiscount": round(aov_without, 2),
                "difference": round(aov_with - aov_without, 2),
                "percentageDifference": percentage(aov_with - aov_without, aov_without),
            },
            "cartSizeImpact": {
                "avgCartSizeWithDiscount": round(size_with, 1),
                "avgCartSizeWithoutDiscount": round(size_without, 1),
                "difference": round(size_with - size_without, 1),
                "percentageDifference": percentage(size_with - size_without, size_without),
            },
            "usageByType": [
                {"type": kind, "count": count, "percentage": percentage(count, used)}
                for kind, count in by_type.items()
            ],
            "usageByDay": series.values(),
            "customerUsage": {
                "uniqueCustomers": len(by_customer),
                "repeatUsage": sum(1 for count in by_customer.values() if count > 1),
                "maxUsageByCustomer": max(by_customer.values(), default=0),
            },
        }

    @report_operation("user behavior insights")
    async def behavior_insights(self, date_range: DateRange) -> dict[str, Any]:
        """Click, view, cart and order counts per product name."""
        rows = await self.events.product_interaction_counts(date_range.start, date_range.end)
        return {
            "insights": [
                {
                    "productName": row.get("product_name"),
                    "clickCount": to_int(row.get("click_count")),
                    "viewCount": to_int(row.get("view_count")),
                    "addToCartCount": to_int(row.get("add_to_cart_count")),
                    "orderCount": to_int(row.get("order_count")),
                }
                for row in rows
            ]
        }

    # ------------------------------------------------------------------
    # PC builder
    # ------------------------------------------------------------------

    @report_operation("pc build analytics")
    async def pc_build_analytics(self, date_range: DateRange) -> dict[str, Any]:
        """
        Usage of the automatic and manual PC builders, popular components,
        and what people ask the automatic builder for.
        """
        events = await self.events.list_between(date_range.start, date_range.end, PC_BUILD_EVENTS)

        counts: Counter[str] = Counter(e.event_type for e in events)
        pc_build_views = sum(
            1
            for e in events
            if e.event_type == EventType.PC_BUILD_VIEW.value and e.entity_id == MANUAL_BUILD_ENTITY
        )

        requests = counts[EventType.AUTO_BUILD_PC_REQUEST.value]
        auto_add = counts[EventType.AUTO_BUILD_PC_ADD_TO_CART.value]
        customize = counts[EventType.AUTO_BUILD_PC_CUSTOMIZE.value]
        manual_add = counts[EventType.MANUAL_BUILD_PC_ADD_TO_CART.value]
        component_selects = counts[EventType.MANUAL_BUILD_PC_COMPONENT_SELECT.value]
        saves = counts[EventType.MANUAL_BUILD_PC_SAVE_CONFIG.value]

        manual_interactions = component_selects or pc_build_views

        series_keys = {
            EventType.AUTO_BUILD_PC_REQUEST.value: "autoBuildRequests",
            EventType.AUTO_BUILD_PC_ADD_TO_CART.value: "autoBuildAddToCart",
            EventType.AUTO_BUILD_PC_CUSTOMIZE.value: "autoBuildCustomize",
            EventType.MANUAL_BUILD_PC_ADD_TO_CART.value: "manualBuildAddToCart",
            EventType.MANUAL_BUILD_PC_COMPONENT_SELECT.value: "manualBuildComponentSelect",
            EventType.MANUAL_BUILD_PC_SAVE_CONFIG.value: "manualBuildSaveConfig",
            EventType.PC_BUILD_VIEW.value: "pcBuildViews",
        }
        series = day_buckets(
            date_range,
            lambda label: {"date": label, **{key: 0 for key in series_keys.values()}},
            self.tz,
        )

        components: dict[tuple[str, str], dict[str, Any]] = {}
        configurations: Counter[str] = Counter()
        inputs: list[str] = []

        for event in events:
            bucket = series.get(event.created_at)
            if bucket is not None:
                bucket[series_keys[event.event_type]] += 1

            payload = PcBuildPayload.model_validate(event.event_data or {})
            for component in payload.components:
                if not component.type or not component.name:
                    continue
                key = (component.type, component.name)
                entry = components.setdefault(
                    key, {"type": component.type, "name": component.name, "count": 0}
                )
                entry["count"] += 1

            if event.event_type == EventType.AUTO_BUILD_PC_REQUEST.value and event.event_data:
                configurations[payload.user_input or "Unknown"] += 1
                if payload.user_input:
                    inputs.append(payload.user_input)

        popular = sorted(components.values(), key=lambda c: c["count"], reverse=True)[:10]

        return {
            "summary": {
                "totalPCBuildEvents": len(events),
                "autoBuildRequests": requests,
                "autoBuildAddToCart": auto_add,
                "autoBuildCustomize": customize,
                "manualBuildAddToCart": manual_add,
                "manualBuildComponentSelect": component_selects,
                "manualBuildSaveConfig": saves,
                "pcBuildViews": pc_build_views,
                "autoBuildConversionRate": percentage(auto_add, requests),
                "customizationRate": percentage(customize, requests),
                "manualBuildConversionRate": percentage(manual_add + saves, manual_interactions),
            },
            "timeSeriesData": series.values(),
            "popularComponents": popular,
            "buildConfigurations": [
                {"userInput": text, "count": count} for text, count in configurations.most_common()
            ],
            "wordCloud": {
                "words": [
                    {"text": word, "value": value}
                    for word, value in word_frequencies(inputs).most_common(50)
                ],
                "purposeAnalysis": [
                    {"text": term, "value": value}
                    for term, value in purpose_mentions(inputs).most_common()
                ],
            },
        }

    # ------------------------------------------------------------------
    # Funnels, cohorts and devices
    # ------------------------------------------------------------------

    @report_operation("funnel analysis")
    async def funnel_analysis(
        self,
        date_range: DateRange,
        steps: Optional[Sequence[EventType]] = None,
    ) -> dict[str, Any]:
        """
        Distinct sessions reaching each step.

        Steps are counted independently: a session reaching a later step
        need not have reached the earlier ones.
        """
        steps = list(steps or DEFAULT_FUNNEL)
        events = await self.events.list_between(date_range.start, date_range.end, steps)

        reached: dict[str, set[str]] = {step.value: set() for step in steps}
        for event in events:
            if event.session_id and event.event_type in reached:
                reached[event.event_type].add(event.session_id)

        rows: list[dict[str, Any]] = []
        previous: Optional[int] = None
        for step in steps:
            users = len(reached[step.value])
            rows.append({
                "step": step.value,
                "label": event_label(step.value),
                "users": users,
                "dropoff": 0 if previous is None else previous - users,
                "conversionRate": 100.0 if previous is None else percentage(users, previous, 2),
            })
            previous = users

        first, last = rows[0]["users"], rows[-1]["users"]
        return {
            "steps": rows,
            "overallConversion": percentage(last, first, 2),
        }

    @report_operation("cohort retention")
    async def cohort_retention(self, date_range: DateRange) -> dict[str, Any]:
        """
        Weekly session cohorts and the share of each cohort active in the
        following weeks of the range.
        """
        rows = await self.events.cohort_activity(
            date_range.start, date_range.end, str(self.zone.key)
        )

        cohorts: dict[str, dict[int, int]] = {}
        for row in rows:
            week = row["cohort_week"]
            label = week.date().isoformat() if isinstance(week, datetime) else str(week)
            cohorts.setdefault(label, {})[to_int(row["week_number"])] = to_int(row["sessions"])

        result = []
        for label, weeks in cohorts.items():
            size = weeks.get(0, 0)
            result.append({
                "cohortWeek": label,
                "size": size,
                "retention": [
                    {
                        "week": week,
                        "sessions": weeks.get(week, 0),
                        "rate": percentage(weeks.get(week, 0), size),
                    }
                    for week in range(max(weeks) + 1)
                ],
            })

        return {"cohorts": result}

    @report_operation("device analytics")
    async def device_analytics(self, date_range: DateRange) -> dict[str, Any]:
        """Sessions and conversion by device type, operating system and browser."""
        rows = await self.events.device_sessions(date_range.start, date_range.end)

        dimensions: dict[str, dict[str, list[int]]] = {
            "deviceTypes": {},
            "operatingSystems": {},
            "browsers": {},
        }
        for row in rows:
            profile = self.devices.classify(row.get("device_info"))
            converted = 1 if row.get("converted") else 0
            for dimension, name in (
                ("deviceTypes", profile.device_type),
                ("operatingSystems", profile.os),
                ("browsers", profile.browser),
            ):
                tally = dimensions[dimension].setdefault(name, [0, 0])
                tally[0] += 1
                tally[1] += converted

        total = len(rows)

        def breakdown(tallies: dict[str, list[int]]) -> list[dict[str, Any]]:
            items = [
                {
                    "name": name,
                    "sessions": sessions,
                    "share": percentage(sessions, total),
                    "conversions": conversions,
                    "conversionRate": percentage(conversions, sessions),
                }
                for name, (sessions, conversions) in tallies.items()
            ]
            items.sort(key=lambda item: item["sessions"], reverse=True)
            return items

        return {
            "totalSessions": total,
            **{dimension: breakdown(tallies) for dimension, tallies in dimensions.items()},
        }
