"""
Analytics report API routes.

Every route requires an admin bearer token. Ranged reports take
`startDate`/`endDate` as ISO dates or datetimes: a bare `endDate` date
covers that whole day, and missing bounds default to the last 30 days.
"""
from datetime import date, datetime, timedelta
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from behavior_analytics.core.database import DbSession
from behavior_analytics.core.exceptions import InvalidDateRangeError
from behavior_analytics.core.security import require_admin
from behavior_analytics.schemas.analytics import FunnelResponse, SalesReportResponse, StockPage
from behavior_analytics.schemas.events import EventType
from behavior_analytics.services.aggregation import DateRange, report_zone
from behavior_analytics.services.analytics_facade import AnalyticsService

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
    dependencies=[Depends(require_admin)],
)

DEFAULT_WINDOW = timedelta(days=30)


def get_analytics_service(session: DbSession) -> AnalyticsService:
    return AnalyticsService.from_session(session)


Analytics = Annotated[AnalyticsService, Depends(get_analytics_service)]


def _parse_bound(value: str, name: str, *, is_end: bool) -> datetime:
    text = value.strip()
    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            moment = datetime(day.year, day.month, day.day)
            return moment + timedelta(days=1) if is_end else moment
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid date format for {name}",
        )


def report_range(
    start_date: Annotated[Optional[str], Query(alias="startDate")] = None,
    end_date: Annotated[Optional[str], Query(alias="endDate")] = None,
) -> DateRange:
    """Resolve the `startDate`/`endDate` query parameters to a DateRange."""
    tz = report_zone()
    end = (
        _parse_bound(end_date, "endDate", is_end=True)
        if end_date
        else datetime.now(tz)
    )
    start = (
        _parse_bound(start_date, "startDate", is_end=False)
        if start_date
        else end - DEFAULT_WINDOW
    )

    try:
        return DateRange.of(start, end, tz)
    except InvalidDateRangeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


Range = Annotated[DateRange, Depends(report_range)]


def funnel_steps(
    steps: Annotated[Optional[str], Query(description="Comma-separated event types")] = None,
) -> Optional[list[EventType]]:
    if not steps:
        return None

    parsed = []
    for raw in steps.split(","):
        kind = EventType.parse(raw.strip())
        if kind is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown funnel step: {raw.strip()}",
            )
        parsed.append(kind)
    return parsed


# ============================================
# SALES
# ============================================


@router.get("/sales", response_model=SalesReportResponse)
async def get_sales_report(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    """Revenue summary and daily revenue series."""
    return await analytics.sales_report(date_range)


@router.get("/sales-report", response_model=SalesReportResponse, include_in_schema=False)
async def get_sales_report_alias(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.sales_report(date_range)


@router.get("/best-selling-products")
async def get_best_selling_products(date_range: Range, analytics: Analytics) -> list[dict[str, Any]]:
    return await analytics.best_selling_products(date_range)


@router.get("/best-selling-categories")
async def get_best_selling_categories(
    date_range: Range, analytics: Analytics
) -> list[dict[str, Any]]:
    return await analytics.best_selling_categories(date_range)


# ============================================
# ORDERS
# ============================================


@router.get("/refunds")
async def get_refund_report(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.refund_report(date_range)


@router.get("/abandoned-carts")
async def get_abandoned_carts(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.abandoned_carts(date_range)


# ============================================
# INVENTORY
# ============================================


@router.get("/inventory")
async def get_inventory_report(analytics: Analytics) -> dict[str, Any]:
    """Stock totals and the most valuable categories."""
    return await analytics.inventory_report()


@router.get("/inventory-report", include_in_schema=False)
async def get_inventory_report_alias(analytics: Analytics) -> dict[str, Any]:
    return await analytics.inventory_report()


@router.get("/inventory/low-stock", response_model=StockPage)
async def get_low_stock_products(
    analytics: Analytics,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: str = "",
) -> dict[str, Any]:
    return await analytics.low_stock_products(page, limit, search)


@router.get("/inventory/out-of-stock", response_model=StockPage)
async def get_out_of_stock_products(
    analytics: Analytics,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: str = "",
) -> dict[str, Any]:
    return await analytics.out_of_stock_products(page, limit, search)


@router.get("/inventory/categories")
async def get_product_categories(analytics: Analytics) -> list[dict[str, Any]]:
    return await analytics.product_categories()


# ============================================
# USER BEHAVIOR
# ============================================


@router.get("/user-behavior")
async def get_user_behavior_report(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    """Visitors, bounce and conversion with a daily visitor series."""
    return await analytics.user_behavior_report(date_range)


@router.get("/user-engagement")
async def get_user_engagement(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.user_engagement_metrics(date_range)


@router.get("/most-viewed-products")
async def get_most_viewed_products(date_range: Range, analytics: Analytics) -> list[dict[str, Any]]:
    return await analytics.most_viewed_products(date_range)


@router.get("/conversion-rates")
async def get_conversion_rates(date_range: Range, analytics: Analytics) -> list[dict[str, Any]]:
    return await analytics.conversion_rates(date_range)


@router.get("/user-journey")
async def get_user_journey(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.user_journey(date_range)


@router.get("/search-analytics")
async def get_search_analytics(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.search_analytics(date_range)


@router.get("/user-interests")
async def get_user_interests(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.user_interests(date_range)


@router.get("/shopping-behavior")
async def get_shopping_behavior(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.shopping_behavior(date_range)


@router.get("/discount-impact")
async def get_discount_impact(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.discount_impact(date_range)


@router.get("/behavior-insights")
async def get_behavior_insights(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.behavior_insights(date_range)


@router.get("/pc-build")
async def get_pc_build_analytics(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    """Automatic and manual PC builder usage, components and request word cloud."""
    return await analytics.pc_build_analytics(date_range)


@router.get("/funnel", response_model=FunnelResponse)
async def get_funnel_analysis(
    date_range: Range,
    analytics: Analytics,
    steps: Annotated[Optional[list[EventType]], Depends(funnel_steps)],
) -> dict[str, Any]:
    """Sessions reaching each step, e.g. `?steps=product_viewed,order_created`."""
    return await analytics.funnel_analysis(date_range, steps)


@router.get("/cohorts")
async def get_cohort_retention(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.cohort_retention(date_range)


@router.get("/devices")
async def get_device_analytics(date_range: Range, analytics: Analytics) -> dict[str, Any]:
    return await analytics.device_analytics(date_range)
