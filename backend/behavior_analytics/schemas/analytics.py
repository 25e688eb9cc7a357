"""
Report response schemas.

Only the reports with a stable, widely consumed shape are modelled here;
the rest are returned as plain dictionaries built by the services.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SalesSummary(BaseModel):
    """Headline sales figures for a period."""

    total_revenue: float = Field(alias="totalRevenue")
    order_count: int = Field(alias="orderCount")
    average_order_value: float = Field(alias="averageOrderValue")
    revenue_change: float = Field(alias="revenueChange")
    order_count_change: float = Field(alias="orderCountChange")
    total_tax: float = Field(alias="totalTax")

    model_config = ConfigDict(populate_by_name=True)


class SalesDataPoint(BaseModel):
    date: str
    revenue: float
    orders: int


class SalesReportResponse(BaseModel):
    summary: SalesSummary
    time_series: list[SalesDataPoint] = Field(alias="timeSeries")

    model_config = ConfigDict(populate_by_name=True)


class FunnelStep(BaseModel):
    step: str
    label: str
    users: int
    dropoff: int
    conversion_rate: float = Field(alias="conversionRate")

    model_config = ConfigDict(populate_by_name=True)


class FunnelResponse(BaseModel):
    """Session funnel over an ordered list of event kinds."""

    steps: list[FunnelStep]
    overall_conversion: float = Field(alias="overallConversion")

    model_config = ConfigDict(populate_by_name=True)


class StockItem(BaseModel):
    id: str
    name: str
    stock: int
    category: Optional[str] = None
    price: float
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class StockPage(BaseModel):
    """One page of low-stock or out-of-stock products."""

    items: list[StockItem]
    total: int
    page: int
    limit: int
    pages: int
