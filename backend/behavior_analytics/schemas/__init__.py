"""
Pydantic schemas package.
"""
from behavior_analytics.schemas.analytics import (
    FunnelResponse,
    FunnelStep,
    SalesDataPoint,
    SalesReportResponse,
    SalesSummary,
    StockItem,
    StockPage,
)
from behavior_analytics.schemas.events import (
    PAYLOAD_SCHEMAS,
    AuthEventRequest,
    BehaviorEventResponse,
    DeviceInfo,
    DiscountPayload,
    DiscountUsageEventRequest,
    EventEnvelope,
    EventPayload,
    EventType,
    OrderPayload,
    PcBuildPayload,
    ProductClickEventRequest,
    ProductPayload,
    SearchPayload,
    TrackEventRequest,
    TrackEventResponse,
    read_payload,
)

__all__ = [
    # Events
    "EventType",
    "EventEnvelope",
    "EventPayload",
    "ProductPayload",
    "SearchPayload",
    "OrderPayload",
    "DiscountPayload",
    "PcBuildPayload",
    "DeviceInfo",
    "PAYLOAD_SCHEMAS",
    "read_payload",
    "TrackEventRequest",
    "ProductClickEventRequest",
    "DiscountUsageEventRequest",
    "AuthEventRequest",
    "TrackEventResponse",
    "BehaviorEventResponse",
    # Reports
    "SalesSummary",
    "SalesDataPoint",
    "SalesReportResponse",
    "FunnelStep",
    "FunnelResponse",
    "StockItem",
    "StockPage",
]
