"""
Event ingestion API routes.

Tracking calls are validated, stamped with the caller's IP and handed to
Kafka; storage happens in the consumer. The read helpers return stored
events for support and debugging.
"""
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel

from behavior_analytics.core.config import settings
from behavior_analytics.core.database import DbSession
from behavior_analytics.core.logging import get_logger
from behavior_analytics.core.security import AdminUser
from behavior_analytics.messaging.producer import EventProducer
from behavior_analytics.repositories.behavior_event import BehaviorEventRepository
from behavior_analytics.schemas.events import (
    AuthEventRequest,
    BehaviorEventResponse,
    DiscountUsageEventRequest,
    ProductClickEventRequest,
    TrackEventRequest,
    TrackEventResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

MAX_READ_LIMIT = 1000


def get_event_producer(request: Request) -> EventProducer:
    """The application's shared producer."""
    return request.app.state.event_producer


Producer = Annotated[EventProducer, Depends(get_event_producer)]
ReadLimit = Annotated[int, Query(ge=1, le=MAX_READ_LIMIT)]


def client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else None


async def _publish(
    producer: EventProducer,
    topic: str,
    body: BaseModel,
    request: Request,
) -> dict[str, Any]:
    message = body.model_dump(mode="json", by_alias=True, exclude_none=True)
    ip_address = client_ip(request)
    if ip_address:
        message["ipAddress"] = ip_address

    await producer.publish(topic, message)
    logger.info(
        "Event accepted",
        topic=topic,
        event_type=message.get("eventType"),
        session_id=message.get("sessionId"),
    )
    return message


@router.post("/track", response_model=TrackEventResponse, status_code=status.HTTP_202_ACCEPTED)
async def track_event(
    body: TrackEventRequest,
    request: Request,
    producer: Producer,
) -> TrackEventResponse:
    """Track a generic behavior event."""
    await _publish(producer, settings.kafka_behavior_topic, body, request)
    return TrackEventResponse(message="Event tracked successfully")


@router.post(
    "/product-click",
    response_model=TrackEventResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def track_product_click(
    body: ProductClickEventRequest,
    request: Request,
    producer: Producer,
) -> TrackEventResponse:
    """Track a click on a product card."""
    await _publish(producer, settings.kafka_behavior_topic, body, request)
    return TrackEventResponse(message="Product click tracked successfully")


@router.post(
    "/discount-usage",
    response_model=TrackEventResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def track_discount_usage(
    body: DiscountUsageEventRequest,
    request: Request,
    producer: Producer,
) -> TrackEventResponse:
    """Track a discount applied to an order."""
    await _publish(producer, settings.kafka_behavior_topic, body, request)
    return TrackEventResponse(message="Discount usage tracked successfully")


@router.post("/auth", response_model=TrackEventResponse, status_code=status.HTTP_202_ACCEPTED)
async def track_auth_event(
    body: AuthEventRequest,
    request: Request,
    producer: Producer,
) -> TrackEventResponse:
    """Track a customer login or logout."""
    await _publish(producer, settings.kafka_auth_topic, body, request)
    return TrackEventResponse(message="Auth event tracked successfully")


@router.get("/session/{session_id}", response_model=list[BehaviorEventResponse])
async def get_session_events(
    session_id: str,
    session: DbSession,
    _admin: AdminUser,
    limit: ReadLimit = 100,
) -> list[BehaviorEventResponse]:
    """Most recent events of a session."""
    events = await BehaviorEventRepository(session).list_by_session(session_id, limit)
    return [BehaviorEventResponse.model_validate(event) for event in events]


@router.get("/customer/{customer_id}", response_model=list[BehaviorEventResponse])
async def get_customer_events(
    customer_id: int,
    session: DbSession,
    _admin: AdminUser,
    limit: ReadLimit = 100,
) -> list[BehaviorEventResponse]:
    """Most recent events of a customer."""
    events = await BehaviorEventRepository(session).list_by_customer(customer_id, limit)
    return [BehaviorEventResponse.model_validate(event) for event in events]


@router.get("/type/{event_type}", response_model=list[BehaviorEventResponse])
async def get_events_by_type(
    event_type: str,
    session: DbSession,
    _admin: AdminUser,
    limit: ReadLimit = 100,
) -> list[BehaviorEventResponse]:
    """Most recent events of a kind."""
    events = await BehaviorEventRepository(session).list_by_type(event_type, limit)
    return [BehaviorEventResponse.model_validate(event) for event in events]
