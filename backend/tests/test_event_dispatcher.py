"""
Tests for the consumer side: message dispatch and the per-kind handlers.
"""
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from behavior_analytics.messaging.dispatcher import EventDispatcher
from behavior_analytics.models.behavior_event import BehaviorEvent
from behavior_analytics.schemas.events import EventEnvelope, EventType
from behavior_analytics.services.event_service import HANDLERS, EventService, parse_customer_id

PRODUCT_ID = "3f1c2a9e-8b7d-4c6e-9a5f-1e2d3c4b5a69"


def test_every_event_type_has_a_handler():
    assert set(HANDLERS) == set(EventType)


class TestParseCustomerId:

    @pytest.mark.parametrize("value,expected", [
        ("42", 42),
        (" 7 ", 7),
        (13, 13),
        (None, None),
        ("", None),
        ("abc", None),
        ("4.5", None),
        (True, None),
    ])
    def test_parse(self, value: Any, expected):
        assert parse_customer_id(value) == expected


@pytest.fixture
def repositories():
    events = AsyncMock()
    events.create.side_effect = lambda data: BehaviorEvent(id=1, **data)

    products = AsyncMock()
    products.exists.return_value = True

    viewed = AsyncMock()
    viewed.session = MagicMock()
    return events, products, viewed


@pytest.fixture
def service(repositories) -> EventService:
    return EventService(*repositories)


def envelope(**fields: Any) -> EventEnvelope:
    return EventEnvelope.model_validate({"sessionId": "sess-1", **fields})


def stored(repositories) -> dict[str, Any]:
    events, _, _ = repositories
    events.create.assert_awaited_once()
    return events.create.await_args.args[0]


class TestEventService:
    """Handler mapping from envelope to stored row."""

    async def test_product_view_uses_payload_product_id(self, service, repositories):
        await service.handle(
            EventType.PRODUCT_VIEWED,
            envelope(eventType="product_viewed", eventData={"productId": "p-1"}),
        )

        row = stored(repositories)
        assert row["entity_id"] == "p-1"
        assert row["entity_type"] == "product"

    async def test_product_view_by_customer_records_view(self, service, repositories):
        _, products, viewed = repositories

        await service.handle(
            EventType.PRODUCT_VIEWED,
            envelope(eventType="product_viewed", customerId="9", entityId=PRODUCT_ID),
        )

        products.exists.assert_awaited_once_with(PRODUCT_ID)
        viewed.record_view.assert_awaited_once_with(9, PRODUCT_ID)

    async def test_anonymous_product_view_skips_viewed_products(self, service, repositories):
        _, _, viewed = repositories

        await service.handle(
            EventType.PRODUCT_VIEWED,
            envelope(eventType="product_viewed", entityId=PRODUCT_ID),
        )

        viewed.record_view.assert_not_awaited()

    async def test_viewed_product_failure_still_stores_event(self, service, repositories):
        events, _, viewed = repositories
        viewed.record_view.side_effect = IntegrityError("INSERT", {}, Exception("fk"))

        event = await service.handle(
            EventType.PRODUCT_VIEWED,
            envelope(eventType="product_viewed", customerId="9", entityId=PRODUCT_ID),
        )

        assert event.entity_id == PRODUCT_ID
        events.create.assert_awaited_once()

    async def test_missing_product_id_is_stored(self, service, repositories):
        await service.handle(
            EventType.PRODUCT_ADDED_TO_CART,
            envelope(eventType="product_added_to_cart"),
        )

        assert stored(repositories)["entity_id"] is None

    async def test_product_click_merges_top_level_fields(self, service, repositories):
        await service.handle(
            EventType.PRODUCT_CLICK,
            envelope(
                eventType="product_click",
                productId="p-2",
                productName="B650 Tomahawk",
                category="Mainboard",
                price=6290000,
                eventData={"position": 3},
            ),
        )

        row = stored(repositories)
        assert row["entity_id"] == "p-2"
        assert row["event_data"] == {
            "position": 3,
            "productName": "B650 Tomahawk",
            "category": "Mainboard",
            "price": 6290000.0,
        }

    async def test_order_created_uses_order_id(self, service, repositories):
        await service.handle(
            EventType.ORDER_CREATED,
            envelope(eventType="order_created", eventData={"orderId": "ORD-5", "orderTotal": 10}),
        )

        row = stored(repositories)
        assert row["entity_id"] == "ORD-5"
        assert row["entity_type"] == "order"

    async def test_payment_completed_entity_type(self, service, repositories):
        await service.handle(
            EventType.PAYMENT_COMPLETED,
            envelope(eventType="payment_completed", entityId="ORD-5"),
        )

        assert stored(repositories)["entity_type"] == "payment"

    async def test_discount_usage_flattens_discount_data(self, service, repositories):
        await service.handle(
            EventType.DISCOUNT_USAGE,
            envelope(
                eventType="discount_usage",
                orderId="ORD-8",
                discountType="automatic",
                discountData={"discountAmount": 20000, "orderTotal": 180000},
            ),
        )

        row = stored(repositories)
        assert row["entity_id"] == "ORD-8"
        assert row["entity_type"] == "order"
        assert row["event_data"] == {
            "discountAmount": 20000,
            "orderTotal": 180000,
            "discountType": "automatic",
        }

    async def test_session_events_point_at_session(self, service, repositories):
        await service.handle(EventType.SESSION_START, envelope(eventType="session_start"))

        row = stored(repositories)
        assert row["entity_id"] == "sess-1"
        assert row["entity_type"] == "session"

    async def test_auth_event_points_at_customer(self, service, repositories):
        await service.handle(
            EventType.USER_AUTHENTICATED,
            envelope(eventType="user_authenticated", customerId="21"),
        )

        row = stored(repositories)
        assert row["customer_id"] == 21
        assert row["entity_id"] == "21"
        assert row["entity_type"] == "user"

    async def test_invalid_customer_id_is_stored_as_anonymous(self, service, repositories):
        await service.handle(
            EventType.PAGE_VIEW,
            envelope(eventType="page_view", customerId="guest"),
        )

        row = stored(repositories)
        assert row["customer_id"] is None
        assert row["entity_type"] == "page"

    @pytest.mark.parametrize("event_type,default_entity", [
        (EventType.AUTO_BUILD_PC_REQUEST, "auto_build_pc"),
        (EventType.AUTO_BUILD_PC_CUSTOMIZE, "auto_build_pc"),
        (EventType.MANUAL_BUILD_PC_SAVE_CONFIG, "manual_build_pc"),
        (EventType.PC_BUILD_VIEW, "manual_build_pc"),
    ])
    async def test_pc_build_default_entity(self, service, repositories, event_type, default_entity):
        await service.handle(event_type, envelope(eventType=event_type.value))

        row = stored(repositories)
        assert row["entity_id"] == default_entity
        assert row["entity_type"] == "pc_build"


class TestEventDispatcher:
    """Message decoding, routing and transaction handling."""

    @pytest.fixture
    def session(self) -> AsyncMock:
        return AsyncMock()

    @pytest.fixture
    def event_service(self) -> AsyncMock:
        service = AsyncMock()
        service.handle.return_value = BehaviorEvent(id=1, event_type="page_view")
        return service

    @pytest.fixture
    def dispatcher(self, session: AsyncMock, event_service: AsyncMock) -> EventDispatcher:
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = session
        return EventDispatcher(session_factory=factory, service_factory=lambda s: event_service)

    async def test_valid_message_is_handled_and_committed(
        self, dispatcher, session, event_service
    ):
        message = json.dumps({"eventType": "page_view", "sessionId": "sess-1"}).encode()

        event = await dispatcher.process_message(message)

        assert event is not None
        event_type, env = event_service.handle.await_args.args
        assert event_type is EventType.PAGE_VIEW
        assert env.session_id == "sess-1"
        session.commit.assert_awaited_once()

    async def test_malformed_json_is_dropped(self, dispatcher, event_service):
        assert await dispatcher.process_message(b"{not json") is None
        event_service.handle.assert_not_awaited()

    async def test_non_object_is_dropped(self, dispatcher, event_service):
        assert await dispatcher.process_message(b"[1, 2]") is None
        event_service.handle.assert_not_awaited()

    async def test_empty_message_is_dropped(self, dispatcher, event_service):
        assert await dispatcher.process_message(None) is None
        event_service.handle.assert_not_awaited()

    async def test_unknown_event_type_is_dropped(self, dispatcher, event_service):
        message = json.dumps({"eventType": "wishlist_added", "sessionId": "s"}).encode()

        assert await dispatcher.process_message(message) is None
        event_service.handle.assert_not_awaited()

    async def test_handler_failure_rolls_back(self, dispatcher, session, event_service):
        event_service.handle.side_effect = RuntimeError("db down")
        message = json.dumps({"eventType": "search", "sessionId": "s"}).encode()

        assert await dispatcher.process_message(message) is None
        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()
