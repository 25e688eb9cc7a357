"""
Event service - turns consumed tracking messages into stored behavior events.

Each event kind has exactly one handler in HANDLERS. Handlers decide which
entity a row points at and normalise the kind-specific payload; storage
and the viewed-products side effect are shared.
"""
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from behavior_analytics.core.logging import get_logger
from behavior_analytics.models.behavior_event import BehaviorEvent
from behavior_analytics.repositories.behavior_event import BehaviorEventRepository
from behavior_analytics.repositories.product import ProductRepository, is_product_id
from behavior_analytics.repositories.viewed_product import ViewedProductRepository
from behavior_analytics.schemas.events import (
    AUTO_BUILD_EVENTS,
    EventEnvelope,
    EventType,
    read_payload,
)

logger = get_logger(__name__)

AUTO_BUILD_ENTITY = "auto_build_pc"
MANUAL_BUILD_ENTITY = "manual_build_pc"

_UNPARSED: Any = object()


def parse_customer_id(value: Any) -> Optional[int]:
    """
    Customer id as an int, or None for anonymous events.

    Numeric strings are accepted; anything else is logged and dropped so
    the event itself is still stored.
    """
    if value is None or value == "":
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)

    logger.warning("Invalid customerId, storing event as anonymous", customer_id=str(value))
    return None


class EventService:
    """Stores one BehaviorEvent per consumed message."""

    def __init__(
        self,
        events: BehaviorEventRepository,
        products: ProductRepository,
        viewed_products: ViewedProductRepository,
    ) -> None:
        self.events = events
        self.products = products
        self.viewed_products = viewed_products

    @classmethod
    def from_session(cls, session: AsyncSession) -> "EventService":
        return cls(
            BehaviorEventRepository(session),
            ProductRepository(session),
            ViewedProductRepository(session),
        )

    async def handle(self, event_type: EventType, envelope: EventEnvelope) -> BehaviorEvent:
        """Run the handler registered for a kind."""
        return await HANDLERS[event_type](self, envelope)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def track_page_view(self, envelope: EventEnvelope) -> BehaviorEvent:
        return await self._store(envelope, envelope.entity_id, "page")

    async def track_product_event(self, envelope: EventEnvelope) -> BehaviorEvent:
        """product_viewed and cart add/remove."""
        payload = read_payload(envelope.event_type, envelope.event_data)
        product_id = envelope.entity_id or payload.product_id
        if not product_id:
            logger.warning(
                "Product event without product id",
                event_type=envelope.event_type,
                session_id=envelope.session_id,
            )

        event = await self._store(envelope, product_id, "product")

        if (
            envelope.event_type == EventType.PRODUCT_VIEWED.value
            and event.customer_id is not None
            and product_id
        ):
            await self._record_view(event.customer_id, product_id)
        return event

    async def track_product_click(self, envelope: EventEnvelope) -> BehaviorEvent:
        payload = read_payload(envelope.event_type, envelope.event_data)
        product_id = envelope.product_id or envelope.entity_id or payload.product_id
        if not product_id:
            logger.warning("Product click without product id", session_id=envelope.session_id)

        event_data = dict(envelope.event_data or {})
        for key, value in (
            ("productName", envelope.product_name),
            ("category", envelope.category),
            ("price", envelope.price),
        ):
            if value is not None:
                event_data[key] = value

        return await self._store(envelope, product_id, "product", event_data=event_data)

    async def track_order_event(self, envelope: EventEnvelope) -> BehaviorEvent:
        """order_created and payment_completed."""
        payload = read_payload(envelope.event_type, envelope.event_data)
        order_id = envelope.entity_id or payload.order_id
        if not order_id:
            logger.warning(
                "Order event without order id",
                event_type=envelope.event_type,
                session_id=envelope.session_id,
            )

        entity_type = "payment" if envelope.event_type == EventType.PAYMENT_COMPLETED.value else "order"
        return await self._store(envelope, order_id, entity_type)

    async def track_discount_usage(self, envelope: EventEnvelope) -> BehaviorEvent:
        order_id = envelope.order_id or envelope.entity_id
        if not order_id:
            logger.warning("Discount usage without order id", session_id=envelope.session_id)

        event_data = dict(envelope.discount_data or envelope.event_data or {})
        if envelope.discount_type:
            event_data["discountType"] = envelope.discount_type

        return await self._store(envelope, order_id, "order", event_data=event_data)

    async def track_search(self, envelope: EventEnvelope) -> BehaviorEvent:
        return await self._store(envelope, envelope.entity_id, "search")

    async def track_session_event(self, envelope: EventEnvelope) -> BehaviorEvent:
        return await self._store(envelope, envelope.session_id, "session")

    async def track_auth_event(self, envelope: EventEnvelope) -> BehaviorEvent:
        customer_id = parse_customer_id(envelope.customer_id)
        entity_id = str(customer_id) if customer_id is not None else None
        return await self._store(envelope, entity_id, "user", customer_id=customer_id)

    async def track_pc_build_event(self, envelope: EventEnvelope) -> BehaviorEvent:
        kind = EventType.parse(envelope.event_type)
        default_entity = AUTO_BUILD_ENTITY if kind in AUTO_BUILD_EVENTS else MANUAL_BUILD_ENTITY
        return await self._store(envelope, envelope.entity_id or default_entity, "pc_build")

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    async def _store(
        self,
        envelope: EventEnvelope,
        entity_id: Optional[str],
        entity_type: str,
        *,
        event_data: Optional[dict[str, Any]] = None,
        customer_id: Any = _UNPARSED,
    ) -> BehaviorEvent:
        if customer_id is _UNPARSED:
            customer_id = parse_customer_id(envelope.customer_id)

        event = await self.events.create({
            "customer_id": customer_id,
            "session_id": envelope.session_id,
            "event_type": envelope.event_type,
            "entity_id": entity_id,
            "entity_type": entity_type,
            "page_url": envelope.page_url,
            "referrer_url": envelope.referrer_url,
            "device_info": envelope.device_info,
            "ip_address": envelope.ip_address,
            "event_data": envelope.event_data if event_data is None else event_data,
        })

        logger.debug(
            "Behavior event stored",
            event_type=event.event_type,
            entity_id=entity_id,
            session_id=event.session_id,
        )
        return event

    async def _record_view(self, customer_id: int, product_id: str) -> None:
        """Refresh the customer's viewed-products row; failures only warn."""
        if not is_product_id(product_id):
            return

        try:
            async with self.viewed_products.session.begin_nested():
                if not await self.products.exists(product_id):
                    logger.debug("Viewed product not in catalogue", product_id=product_id)
                    return
                await self.viewed_products.record_view(customer_id, product_id)
        except SQLAlchemyError as e:
            logger.warning(
                "Failed to record viewed product",
                customer_id=customer_id,
                product_id=product_id,
                error=str(e),
            )


Handler = Callable[[EventService, EventEnvelope], Awaitable[BehaviorEvent]]

HANDLERS: dict[EventType, Handler] = {
    EventType.PAGE_VIEW: EventService.track_page_view,
    EventType.PRODUCT_VIEWED: EventService.track_product_event,
    EventType.PRODUCT_CLICK: EventService.track_product_click,
    EventType.PRODUCT_ADDED_TO_CART: EventService.track_product_event,
    EventType.PRODUCT_REMOVED_FROM_CART: EventService.track_product_event,
    EventType.ORDER_CREATED: EventService.track_order_event,
    EventType.PAYMENT_COMPLETED: EventService.track_order_event,
    EventType.SEARCH: EventService.track_search,
    EventType.SESSION_START: EventService.track_session_event,
    EventType.SESSION_END: EventService.track_session_event,
    EventType.USER_AUTHENTICATED: EventService.track_auth_event,
    EventType.USER_LOGOUT: EventService.track_auth_event,
    EventType.DISCOUNT_USAGE: EventService.track_discount_usage,
    EventType.AUTO_BUILD_PC_REQUEST: EventService.track_pc_build_event,
    EventType.AUTO_BUILD_PC_ADD_TO_CART: EventService.track_pc_build_event,
    EventType.AUTO_BUILD_PC_CUSTOMIZE: EventService.track_pc_build_event,
    EventType.MANUAL_BUILD_PC_ADD_TO_CART: EventService.track_pc_build_event,
    EventType.MANUAL_BUILD_PC_COMPONENT_SELECT: EventService.track_pc_build_event,
    EventType.MANUAL_BUILD_PC_SAVE_CONFIG: EventService.track_pc_build_event,
    EventType.PC_BUILD_VIEW: EventService.track_pc_build_event,
}
