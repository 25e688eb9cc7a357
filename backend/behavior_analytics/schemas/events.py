"""
Event schemas: the closed set of event kinds, typed views over the
kind-specific `eventData` payloads and the ingestion request bodies.
"""
import enum
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel

from behavior_analytics.core.coercion import to_float, to_int


class EventType(str, enum.Enum):
    """Every event kind the consumer knows how to store."""

    PAGE_VIEW = "page_view"
    PRODUCT_VIEWED = "product_viewed"
    PRODUCT_CLICK = "product_click"
    PRODUCT_ADDED_TO_CART = "product_added_to_cart"
    PRODUCT_REMOVED_FROM_CART = "product_removed_from_cart"
    ORDER_CREATED = "order_created"
    PAYMENT_COMPLETED = "payment_completed"
    SEARCH = "search"
    SESSION_START = "session_start"
    SESSION_END = "session_end"
    USER_AUTHENTICATED = "user_authenticated"
    USER_LOGOUT = "user_logout"
    DISCOUNT_USAGE = "discount_usage"
    AUTO_BUILD_PC_REQUEST = "auto_build_pc_request"
    AUTO_BUILD_PC_ADD_TO_CART = "auto_build_pc_add_to_cart"
    AUTO_BUILD_PC_CUSTOMIZE = "auto_build_pc_customize"
    MANUAL_BUILD_PC_ADD_TO_CART = "manual_build_pc_add_to_cart"
    MANUAL_BUILD_PC_COMPONENT_SELECT = "manual_build_pc_component_select"
    MANUAL_BUILD_PC_SAVE_CONFIG = "manual_build_pc_save_config"
    PC_BUILD_VIEW = "pc_build_view"

    @classmethod
    def parse(cls, value: Any) -> Optional["EventType"]:
        """Resolve a wire value to a kind, or None when it is not one we know."""
        try:
            return cls(value)
        except ValueError:
            return None


# Interactions that count as engagement for bounce detection
MEANINGFUL_INTERACTIONS = frozenset({
    EventType.PRODUCT_VIEWED.value,
    EventType.PRODUCT_CLICK.value,
    EventType.PRODUCT_ADDED_TO_CART.value,
    EventType.ORDER_CREATED.value,
    EventType.PAYMENT_COMPLETED.value,
})

AUTO_BUILD_EVENTS = (
    EventType.AUTO_BUILD_PC_REQUEST,
    EventType.AUTO_BUILD_PC_ADD_TO_CART,
    EventType.AUTO_BUILD_PC_CUSTOMIZE,
)
MANUAL_BUILD_EVENTS = (
    EventType.MANUAL_BUILD_PC_ADD_TO_CART,
    EventType.MANUAL_BUILD_PC_COMPONENT_SELECT,
    EventType.MANUAL_BUILD_PC_SAVE_CONFIG,
)
PC_BUILD_EVENTS = AUTO_BUILD_EVENTS + MANUAL_BUILD_EVENTS + (EventType.PC_BUILD_VIEW,)


def _as_list(value: Any) -> list[Any]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _quantity(value: Any) -> int:
    return to_int(value) or 1


LenientFloat = Annotated[float, BeforeValidator(to_float)]
LenientInt = Annotated[int, BeforeValidator(to_int)]
Quantity = Annotated[int, BeforeValidator(_quantity)]
Text = Annotated[Optional[str], BeforeValidator(_as_text)]


class CamelModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# eventData payloads
# ---------------------------------------------------------------------------


class EventPayload(CamelModel):
    """Generic payload. Keys we do not model are kept as-is."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class ProductPayload(EventPayload):
    product_id: Text = None
    product_name: Text = None
    category: Text = None
    price: Optional[LenientFloat] = None


class SearchPayload(EventPayload):
    query: Text = None
    results_count: LenientInt = 0


class OrderLine(EventPayload):
    product_id: Text = None
    name: Text = None
    quantity: Quantity = 1
    price: LenientFloat = 0.0


class OrderPayload(EventPayload):
    order_id: Text = None
    order_total: LenientFloat = 0.0
    products: Annotated[list[OrderLine], BeforeValidator(_as_list)] = Field(default_factory=list)


class DiscountPayload(EventPayload):
    discount_type: Text = None
    discount_amount: LenientFloat = 0.0
    order_total: LenientFloat = 0.0
    order_subtotal: LenientFloat = 0.0
    savings_percent: LenientFloat = 0.0
    manual_discount_id: Any = None
    applied_discount_ids: Any = None


class PcBuildComponent(EventPayload):
    type: Text = None
    name: Text = None


class PcBuildPayload(EventPayload):
    user_input: Text = None
    components: Annotated[list[PcBuildComponent], BeforeValidator(_as_list)] = Field(
        default_factory=list
    )


class AuthPayload(EventPayload):
    method: Text = None
    email: Text = None


PAYLOAD_SCHEMAS: dict[EventType, type[EventPayload]] = {
    EventType.PAGE_VIEW: EventPayload,
    EventType.PRODUCT_VIEWED: ProductPayload,
    EventType.PRODUCT_CLICK: ProductPayload,
    EventType.PRODUCT_ADDED_TO_CART: ProductPayload,
    EventType.PRODUCT_REMOVED_FROM_CART: ProductPayload,
    EventType.ORDER_CREATED: OrderPayload,
    EventType.PAYMENT_COMPLETED: OrderPayload,
    EventType.SEARCH: SearchPayload,
    EventType.SESSION_START: EventPayload,
    EventType.SESSION_END: EventPayload,
    EventType.USER_AUTHENTICATED: AuthPayload,
    EventType.USER_LOGOUT: AuthPayload,
    EventType.DISCOUNT_USAGE: DiscountPayload,
    EventType.AUTO_BUILD_PC_REQUEST: PcBuildPayload,
    EventType.AUTO_BUILD_PC_ADD_TO_CART: PcBuildPayload,
    EventType.AUTO_BUILD_PC_CUSTOMIZE: PcBuildPayload,
    EventType.MANUAL_BUILD_PC_ADD_TO_CART: PcBuildPayload,
    EventType.MANUAL_BUILD_PC_COMPONENT_SELECT: PcBuildPayload,
    EventType.MANUAL_BUILD_PC_SAVE_CONFIG: PcBuildPayload,
    EventType.PC_BUILD_VIEW: PcBuildPayload,
}


def payload_schema(event_type: Union[EventType, str, None]) -> type[EventPayload]:
    """Payload schema for a kind; the generic schema for unknown kinds."""
    kind = event_type if isinstance(event_type, EventType) else EventType.parse(event_type)
    if kind is None:
        return EventPayload
    return PAYLOAD_SCHEMAS[kind]


def read_payload(event_type: Union[EventType, str, None], data: Any) -> Any:
    """Typed view over a stored `eventData` value. Non-objects read as empty."""
    schema = payload_schema(event_type)
    return schema.model_validate(data if isinstance(data, dict) else {})


class DeviceInfo(EventPayload):
    """Client description sent with each event."""

    user_agent: Text = None
    screen_width: LenientInt = 0
    screen_height: LenientInt = 0
    viewport_width: LenientInt = 0
    viewport_height: LenientInt = 0
    language: Text = None
    platform: Text = None


# ---------------------------------------------------------------------------
# Ingestion requests
# ---------------------------------------------------------------------------


def _numeric_id(value: Any) -> Any:
    if value is None or value == "":
        return None
    text = str(value).strip()
    if not text.isdigit():
        raise ValueError("customerId must be a numeric string")
    return text


CustomerId = Annotated[Optional[str], BeforeValidator(_numeric_id)]


class TrackEventRequest(CamelModel):
    """Generic tracking call."""

    event_type: str = Field(..., min_length=1, max_length=100)
    session_id: str = Field(..., min_length=1, max_length=255)
    customer_id: CustomerId = None
    entity_id: Text = None
    entity_type: Optional[str] = None
    page_url: Optional[str] = None
    referrer_url: Optional[str] = None
    device_info: Optional[DeviceInfo] = None
    event_data: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def validate_event_data(self) -> "TrackEventRequest":
        if self.event_data is not None:
            schema = payload_schema(self.event_type)
            self.event_data = schema.model_validate(self.event_data).model_dump(
                by_alias=True,
                exclude_unset=True,
                exclude_none=True,
            )
        return self


class ProductClickEventRequest(TrackEventRequest):
    """Product click with the product fields lifted to the top level."""

    event_type: str = EventType.PRODUCT_CLICK.value
    product_id: str = Field(..., min_length=1)
    product_name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None


class DiscountData(CamelModel):
    discount_amount: float
    order_total: float
    order_subtotal: float
    savings_percent: float
    manual_discount_id: Optional[int] = None
    applied_discount_ids: Optional[list[str]] = None


class DiscountUsageEventRequest(CamelModel):
    """Discount applied to an order."""

    event_type: Literal["discount_usage"] = EventType.DISCOUNT_USAGE.value
    order_id: str = Field(..., min_length=1)
    customer_id: CustomerId = None
    session_id: Optional[str] = None
    discount_type: Literal["manual", "automatic"]
    discount_data: DiscountData


class AuthEventRequest(CamelModel):
    """Login or logout of a customer account."""

    event_type: Literal["user_authenticated", "user_logout"]
    customer_id: Annotated[str, BeforeValidator(_numeric_id)]
    session_id: Optional[str] = None
    page_url: Optional[str] = None
    device_info: Optional[DeviceInfo] = None
    event_data: Optional[AuthPayload] = None


class TrackEventResponse(BaseModel):
    success: bool = True
    message: str


# ---------------------------------------------------------------------------
# Consumer side
# ---------------------------------------------------------------------------


class EventEnvelope(CamelModel):
    """
    A message as read from the queue.

    Covers the union of the request shapes above; `customer_id` stays raw
    because the handlers decide what an unusable value means.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    event_type: str
    session_id: Text = None
    customer_id: Any = None
    entity_id: Text = None
    entity_type: Optional[str] = None
    page_url: Optional[str] = None
    referrer_url: Optional[str] = None
    device_info: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    event_data: Optional[dict[str, Any]] = None

    # product_click
    product_id: Text = None
    product_name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[LenientFloat] = None

    # discount_usage
    order_id: Text = None
    discount_type: Optional[str] = None
    discount_data: Optional[dict[str, Any]] = None


class BehaviorEventResponse(CamelModel):
    """Stored event as returned by the read helpers."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: int
    event_id: Optional[UUID] = None
    customer_id: Optional[int] = None
    session_id: Optional[str] = None
    event_type: str
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    page_url: Optional[str] = None
    referrer_url: Optional[str] = None
    device_info: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    event_data: Optional[dict[str, Any]] = None
    created_at: datetime
