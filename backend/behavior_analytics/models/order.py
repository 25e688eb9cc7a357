"""
Order and order item models - read-only reference data for sales reports.
"""
import enum
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from behavior_analytics.core.database import Base

if TYPE_CHECKING:
    from behavior_analytics.models.product import Product


class OrderStatus(str, enum.Enum):
    """Order lifecycle states. Stored values are compared case-insensitively."""

    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    PAYMENT_SUCCESS = "payment_success"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


# Orders that count as revenue
COMPLETED_STATUSES = (
    OrderStatus.DELIVERED,
    OrderStatus.PAYMENT_SUCCESS,
    OrderStatus.COMPLETED,
)
REFUND_STATUSES = (OrderStatus.REFUNDED, OrderStatus.CANCELLED)
# Orders that mean a cart was not abandoned
PLACED_STATUSES = COMPLETED_STATUSES + (OrderStatus.PROCESSING,)


class Order(Base):
    """Customer order with total and status."""

    __tablename__ = "Orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[Optional[str]] = mapped_column(String(50), unique=True)

    total: Mapped[Decimal] = mapped_column("total_price", Numeric(10, 2), nullable=False)
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    receive_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    status: Mapped[str] = mapped_column(String(50), default=OrderStatus.PENDING.value)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    delivery_address: Mapped[Optional[str]] = mapped_column(String(500))

    customer_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("Customers.id"),
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_number or self.id} {self.status}>"


class OrderItem(Base):
    """Order line with quantity and unit price at purchase time."""

    __tablename__ = "Order_Detail"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), default=0)

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("Orders.id", ondelete="CASCADE"),
        index=True,
    )
    product_id: Mapped[Optional[str]] = mapped_column(
        PG_UUID(as_uuid=False),
        ForeignKey("Products.id"),
        index=True,
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped[Optional["Product"]] = relationship("Product")
