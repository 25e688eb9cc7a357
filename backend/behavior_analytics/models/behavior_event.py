"""
Behavior event model - one row per tracked user interaction.

Rows are written by the event consumer and never updated afterwards.
`event_data` and `device_info` keep the raw JSON payload; the typed views
over them live in `behavior_analytics.schemas.events`.
"""
from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from behavior_analytics.core.database import Base


class BehaviorEvent(Base):
    """A single user-behavior event (page view, cart action, order, search...)."""

    __tablename__ = "User_Behavior"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        default=uuid4,
        server_default=func.gen_random_uuid(),
    )

    # Actor
    customer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # What happened, and to what
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Page context
    page_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    referrer_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Client context
    device_info: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Kind-specific payload
    event_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_user_behavior_type_created", "event_type", "created_at"),
        Index("idx_user_behavior_session_created", "session_id", "created_at"),
        Index("idx_user_behavior_customer", "customer_id"),
        Index("idx_user_behavior_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<BehaviorEvent {self.id} {self.event_type} session={self.session_id}>"
