"""
Routes consumed messages to the event handlers.

A message that cannot be decoded, names an unknown kind or fails in its
handler is logged and dropped; the consumer moves on either way.
"""
import json
from collections.abc import Callable
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from behavior_analytics.core.database import async_session_factory
from behavior_analytics.core.logging import get_logger
from behavior_analytics.models.behavior_event import BehaviorEvent
from behavior_analytics.schemas.events import EventEnvelope, EventType
from behavior_analytics.services.event_service import EventService

logger = get_logger(__name__)


class EventDispatcher:
    """Decodes a message, resolves its kind and stores it in its own transaction."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        service_factory: Callable[[AsyncSession], EventService] = EventService.from_session,
    ) -> None:
        self.session_factory = session_factory or async_session_factory
        self.service_factory = service_factory

    async def process_message(self, value: Any) -> Optional[BehaviorEvent]:
        """
        Handle one raw message value.

        Returns:
            The stored event, or None when the message was dropped.
        """
        payload = self._decode(value)
        if payload is None:
            return None

        event_type = EventType.parse(payload.get("eventType"))
        if event_type is None:
            logger.warning("Unknown event type, dropping message", event_type=payload.get("eventType"))
            return None

        try:
            envelope = EventEnvelope.model_validate(payload)
        except ValidationError as e:
            logger.error("Invalid event message", event_type=event_type.value, error=str(e))
            return None

        async with self.session_factory() as session:
            try:
                event = await self.service_factory(session).handle(event_type, envelope)
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(
                    "Event handler failed, dropping message",
                    event_type=event_type.value,
                    session_id=envelope.session_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return None

        return event

    @staticmethod
    def _decode(value: Any) -> Optional[dict[str, Any]]:
        if value is None:
            logger.warning("Empty event message")
            return None

        try:
            text = value.decode("utf-8") if isinstance(value, (bytes, bytearray)) else value
            payload = json.loads(text)
        except (UnicodeDecodeError, TypeError, json.JSONDecodeError) as e:
            logger.error("Malformed event message", error=str(e))
            return None

        if not isinstance(payload, dict):
            logger.error("Event message is not an object", message_type=type(payload).__name__)
            return None
        return payload
