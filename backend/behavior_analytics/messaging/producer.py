"""
Kafka producer for tracking events.

One JSON message per event. `publish` blocks (in a worker thread) until the
broker acknowledges the message or the delivery fails; nothing is queued
locally beyond the client's own retry buffer.
"""
import asyncio
import json
from typing import Any, Optional

from confluent_kafka import KafkaException, Producer

from behavior_analytics.core.config import settings
from behavior_analytics.core.exceptions import EventPublishError
from behavior_analytics.core.logging import get_logger

logger = get_logger(__name__)


def producer_config() -> dict[str, Any]:
    """librdkafka settings for the tracking producer."""
    return {
        "bootstrap.servers": settings.kafka_bootstrap_servers,
        "client.id": settings.kafka_client_id,
        "acks": "all",
        "message.send.max.retries": settings.kafka_retries,
        "retry.backoff.ms": settings.kafka_retry_backoff_ms,
        "retry.backoff.max.ms": settings.kafka_retry_backoff_max_ms,
    }


class EventProducer:
    """Publishes tracking events to Kafka topics."""

    def __init__(
        self,
        producer: Optional[Producer] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._producer = producer
        self.timeout = settings.kafka_publish_timeout if timeout is None else timeout

    @property
    def producer(self) -> Producer:
        if self._producer is None:
            self._producer = Producer(producer_config())
            logger.info(
                "Kafka producer created",
                brokers=settings.kafka_bootstrap_servers,
                client_id=settings.kafka_client_id,
            )
        return self._producer

    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        """
        Send one event and wait for its delivery report.

        Raises:
            EventPublishError: If the broker rejects the message or it is
                not delivered within the publish timeout.
        """
        value = json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8")
        key = payload.get("sessionId")

        await asyncio.to_thread(self._send, topic, value, key)

        logger.debug(
            "Event published",
            topic=topic,
            event_type=payload.get("eventType"),
            session_id=key,
        )

    def _send(self, topic: str, value: bytes, key: Optional[str]) -> None:
        report: dict[str, Any] = {}

        def on_delivery(err: Any, msg: Any) -> None:
            report["error"] = err

        try:
            self.producer.produce(
                topic,
                value=value,
                key=key.encode("utf-8") if key else None,
                on_delivery=on_delivery,
            )
            self.producer.flush(self.timeout)
        except (KafkaException, BufferError) as e:
            logger.error("Kafka produce failed", topic=topic, error=str(e))
            raise EventPublishError(topic, str(e)) from e

        if "error" not in report:
            logger.error("Kafka delivery timed out", topic=topic, timeout=self.timeout)
            raise EventPublishError(topic, "Timed out waiting for delivery")
        if report["error"] is not None:
            logger.error("Kafka delivery failed", topic=topic, error=str(report["error"]))
            raise EventPublishError(topic, str(report["error"]))

    async def close(self) -> None:
        """Flush anything in flight. Safe to call when nothing was sent."""
        if self._producer is None:
            return
        remaining = await asyncio.to_thread(self._producer.flush, self.timeout)
        if remaining:
            logger.warning("Kafka producer closed with undelivered messages", remaining=remaining)
        self._producer = None
        logger.info("Kafka producer closed")
