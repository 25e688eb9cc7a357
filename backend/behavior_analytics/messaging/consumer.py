"""
Kafka consumer loop for tracking events.

Messages are handled one at a time: the offset of a message is stored only
after its dispatch has finished, so delivery is at-least-once.
"""
import asyncio
from typing import Any, Optional

from confluent_kafka import Consumer, KafkaError, KafkaException

from behavior_analytics.core.config import settings
from behavior_analytics.core.logging import get_logger
from behavior_analytics.messaging.dispatcher import EventDispatcher

logger = get_logger(__name__)


def consumer_config() -> dict[str, Any]:
    """librdkafka settings for the tracking consumer group."""
    return {
        "bootstrap.servers": settings.kafka_bootstrap_servers,
        "client.id": settings.kafka_client_id,
        "group.id": settings.kafka_group_id,
        "auto.offset.reset": "earliest",
        "enable.auto.commit": True,
        "enable.auto.offset.store": False,
    }


class EventConsumer:
    """Polls the behavior and auth topics and dispatches each message."""

    def __init__(
        self,
        dispatcher: Optional[EventDispatcher] = None,
        consumer: Optional[Consumer] = None,
        topics: Optional[list[str]] = None,
        poll_timeout: Optional[float] = None,
    ) -> None:
        self.dispatcher = dispatcher or EventDispatcher()
        self._consumer = consumer
        self.topics = topics or [settings.kafka_behavior_topic, settings.kafka_auth_topic]
        self.poll_timeout = settings.kafka_poll_timeout if poll_timeout is None else poll_timeout
        self._running = False
        self._stopping = False
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def consumer(self) -> Consumer:
        if self._consumer is None:
            self._consumer = Consumer(consumer_config())
        return self._consumer

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Poll until `stop()` is called, then close the client."""
        consumer = self.consumer
        consumer.subscribe(self.topics)
        self._running = True
        logger.info("Event consumer started", topics=self.topics, group_id=settings.kafka_group_id)

        try:
            while not self._stopping:
                try:
                    message = await asyncio.to_thread(consumer.poll, self.poll_timeout)
                except KafkaException as exc:
                    logger.error("Kafka poll failed", error=str(exc))
                    continue
                if message is None:
                    continue

                error = message.error()
                if error is not None:
                    if error.code() != KafkaError._PARTITION_EOF:
                        logger.error("Kafka consumer error", error=str(error))
                    continue

                await self.dispatcher.process_message(message.value())
                try:
                    consumer.store_offsets(message=message)
                except KafkaException as exc:
                    # The partition was revoked by a rebalance; its new owner
                    # resumes from the last committed offset.
                    logger.warning(
                        "Could not store Kafka offset",
                        topic=message.topic(),
                        partition=message.partition(),
                        offset=message.offset(),
                        error=str(exc),
                    )
        finally:
            self._running = False
            self._stopping = False
            await asyncio.to_thread(consumer.close)
            self._consumer = None
            logger.info("Event consumer stopped")

    def stop(self) -> None:
        """Ask the loop to exit after the current poll, or before the first one."""
        self._stopping = True

    def start(self) -> asyncio.Task[None]:
        """Run the loop as a background task of the current event loop."""
        self._task = asyncio.create_task(self.run(), name="event-consumer")
        self._task.add_done_callback(_log_task_failure)
        return self._task

    async def shutdown(self) -> None:
        """Stop the background task started by `start()` and wait for it."""
        self.stop()
        if self._task is not None:
            await self._task
            self._task = None


def _log_task_failure(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Event consumer stopped unexpectedly", error=str(exc), exc_info=exc)
