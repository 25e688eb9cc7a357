"""
Tests for the Kafka producer, the consumer loop and the worker entry point.
Kafka clients are replaced with mocks.
"""
import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from confluent_kafka import KafkaError, KafkaException

from behavior_analytics.core.exceptions import EventPublishError
from behavior_analytics.messaging.consumer import EventConsumer, consumer_config
from behavior_analytics.messaging.dispatcher import EventDispatcher
from behavior_analytics.messaging.producer import EventProducer, producer_config
from behavior_analytics.worker import run_worker


def fake_kafka_producer(error: Any = None, deliver: bool = True) -> MagicMock:
    """Producer whose flush() fires the delivery callbacks of produced messages."""
    kafka = MagicMock()
    callbacks = []

    def produce(topic, value=None, key=None, on_delivery=None):
        callbacks.append(on_delivery)

    def flush(timeout=None):
        if deliver:
            for callback in callbacks:
                callback(error, None)
        return 0

    kafka.produce.side_effect = produce
    kafka.flush.side_effect = flush
    return kafka


class TestEventProducer:

    def test_client_config(self):
        config = producer_config()

        assert config["acks"] == "all"
        assert config["message.send.max.retries"] == 10
        assert config["retry.backoff.ms"] == 300
        assert config["retry.backoff.max.ms"] == 30000

    async def test_publish_sends_json_keyed_by_session(self):
        kafka = fake_kafka_producer()
        producer = EventProducer(producer=kafka, timeout=1)

        await producer.publish("user-behavior", {"eventType": "search", "sessionId": "sess-1"})

        topic = kafka.produce.call_args.args[0]
        kwargs = kafka.produce.call_args.kwargs
        assert topic == "user-behavior"
        assert kwargs["key"] == b"sess-1"
        assert json.loads(kwargs["value"]) == {"eventType": "search", "sessionId": "sess-1"}

    async def test_delivery_error_raises(self):
        producer = EventProducer(producer=fake_kafka_producer(error="Broker: Not enough replicas"))

        with pytest.raises(EventPublishError) as exc_info:
            await producer.publish("user-behavior", {"eventType": "search", "sessionId": "s"})

        assert exc_info.value.topic == "user-behavior"

    async def test_undelivered_message_times_out(self):
        producer = EventProducer(producer=fake_kafka_producer(deliver=False), timeout=0.01)

        with pytest.raises(EventPublishError, match="Timed out"):
            await producer.publish("user-auth", {"eventType": "user_logout", "sessionId": "s"})

    async def test_full_queue_raises(self):
        kafka = MagicMock()
        kafka.produce.side_effect = BufferError("Local: Queue full")

        with pytest.raises(EventPublishError):
            await EventProducer(producer=kafka).publish("user-behavior", {"sessionId": "s"})

    async def test_close_flushes(self):
        kafka = fake_kafka_producer()
        producer = EventProducer(producer=kafka, timeout=2)

        await producer.close()

        kafka.flush.assert_called_once_with(2)

    async def test_close_without_client_is_noop(self):
        with patch("behavior_analytics.messaging.producer.Producer") as producer_class:
            await EventProducer().close()

        producer_class.assert_not_called()


def kafka_message(value: bytes | None = None, error_code: int | None = None) -> MagicMock:
    message = MagicMock()
    if error_code is None:
        message.error.return_value = None
    else:
        error = MagicMock()
        error.code.return_value = error_code
        message.error.return_value = error
    message.value.return_value = value
    return message


class TestEventConsumer:

    def test_offsets_are_stored_manually(self):
        config = consumer_config()

        assert config["group.id"] == "pc-ecommerce-group"
        assert config["enable.auto.offset.store"] is False

    async def test_run_dispatches_then_stores_offset(self):
        payload = json.dumps({"eventType": "page_view", "sessionId": "s"}).encode()
        good = kafka_message(payload)
        eof = kafka_message(error_code=KafkaError._PARTITION_EOF)
        broken = kafka_message(error_code=KafkaError._TRANSPORT)

        kafka = MagicMock()
        dispatcher = AsyncMock(spec=EventDispatcher)
        consumer = EventConsumer(dispatcher=dispatcher, consumer=kafka, poll_timeout=0)
        messages = iter([None, eof, broken, good])

        def poll(timeout):
            try:
                return next(messages)
            except StopIteration:
                consumer.stop()
                return None

        kafka.poll.side_effect = poll

        await consumer.run()

        kafka.subscribe.assert_called_once_with(["user-behavior", "user-auth"])
        dispatcher.process_message.assert_awaited_once_with(payload)
        kafka.store_offsets.assert_called_once_with(message=good)
        kafka.close.assert_called_once()
        assert not consumer.running

    async def test_revoked_partition_keeps_consuming(self):
        payloads = [json.dumps({"eventType": "search", "sessionId": f"s{i}"}).encode() for i in range(3)]
        kafka = MagicMock()
        kafka.store_offsets.side_effect = [KafkaException(KafkaError(KafkaError._STATE)), None, None]
        dispatcher = AsyncMock(spec=EventDispatcher)
        consumer = EventConsumer(dispatcher=dispatcher, consumer=kafka, poll_timeout=0)
        messages = iter([kafka_message(payload) for payload in payloads])

        def poll(timeout):
            try:
                return next(messages)
            except StopIteration:
                consumer.stop()
                return None

        kafka.poll.side_effect = poll

        await consumer.run()

        assert dispatcher.process_message.await_count == 3
        assert kafka.store_offsets.call_count == 3

    async def test_poll_failure_keeps_polling(self):
        payload = json.dumps({"eventType": "page_view", "sessionId": "s"}).encode()
        good = kafka_message(payload)
        kafka = MagicMock()
        dispatcher = AsyncMock(spec=EventDispatcher)
        consumer = EventConsumer(dispatcher=dispatcher, consumer=kafka, poll_timeout=0)
        results = iter([KafkaException(KafkaError(KafkaError._TRANSPORT)), good])

        def poll(timeout):
            result = next(results, None)
            if isinstance(result, Exception):
                raise result
            if result is None:
                consumer.stop()
            return result

        kafka.poll.side_effect = poll

        await consumer.run()

        dispatcher.process_message.assert_awaited_once_with(payload)
        kafka.store_offsets.assert_called_once_with(message=good)

    async def test_crashed_task_is_logged(self):
        kafka = MagicMock()
        kafka.poll.return_value = kafka_message(b"{}")
        dispatcher = AsyncMock(spec=EventDispatcher)
        dispatcher.process_message.side_effect = RuntimeError("database gone")
        consumer = EventConsumer(dispatcher=dispatcher, consumer=kafka, poll_timeout=0)

        with patch("behavior_analytics.messaging.consumer.logger") as logger:
            task = consumer.start()
            with pytest.raises(RuntimeError):
                await task
            await asyncio.sleep(0)

        logger.error.assert_called_once()
        assert logger.error.call_args.args[0] == "Event consumer stopped unexpectedly"
        kafka.close.assert_called_once()

    async def test_start_and_shutdown(self):
        kafka = MagicMock()
        kafka.poll.return_value = None
        consumer = EventConsumer(dispatcher=AsyncMock(spec=EventDispatcher), consumer=kafka)

        consumer.start()
        await consumer.shutdown()

        kafka.close.assert_called_once()


async def test_worker_runs_consumer_and_closes_pool():
    consumer = MagicMock()
    consumer.run = AsyncMock()

    with patch("behavior_analytics.worker.close_db", new=AsyncMock()) as close_db:
        await run_worker(consumer)

    consumer.run.assert_awaited_once()
    close_db.assert_awaited_once()
