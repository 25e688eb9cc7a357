"""
Kafka messaging: the tracking producer, the consumer loop and its dispatcher.
"""
from behavior_analytics.messaging.consumer import EventConsumer
from behavior_analytics.messaging.dispatcher import EventDispatcher
from behavior_analytics.messaging.producer import EventProducer

__all__ = ["EventConsumer", "EventDispatcher", "EventProducer"]
