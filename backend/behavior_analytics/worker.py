"""
Standalone event consumer.

    python -m behavior_analytics.worker

Runs the Kafka consumer until SIGINT or SIGTERM, then closes the client
and the database pool.
"""
import asyncio
import signal

from behavior_analytics.core.config import settings
from behavior_analytics.core.database import close_db
from behavior_analytics.core.logging import configure_logging, get_logger
from behavior_analytics.messaging import EventConsumer

logger = get_logger(__name__)


async def run_worker(consumer: EventConsumer | None = None) -> None:
    consumer = consumer or EventConsumer()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, consumer.stop)

    logger.info(
        "Worker starting",
        brokers=settings.kafka_bootstrap_servers,
        group_id=settings.kafka_group_id,
    )
    try:
        await consumer.run()
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)
        await close_db()
        logger.info("Worker stopped")


def main() -> None:
    configure_logging()
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
