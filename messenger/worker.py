"""
Delivery worker - standalone Kafka consumer process

API 서버와 분리해서 Delivery Consumer를 수평 확장할 때 사용합니다.
(API 서버는 RUN_DELIVERY_CONSUMER=false 로 실행)

    python -m messenger.worker
"""

import asyncio
import logging
import signal

from messenger.core.config import settings
from messenger.core.logging import setup_logging
from messenger.database import close_databases, init_databases
from messenger.infrastructure.kafka import get_event_producer
from messenger.services.delivery_handler import create_delivery_consumer

logger = logging.getLogger(__name__)


async def run_worker():
    setup_logging()
    logger.info(f"🚀 {settings.app_name} delivery worker starting up...")

    await init_databases()

    # DLQ 정책과 message.read 발행에 필요
    producer = get_event_producer()
    await producer.start()

    consumer = create_delivery_consumer()
    await consumer.start()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.create_task(consumer.stop()))
        except NotImplementedError:
            # Windows event loop
            pass

    try:
        await consumer.wait()
    except asyncio.CancelledError:
        logger.info("Delivery worker cancelled")
    finally:
        logger.info("🛑 Delivery worker shutting down...")
        await consumer.stop()
        await producer.stop()
        await close_databases()


def main():
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
