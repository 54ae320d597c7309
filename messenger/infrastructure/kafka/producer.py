"""
Kafka Producer

Domain Events를 Kafka로 발행하는 Producer.
메시지 전송 경로에서는 publish_detached()로 발행하며, 호출자는 결과를 기다리지 않습니다.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional, Set, TypeVar

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from messenger.core.logging import log_queue_event
from messenger.domain.events.base import DomainEvent
from .config import KafkaConfig, kafka_config

logger = logging.getLogger(__name__)

ClientT = TypeVar("ClientT")


async def start_with_retry(
    factory: Callable[[], ClientT],
    label: str,
    max_attempts: int,
    retry_delay_ms: int,
) -> ClientT:
    """
    고정 backoff로 Kafka client 기동을 재시도합니다.

    max_attempts 소진 시 마지막 에러를 그대로 raise하여 기동을 실패시킵니다.
    """
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        client = factory()
        try:
            await client.start()
            if attempt > 1:
                logger.info(f"{label} started after {attempt} attempts")
            return client

        except (KafkaError, OSError) as e:
            last_error = e
            logger.warning(f"[Startup Retry {attempt}/{max_attempts}] {label}: {e}")
            try:
                await client.stop()
            except Exception as stop_error:
                logger.debug(f"{label} cleanup after failed start: {stop_error}")

            if attempt < max_attempts:
                await asyncio.sleep(retry_delay_ms / 1000)

    logger.error(f"❌ {label} failed to start after {max_attempts} attempts")
    raise last_error


class DomainEventProducer:
    """Domain Events를 Kafka로 발행하는 Producer"""

    def __init__(self, config: KafkaConfig = kafka_config):
        self.config = config
        self.producer: Optional[AIOKafkaProducer] = None
        self._started = False
        self._pending: Set[asyncio.Task] = set()

    def _create_producer(self) -> AIOKafkaProducer:
        return AIOKafkaProducer(
            bootstrap_servers=self.config.bootstrap_server_list,
            value_serializer=lambda v: json.dumps(v).encode('utf-8'),
            key_serializer=lambda k: str(k).encode('utf-8') if k else None,
            acks=self.config.producer_acks,
            compression_type=self.config.producer_compression_type,
            request_timeout_ms=self.config.producer_request_timeout_ms
        )

    @property
    def started(self) -> bool:
        return self._started

    async def start(self):
        """Producer 시작 (재시도 예산 소진 시 예외)"""
        if self._started:
            logger.warning("Producer already started")
            return

        self.producer = await start_with_retry(
            self._create_producer,
            "Kafka Producer",
            self.config.startup_max_attempts,
            self.config.startup_retry_delay_ms,
        )
        self._started = True
        logger.info("✅ Kafka Producer started successfully")

    async def stop(self):
        """Producer 중지 (진행 중인 detached 발행을 먼저 마무리)"""
        await self.drain()
        if self.producer and self._started:
            await self.producer.stop()
            self._started = False
            logger.info("Kafka Producer stopped")

    async def drain(self):
        """진행 중인 detached 발행 태스크 대기"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def publish(
        self,
        topic: str,
        event: Any,
        key: Optional[str] = None
    ):
        """
        Domain Event 발행

        Args:
            topic: Kafka topic
            event: Domain Event (DomainEvent 인스턴스 또는 envelope dict)
            key: Partition key (receiver_id)
        """
        if not self._started or not self.producer:
            raise RuntimeError("Producer not started. Call start() first.")

        if isinstance(event, DomainEvent):
            envelope = event.to_envelope()
        elif isinstance(event, dict):
            envelope = event
        else:
            raise ValueError(f"Unsupported event type: {type(event)}")

        try:
            metadata = await self.producer.send_and_wait(
                topic=topic,
                value=envelope,
                key=key
            )
        except KafkaError as e:
            logger.error(f"[Kafka Error] Topic: {topic}, Error: {e}")
            raise

        log_queue_event(
            logger,
            "published",
            envelope.get("pattern"),
            topic,
            partition=metadata.partition,
            offset=metadata.offset,
        )

    async def publish_with_retry(
        self,
        topic: str,
        event: Any,
        key: Optional[str] = None,
        max_retries: Optional[int] = None
    ) -> bool:
        """
        재시도 로직이 포함된 발행. 예외를 전파하지 않습니다.

        Returns:
            bool: 성공 여부
        """
        if max_retries is None:
            max_retries = self.config.publish_max_retries

        for attempt in range(1, max_retries + 1):
            try:
                await self.publish(topic, event, key)
                return True

            except KafkaError as e:
                if attempt < max_retries:
                    logger.warning(f"Retry {attempt}/{max_retries} for topic: {topic} ({e})")
                    await asyncio.sleep(self.config.publish_retry_backoff_ms * attempt / 1000)
                else:
                    logger.error(f"Failed after {max_retries} retries: {topic}")

            except Exception as e:
                logger.error(f"Unrecoverable publish error on {topic}: {e}")
                return False

        return False

    def publish_detached(
        self,
        event: DomainEvent,
        key: Optional[str] = None,
        topic: Optional[str] = None
    ) -> asyncio.Task:
        """
        발행을 별도 태스크로 분리합니다 (fire-and-forget).

        결과는 로그로만 남으며 호출자에게 전파되지 않습니다.
        """
        task = asyncio.create_task(
            self.publish_with_retry(topic or self.config.topic_chat_messages, event, key)
        )
        self._pending.add(task)
        task.add_done_callback(self._on_detached_done)
        return task

    def _on_detached_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("Detached publish cancelled")
            return
        if task.exception() is not None:
            logger.error(f"Detached publish crashed: {task.exception()}")
        elif task.result() is False:
            logger.error("Detached publish gave up; event dropped")


# Singleton instance
_event_producer: Optional[DomainEventProducer] = None


def get_event_producer() -> DomainEventProducer:
    """Singleton Producer 인스턴스 반환"""
    global _event_producer
    if _event_producer is None:
        _event_producer = DomainEventProducer()
    return _event_producer
