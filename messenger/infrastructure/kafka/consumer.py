"""
Kafka Consumer

Domain Events를 Kafka에서 소비하는 Consumer.

- enable_auto_commit=False: 처리 후 offset commit이 곧 ack
- max_poll_records=1 + getone → 처리 → commit 순차 루프: 인스턴스당 in-flight 이벤트 1개
- 처리 결과(ProcessingOutcome)에 대한 ack 여부는 AckPolicy 한 곳에서 결정
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError

from messenger.core.logging import log_queue_event
from messenger.utils.time_utils import utcnow
from .config import KafkaConfig, kafka_config
from .producer import get_event_producer, start_with_retry

logger = logging.getLogger(__name__)


class ProcessingOutcome(str, Enum):
    SUCCESS = "success"
    RETRY = "retry"      # 일시적 실패 (재처리하면 성공할 수 있음)
    FAILED = "failed"    # 영구 실패 (payload 오류 등)


class AckAction(str, Enum):
    ACK = "ack"
    DEAD_LETTER = "dead_letter"


class AckPolicy:
    """처리 결과 → ack 동작"""

    name = "base"

    def decide(self, outcome: ProcessingOutcome) -> AckAction:
        raise NotImplementedError


class AlwaysAckPolicy(AckPolicy):
    """모든 이벤트를 ack (poison message 무한 재처리 방지)"""

    name = "ack"

    def decide(self, outcome: ProcessingOutcome) -> AckAction:
        return AckAction.ACK


class DeadLetterPolicy(AckPolicy):
    """실패한 이벤트는 DLQ로 보낸 뒤 ack"""

    name = "dead_letter"

    def decide(self, outcome: ProcessingOutcome) -> AckAction:
        if outcome is ProcessingOutcome.SUCCESS:
            return AckAction.ACK
        return AckAction.DEAD_LETTER


ACK_POLICIES = {
    AlwaysAckPolicy.name: AlwaysAckPolicy,
    DeadLetterPolicy.name: DeadLetterPolicy,
}


def get_ack_policy(name: str) -> AckPolicy:
    try:
        return ACK_POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown consumer failure policy: {name}") from None


def deserialize_value(raw: Optional[bytes]) -> Optional[Dict[str, Any]]:
    """JSON envelope 디코딩. 디코딩 불가한 record는 None (영구 실패로 처리)"""
    if raw is None:
        return None
    try:
        value = json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Undecodable queue record: {e}")
        return None
    return value if isinstance(value, dict) else None


EventHandler = Callable[[str, Optional[Dict[str, Any]]], Awaitable[ProcessingOutcome]]


class DomainEventConsumer:
    """Domain Events를 Kafka에서 소비하는 Consumer"""

    def __init__(
        self,
        topics: List[str],
        group_id: str,
        handler: EventHandler,
        policy: Optional[AckPolicy] = None,
        config: KafkaConfig = kafka_config
    ):
        """
        Args:
            topics: 구독할 Kafka topics
            group_id: Consumer group ID (인스턴스들이 partition을 나눠 가짐)
            handler: 이벤트 처리 함수 (pattern, data) -> ProcessingOutcome
            policy: 처리 결과별 ack 정책 (기본: config.consumer_failure_policy)
        """
        self.topics = topics
        self.group_id = group_id
        self.handler = handler
        self.config = config
        self.policy = policy or get_ack_policy(config.consumer_failure_policy)
        self.consumer: Optional[AIOKafkaConsumer] = None
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def _create_consumer(self) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            *self.topics,
            bootstrap_servers=self.config.bootstrap_server_list,
            group_id=self.group_id,
            value_deserializer=deserialize_value,
            key_deserializer=lambda k: k.decode('utf-8') if k else None,
            auto_offset_reset=self.config.consumer_auto_offset_reset,
            enable_auto_commit=False,
            max_poll_records=1,
            session_timeout_ms=self.config.consumer_session_timeout_ms
        )

    async def start(self):
        """Consumer 시작 (재시도 예산 소진 시 예외)"""
        if self._running:
            logger.warning(f"Consumer {self.group_id} already running")
            return

        self.consumer = await start_with_retry(
            self._create_consumer,
            f"Kafka Consumer {self.group_id}",
            self.config.startup_max_attempts,
            self.config.startup_retry_delay_ms,
        )
        self._running = True

        # 백그라운드 태스크로 이벤트 소비
        self._task = asyncio.create_task(self._consume_loop())

        logger.info(
            f"✅ Kafka Consumer started: "
            f"group_id={self.group_id}, "
            f"topics={self.topics}, "
            f"policy={self.policy.name}"
        )

    async def stop(self):
        """Consumer 중지"""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self.consumer:
            await self.consumer.stop()
            self.consumer = None
            logger.info(f"Kafka Consumer stopped: {self.group_id}")

    async def wait(self):
        """소비 루프 종료까지 대기 (standalone worker용)"""
        if self._task:
            await self._task

    async def _consume_loop(self):
        """이벤트 소비 루프: 이전 이벤트가 ack되기 전에는 다음 이벤트를 가져오지 않음"""
        try:
            while self._running:
                msg = await self.consumer.getone()
                await self.process_record(msg)

        except asyncio.CancelledError:
            logger.info(f"Consumer loop cancelled: {self.group_id}")
            raise

        except Exception as e:
            logger.error(f"[Consumer Loop Error] {self.group_id}: {e}", exc_info=True)
            self._running = False
            raise

    async def process_record(self, msg) -> AckAction:
        """record 하나 처리 → 정책에 따라 ack/DLQ → commit"""
        envelope = msg.value
        pattern = envelope.get("pattern") if envelope else None
        data = envelope.get("data") if envelope else None

        log_queue_event(
            logger, "received", pattern, msg.topic,
            partition=msg.partition, offset=msg.offset
        )

        if envelope is None:
            outcome = ProcessingOutcome.FAILED
        else:
            try:
                outcome = await self.handler(pattern, data)
            except Exception as e:
                logger.error(
                    f"[Event Processing Error] "
                    f"Group: {self.group_id}, "
                    f"Topic: {msg.topic}, "
                    f"Partition: {msg.partition}, "
                    f"Offset: {msg.offset}, "
                    f"Error: {e}",
                    exc_info=True
                )
                outcome = ProcessingOutcome.RETRY

        action = self.policy.decide(outcome)
        if action is AckAction.DEAD_LETTER:
            await self._send_to_dlq(msg, outcome)

        # ack
        try:
            await self.consumer.commit()
        except KafkaError as e:
            # rebalance 등으로 commit 실패 시 해당 record는 재전달됨 (at-least-once)
            logger.warning(f"Commit failed for offset={msg.offset}, record may be redelivered: {e}")

        log_queue_event(
            logger, "acknowledged", pattern, msg.topic,
            level=logging.INFO if outcome is ProcessingOutcome.SUCCESS else logging.WARNING,
            outcome=outcome.value, action=action.value, offset=msg.offset
        )
        return action

    async def _send_to_dlq(self, msg, outcome: ProcessingOutcome):
        """Dead Letter Queue로 전송"""
        dlq_message = {
            'pattern': (msg.value or {}).get('pattern'),
            'original_topic': msg.topic,
            'original_partition': msg.partition,
            'original_offset': msg.offset,
            'original_key': msg.key,
            'original_value': msg.value,
            'outcome': outcome.value,
            'consumer_group': self.group_id,
            'failed_at': utcnow().isoformat()
        }

        producer = get_event_producer()
        if not await producer.publish_with_retry(self.config.dead_letter_topic, dlq_message, key=msg.key):
            logger.error(f"[DLQ Error] Failed to dead-letter offset={msg.offset}")
            return

        logger.warning(
            f"[DLQ] Message sent to {self.config.dead_letter_topic}: "
            f"original_offset={msg.offset}"
        )
