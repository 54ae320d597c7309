"""
Message delivery pipeline (Kafka consumer handler).

message.sent 이벤트 처리 순서:
    1. 메시지 delivered 표시 (실패 시 RETRY)
    2. 푸시 알림 (best-effort)
    3. 실시간 알림 (best-effort)
    4. analytics 기록 (best-effort)
ack 여부는 consumer의 AckPolicy가 결정합니다.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from messenger.core.config import settings
from messenger.core.logging import log_message_analytics
from messenger.domain.events import MESSAGE_READ, MESSAGE_SENT, MessageRead, MessageSent
from messenger.infrastructure.kafka.config import kafka_config
from messenger.infrastructure.kafka.consumer import DomainEventConsumer, ProcessingOutcome
from messenger.services import message_service
from messenger.services.notification_service import NotificationService
from messenger.utils.time_utils import elapsed_ms, utcnow

logger = logging.getLogger(__name__)


class MessageDeliveryHandler:
    """DomainEventConsumer에 넘기는 (pattern, data) → ProcessingOutcome 핸들러"""

    def __init__(
        self,
        notifier: Optional[NotificationService] = None,
        processing_delay_ms: int = settings.delivery_simulated_delay_ms
    ):
        self.notifier = notifier or NotificationService()
        self.processing_delay_ms = processing_delay_ms

    async def handle(self, pattern: Optional[str], data: Optional[Dict[str, Any]]) -> ProcessingOutcome:
        if pattern == MESSAGE_SENT:
            return await self.handle_message_sent(data)
        if pattern == MESSAGE_READ:
            return await self.handle_message_read(data)

        logger.warning(f"Unknown event pattern: {pattern}")
        return ProcessingOutcome.FAILED

    async def handle_message_sent(self, data: Optional[Dict[str, Any]]) -> ProcessingOutcome:
        received_at = utcnow()
        try:
            event = MessageSent.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Malformed message.sent payload: {e}")
            return ProcessingOutcome.FAILED

        logger.info(f"📨 Processing message: {event.message_id} from {event.sender_id} to {event.receiver_id}")

        if self.processing_delay_ms > 0:
            await asyncio.sleep(self.processing_delay_ms / 1000)

        # 1. delivered 표시
        try:
            updated = await message_service.mark_as_delivered(event.message_id)
        except Exception as e:
            logger.error(f"Failed to mark message {event.message_id} as delivered: {e}", exc_info=True)
            return ProcessingOutcome.RETRY

        if updated:
            logger.info(f"✅ Message {event.message_id} marked as delivered")
        else:
            logger.warning(f"Message {event.message_id} not found or deleted; skipped delivered update")

        # 2. 푸시 알림
        try:
            await self.notifier.send_push_notification(event)
        except Exception as e:
            logger.error(f"Push notification failed for {event.message_id}: {e}")

        # 3. 실시간 알림
        try:
            await self.notifier.notify_receiver_realtime(event)
        except Exception as e:
            logger.error(f"Realtime notification failed for {event.message_id}: {e}")

        # 4. analytics
        try:
            log_message_analytics(logger, {
                "event": "message_sent",
                "message_id": event.message_id,
                "sender_id": event.sender_id,
                "receiver_id": event.receiver_id,
                "message_type": event.message_type,
                "timestamp": event.timestamp.isoformat(),
                "processing_time_ms": elapsed_ms(event.timestamp, received_at),
            })
        except Exception as e:
            logger.error(f"Analytics logging failed for {event.message_id}: {e}")

        logger.info(f"✅ Message {event.message_id} processed successfully")
        return ProcessingOutcome.SUCCESS

    async def handle_message_read(self, data: Optional[Dict[str, Any]]) -> ProcessingOutcome:
        try:
            event = MessageRead.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Malformed message.read payload: {e}")
            return ProcessingOutcome.FAILED

        logger.info(f"👁️ Message read: {event.message_id} by {event.receiver_id}")

        try:
            await self.notifier.notify_read_receipt(event)
        except Exception as e:
            logger.error(f"Read receipt failed for {event.message_id}: {e}")

        return ProcessingOutcome.SUCCESS


def create_delivery_consumer(handler: Optional[MessageDeliveryHandler] = None) -> DomainEventConsumer:
    """chat.messages topic을 구독하는 Delivery Consumer 생성"""
    handler = handler or MessageDeliveryHandler()
    return DomainEventConsumer(
        topics=[kafka_config.topic_chat_messages],
        group_id=kafka_config.consumer_group_id,
        handler=handler.handle,
    )
