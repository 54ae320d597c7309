"""
Notification placeholders.

푸시(FCM/APNS)와 실시간(WebSocket) 전송은 아직 연동되지 않았으며,
설정된 지연만큼 대기한 뒤 로그를 남깁니다.
"""

import asyncio
import logging

from messenger.core.config import settings
from messenger.domain.events import MessageRead, MessageSent

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50


class NotificationService:
    def __init__(
        self,
        push_delay_ms: int = settings.push_notification_delay_ms,
        realtime_delay_ms: int = settings.realtime_notification_delay_ms
    ):
        self.push_delay_ms = push_delay_ms
        self.realtime_delay_ms = realtime_delay_ms

    async def _simulate(self, delay_ms: int):
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)

    async def send_push_notification(self, event: MessageSent):
        """수신자에게 새 메시지 푸시 알림"""
        logger.info(
            f"Push notification: to={event.receiver_id}, "
            f"title='New Message', body='{event.content[:PREVIEW_LENGTH]}'"
        )
        await self._simulate(self.push_delay_ms)
        logger.info(f"Push notification sent: message_id={event.message_id}")

    async def notify_receiver_realtime(self, event: MessageSent):
        """수신자 실시간 채널로 new_message 이벤트 전송"""
        logger.info(f"Realtime event new_message: to={event.receiver_id}, message_id={event.message_id}")
        await self._simulate(self.realtime_delay_ms)

    async def notify_read_receipt(self, event: MessageRead):
        """원 발신자에게 읽음 확인 전송"""
        logger.info(
            f"Realtime event message_read: to={event.sender_id}, "
            f"message_id={event.message_id}, read_by={event.receiver_id}"
        )
        await self._simulate(self.realtime_delay_ms)
