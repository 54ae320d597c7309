import pytest
import pytest_asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from messenger.domain.events import MessageRead, MessageSent
from messenger.infrastructure.kafka.consumer import ProcessingOutcome
from messenger.models.messages import Message
from messenger.services import message_service
from messenger.services.delivery_handler import MessageDeliveryHandler, create_delivery_consumer
from messenger.services.notification_service import NotificationService


@pytest.fixture
def notifier():
    return NotificationService(push_delay_ms=0, realtime_delay_ms=0)


@pytest.fixture
def handler(notifier):
    return MessageDeliveryHandler(notifier=notifier, processing_delay_ms=0)


@pytest_asyncio.fixture
async def sent_message(test_user_1, test_user_2, mock_producer):
    return await message_service.send_message(str(test_user_1.id), str(test_user_2.id), "hello")


def _payload(message) -> dict:
    return MessageSent.from_message(message).to_dict()


class TestMessageSentPipeline:
    """message.sent 처리: delivered → push → realtime → analytics"""

    @pytest.mark.asyncio
    async def test_marks_message_delivered(self, handler, sent_message):
        outcome = await handler.handle("message.sent", _payload(sent_message))

        assert outcome is ProcessingOutcome.SUCCESS
        stored = await Message.get(sent_message.id)
        assert stored.delivered is True
        assert stored.delivered_at is not None
        assert stored.read is False

    @pytest.mark.asyncio
    async def test_already_delivered_message(self, handler, sent_message):
        """이미 delivered인 메시지를 다시 처리해도 에러 없이 delivered 유지"""
        await message_service.mark_as_delivered(str(sent_message.id))

        outcome = await handler.handle("message.sent", _payload(sent_message))

        assert outcome is ProcessingOutcome.SUCCESS
        assert (await Message.get(sent_message.id)).delivered is True

    @pytest.mark.asyncio
    async def test_redelivered_event_after_read(self, handler, sent_message, test_user_2):
        await message_service.mark_as_read(str(sent_message.id), str(test_user_2.id))

        outcome = await handler.handle("message.sent", _payload(sent_message))

        stored = await Message.get(sent_message.id)
        assert outcome is ProcessingOutcome.SUCCESS
        assert stored.read is True
        assert stored.delivered is True

    @pytest.mark.asyncio
    async def test_side_effects_run_in_order(self, notifier, sent_message):
        calls = []
        notifier.send_push_notification = AsyncMock(side_effect=lambda e: calls.append("push"))
        notifier.notify_receiver_realtime = AsyncMock(side_effect=lambda e: calls.append("realtime"))
        handler = MessageDeliveryHandler(notifier=notifier, processing_delay_ms=0)

        with patch("messenger.services.delivery_handler.log_message_analytics",
                   side_effect=lambda logger, analytics: calls.append("analytics")):
            await handler.handle("message.sent", _payload(sent_message))

        assert calls == ["push", "realtime", "analytics"]

    @pytest.mark.asyncio
    async def test_notification_failure_is_best_effort(self, notifier, sent_message):
        notifier.send_push_notification = AsyncMock(side_effect=RuntimeError("FCM down"))
        notifier.notify_receiver_realtime = AsyncMock()
        handler = MessageDeliveryHandler(notifier=notifier, processing_delay_ms=0)

        outcome = await handler.handle("message.sent", _payload(sent_message))

        assert outcome is ProcessingOutcome.SUCCESS
        notifier.notify_receiver_realtime.assert_awaited_once()
        assert (await Message.get(sent_message.id)).delivered is True

    @pytest.mark.asyncio
    async def test_analytics_record(self, handler, sent_message):
        event = MessageSent.from_message(sent_message)
        payload = event.to_dict()

        with patch("messenger.services.delivery_handler.log_message_analytics") as log_analytics:
            await handler.handle("message.sent", payload)

        analytics = log_analytics.call_args.args[1]
        assert analytics["event"] == "message_sent"
        assert analytics["message_id"] == str(sent_message.id)
        assert analytics["sender_id"] == event.sender_id
        assert analytics["receiver_id"] == event.receiver_id
        assert analytics["message_type"] == "text"
        assert analytics["processing_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_processing_time_measured_from_event_timestamp(self, handler, sent_message):
        event = MessageSent.from_message(sent_message)
        event.timestamp = event.timestamp - timedelta(seconds=2)

        with patch("messenger.services.delivery_handler.log_message_analytics") as log_analytics:
            await handler.handle("message.sent", event.to_dict())

        assert log_analytics.call_args.args[1]["processing_time_ms"] >= 2000

    @pytest.mark.asyncio
    async def test_store_failure_requests_retry(self, handler, sent_message):
        with patch.object(message_service, "mark_as_delivered", AsyncMock(side_effect=ConnectionError("mongo down"))):
            outcome = await handler.handle("message.sent", _payload(sent_message))

        assert outcome is ProcessingOutcome.RETRY

    @pytest.mark.asyncio
    async def test_unknown_message_is_not_an_error(self, handler, sent_message):
        await message_service.delete_message(str(sent_message.id), str(sent_message.sender_id))

        outcome = await handler.handle("message.sent", _payload(sent_message))

        assert outcome is ProcessingOutcome.SUCCESS
        assert (await Message.get(sent_message.id)).delivered is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [None, {}, {"messageId": "m1"}])
    async def test_malformed_payload_fails(self, handler, payload):
        assert await handler.handle("message.sent", payload) is ProcessingOutcome.FAILED


class TestOtherPatterns:
    @pytest.mark.asyncio
    async def test_message_read_sends_receipt(self, notifier, sent_message, test_user_2):
        read = await message_service.mark_as_read(str(sent_message.id), str(test_user_2.id))
        notifier.notify_read_receipt = AsyncMock()
        handler = MessageDeliveryHandler(notifier=notifier, processing_delay_ms=0)

        outcome = await handler.handle("message.read", MessageRead.from_message(read).to_dict())

        assert outcome is ProcessingOutcome.SUCCESS
        event = notifier.notify_read_receipt.call_args.args[0]
        assert event.sender_id == str(sent_message.sender_id)

    @pytest.mark.asyncio
    async def test_unknown_pattern_fails(self, handler):
        assert await handler.handle("message.edited", {"messageId": "m1"}) is ProcessingOutcome.FAILED

    def test_create_delivery_consumer(self):
        consumer = create_delivery_consumer()

        assert consumer.topics == ["chat.messages"]
        assert consumer.group_id == "message-delivery"
        assert consumer.policy.decide(ProcessingOutcome.RETRY).value == "ack"
