import pytest
from pydantic import ValidationError

from beanie import PydanticObjectId

from messenger.models.messages import MESSAGE_MAX_LENGTH, Message, MessageType
from messenger.utils.time_utils import utcnow


def _message(**overrides) -> Message:
    data = {
        "sender_id": PydanticObjectId(),
        "receiver_id": PydanticObjectId(),
        "content": "hello",
    }
    data.update(overrides)
    return Message(**data)


class TestMessageModel:
    """Message 문서 불변식 테스트"""

    @pytest.mark.asyncio
    async def test_initial_state(self, mongo_db):
        """생성 직후: 미전달, 안 읽음, 삭제 안 됨, text"""
        message = _message()

        assert message.delivered is False
        assert message.delivered_at is None
        assert message.read is False
        assert message.read_at is None
        assert message.is_deleted is False
        assert message.message_type == MessageType.TEXT
        assert message.created_at is not None

    @pytest.mark.asyncio
    async def test_content_is_trimmed(self, mongo_db):
        message = _message(content="   hi there  ")
        assert message.content == "hi there"

    @pytest.mark.asyncio
    async def test_blank_content_rejected(self, mongo_db):
        with pytest.raises(ValidationError):
            _message(content="   ")

    @pytest.mark.asyncio
    async def test_content_max_length(self, mongo_db):
        _message(content="a" * MESSAGE_MAX_LENGTH)
        with pytest.raises(ValidationError):
            _message(content="a" * (MESSAGE_MAX_LENGTH + 1))

    @pytest.mark.asyncio
    async def test_self_message_rejected(self, mongo_db):
        user_id = PydanticObjectId()
        with pytest.raises(ValidationError):
            _message(sender_id=user_id, receiver_id=user_id)

    @pytest.mark.asyncio
    async def test_delivered_at_requires_delivered(self, mongo_db):
        with pytest.raises(ValidationError):
            _message(delivered=False, delivered_at=utcnow())

    @pytest.mark.asyncio
    async def test_read_requires_delivered(self, mongo_db):
        now = utcnow()
        with pytest.raises(ValidationError):
            _message(read=True, read_at=now)

        message = _message(delivered=True, delivered_at=now, read=True, read_at=now)
        assert message.read is True

    @pytest.mark.asyncio
    async def test_unknown_message_type_rejected(self, mongo_db):
        with pytest.raises(ValidationError):
            _message(message_type="sticker")

    @pytest.mark.asyncio
    async def test_counterpart_and_participant(self, mongo_db):
        sender, receiver, other = PydanticObjectId(), PydanticObjectId(), PydanticObjectId()
        message = _message(sender_id=sender, receiver_id=receiver)

        assert message.counterpart_of(sender) == receiver
        assert message.counterpart_of(receiver) == sender
        assert message.is_participant(sender)
        assert message.is_participant(receiver)
        assert not message.is_participant(other)


class TestStateUpdates:
    """조건부 update에 사용되는 $set 문서"""

    def test_read_update_sets_read_fields(self):
        now = utcnow()
        update = Message.read_update(now)
        assert update == {"$set": {"read": True, "read_at": now, "updated_at": now}}

    def test_delivered_update_sets_delivered_fields(self):
        now = utcnow()
        update = Message.delivered_update(now)
        assert update["$set"]["delivered"] is True
        assert update["$set"]["delivered_at"] == now

    def test_deleted_update_defaults_to_now(self):
        update = Message.deleted_update()
        assert update["$set"]["is_deleted"] is True
        assert update["$set"]["deleted_at"] is not None
