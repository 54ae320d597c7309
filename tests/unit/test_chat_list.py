import pytest
from datetime import timedelta

from beanie import PydanticObjectId

from messenger.models.messages import Message
from messenger.services import message_service
from messenger.services.message_service import fold_chat_list
from messenger.utils.time_utils import utcnow


def _message(sender, receiver, created_at, read=False, content="hi") -> Message:
    now = utcnow()
    return Message(
        id=PydanticObjectId(),
        sender_id=sender,
        receiver_id=receiver,
        content=content,
        created_at=created_at,
        delivered=read,
        delivered_at=now if read else None,
        read=read,
        read_at=now if read else None,
    )


class TestFoldChatList:
    """상대방별 (최근 메시지, 안 읽은 수) 접기"""

    @pytest.mark.asyncio
    async def test_one_entry_per_counterpart(self, mongo_db):
        me, alice, bob = PydanticObjectId(), PydanticObjectId(), PydanticObjectId()
        base = utcnow()
        messages = [
            _message(alice, me, base + timedelta(seconds=5), content="alice latest"),
            _message(me, bob, base + timedelta(seconds=4), content="bob latest"),
            _message(me, alice, base + timedelta(seconds=3)),
            _message(bob, me, base + timedelta(seconds=2)),
            _message(alice, me, base + timedelta(seconds=1), read=True),
        ]

        conversations = fold_chat_list(me, messages)

        assert [c["user_id"] for c in conversations] == [alice, bob]
        assert conversations[0]["last_message"].content == "alice latest"
        assert conversations[1]["last_message"].content == "bob latest"

    @pytest.mark.asyncio
    async def test_unread_counts_only_incoming(self, mongo_db):
        me, alice = PydanticObjectId(), PydanticObjectId()
        base = utcnow()
        messages = [
            _message(alice, me, base + timedelta(seconds=3)),
            _message(me, alice, base + timedelta(seconds=2)),
            _message(alice, me, base + timedelta(seconds=1)),
            _message(alice, me, base, read=True),
        ]

        [entry] = fold_chat_list(me, messages)

        assert entry["unread_count"] == 2

    @pytest.mark.asyncio
    async def test_input_order_does_not_matter(self, mongo_db):
        me, alice, bob = PydanticObjectId(), PydanticObjectId(), PydanticObjectId()
        base = utcnow()
        messages = [
            _message(alice, me, base, content="old"),
            _message(bob, me, base + timedelta(seconds=1), content="bob"),
            _message(me, alice, base + timedelta(seconds=2), content="new"),
        ]

        conversations = fold_chat_list(me, messages)

        assert [c["last_message"].content for c in conversations] == ["new", "bob"]

    def test_empty(self):
        assert fold_chat_list(PydanticObjectId(), []) == []


class TestGetChatList:
    """저장소 기반 대화 목록"""

    @pytest.mark.asyncio
    async def test_chat_list(self, test_user_1, test_user_2, test_user_3, mock_producer):
        await message_service.send_message(str(test_user_2.id), str(test_user_1.id), "from 2 (1)")
        await message_service.send_message(str(test_user_2.id), str(test_user_1.id), "from 2 (2)")
        await message_service.send_message(str(test_user_1.id), str(test_user_3.id), "to 3")
        latest = await message_service.send_message(str(test_user_3.id), str(test_user_1.id), "from 3")

        chat_list = await message_service.get_chat_list(str(test_user_1.id))

        assert [entry.username for entry in chat_list] == ["testuser3", "testuser2"]
        assert chat_list[0].last_message.id == str(latest.id)
        assert chat_list[0].last_message.content == "from 3"
        assert chat_list[0].email == "test3@example.com"

        for entry in chat_list:
            independent = await Message.find(
                Message.sender_id == PydanticObjectId(entry.user_id),
                Message.receiver_id == test_user_1.id,
                Message.read == False,
                Message.is_deleted == False,
            ).count()
            assert entry.unread_count == independent

    @pytest.mark.asyncio
    async def test_chat_list_ignores_deleted(self, test_user_1, test_user_2, mock_producer):
        first = await message_service.send_message(str(test_user_2.id), str(test_user_1.id), "first")
        second = await message_service.send_message(str(test_user_2.id), str(test_user_1.id), "second")
        await message_service.delete_message(str(second.id), str(test_user_1.id))

        [entry] = await message_service.get_chat_list(str(test_user_1.id))

        assert entry.last_message.id == str(first.id)
        assert entry.unread_count == 1

    @pytest.mark.asyncio
    async def test_chat_list_reflects_read_state(self, test_user_1, test_user_2, mock_producer):
        await message_service.send_message(str(test_user_2.id), str(test_user_1.id), "a")
        await message_service.send_message(str(test_user_2.id), str(test_user_1.id), "b")
        await message_service.mark_conversation_as_read(str(test_user_1.id), str(test_user_2.id))

        [entry] = await message_service.get_chat_list(str(test_user_1.id))

        assert entry.unread_count == 0
        assert entry.last_message.read is True

    @pytest.mark.asyncio
    async def test_chat_list_skips_missing_users(self, test_user_1, test_user_2, mock_producer):
        await message_service.send_message(str(test_user_2.id), str(test_user_1.id), "hi")
        await test_user_2.delete()

        assert await message_service.get_chat_list(str(test_user_1.id)) == []

    @pytest.mark.asyncio
    async def test_chat_list_empty(self, test_user_1):
        assert await message_service.get_chat_list(str(test_user_1.id)) == []
