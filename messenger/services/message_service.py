"""
Message service layer for MongoDB operations.

메시지 전송, 상태 전이(delivered / read / deleted), 조회를 담당합니다.
모든 상태 전이는 {_id + 권한 조건} 필터의 조건부 update로 원자적으로 적용되며,
서비스 레이어에서 read-then-write를 하지 않습니다.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Or
from bson import ObjectId
from pymongo import DESCENDING

from messenger.core.config import settings
from messenger.core.errors import (
    ValidationError,
    ValidationException,
    empty_content_error,
    message_not_found_error,
    self_message_error,
    user_not_found_error,
)
from messenger.core.validators import Validator
from messenger.domain.events import MessageRead, MessageSent
from messenger.infrastructure.kafka.producer import get_event_producer
from messenger.models.messages import Message, MessageType
from messenger.models.users import User
from messenger.schemas.message import (
    ChatListEntry,
    LastMessagePreview,
    MessageResponse,
    UserSummary,
)
from messenger.services import user_service
from messenger.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def _as_object_id(value, field_name: str) -> PydanticObjectId:
    return PydanticObjectId(str(Validator.validate_object_id(value, field_name)))


# =============================================================================
# Send
# =============================================================================

async def send_message(
    sender_id: str,
    to: str,
    content: str,
    message_type: Optional[str] = None,
    attachment_url: Optional[str] = None
) -> Message:
    """
    메시지 전송.

    저장이 성공한 뒤에만 message.sent 이벤트를 발행하며, 발행은 별도 태스크로
    분리되어 실패해도 전송 결과에 영향을 주지 않습니다.
    """
    sender_oid = _as_object_id(sender_id, "sender_id")
    receiver_oid = _as_object_id(to, "to")

    # 자기 자신에게 전송 불가 (저장소/큐 상태와 무관하게 먼저 검사)
    if sender_oid == receiver_oid:
        raise self_message_error()

    content = (content or "").strip()
    if not content:
        raise empty_content_error()
    Validator.validate_string_length(content, "content", max_length=settings.message_max_length)

    sender = await user_service.find_active_user_by_id(sender_oid)
    if not sender:
        raise user_not_found_error("Sender")

    receiver = await user_service.find_active_user_by_id(receiver_oid)
    if not receiver:
        raise user_not_found_error("Receiver")

    try:
        kind = MessageType(message_type or MessageType.TEXT)
    except ValueError:
        raise ValidationException(
            "Invalid message_type",
            validation_errors=[ValidationError(field="message_type", message="Unsupported message type", value=message_type)]
        ) from None

    message = Message(
        sender_id=sender_oid,
        receiver_id=receiver_oid,
        content=content,
        message_type=kind,
        attachment_url=attachment_url or None,
    )
    await message.insert()
    logger.info(f"📨 Message saved: {message.id} from {sender_oid} to {receiver_oid}")

    _publish_detached(MessageSent.from_message(message), key=str(receiver_oid))
    return message


def _publish_detached(event, key: str):
    """큐 발행 (fire-and-forget). 스케줄링 실패도 전송 결과에 영향을 주지 않음"""
    try:
        get_event_producer().publish_detached(event, key=key)
    except Exception as pub_error:
        logger.error(f"Failed to publish {event.pattern} to Kafka: {pub_error}")


# =============================================================================
# Queries
# =============================================================================

async def find_message_by_id(message_id: str) -> Optional[Message]:
    """메시지 ID로 조회 (soft delete된 메시지 포함)"""
    if not ObjectId.is_valid(str(message_id)):
        return None
    return await Message.get(PydanticObjectId(str(message_id)))


async def get_conversation(
    user_id_1: str,
    user_id_2: str,
    limit: int = 50,
    skip: int = 0
) -> List[Message]:
    """
    두 사용자 간 대화 조회.

    최신순으로 skip/limit 페이지를 자른 뒤 역순으로 돌려 오래된 것부터 반환합니다.
    """
    user_1 = _as_object_id(user_id_1, "user_id")
    user_2 = _as_object_id(user_id_2, "user_id")
    limit, skip = Validator.validate_pagination(limit, skip, settings.max_page_size)

    messages = await Message.find(
        Or(
            {"sender_id": user_1, "receiver_id": user_2},
            {"sender_id": user_2, "receiver_id": user_1},
        ),
        Message.is_deleted == False,
    ).sort(NEWEST_FIRST).skip(skip).limit(limit).to_list()

    # 최신순으로 정렬된 것을 역순으로 변경 (오래된 것부터)
    return list(reversed(messages))


async def get_inbox_messages(user_id: str, limit: int = 50, skip: int = 0) -> List[Message]:
    """받은 메시지 목록 (최신순)"""
    receiver = _as_object_id(user_id, "user_id")
    limit, skip = Validator.validate_pagination(limit, skip, settings.max_page_size)

    return await Message.find(
        Message.receiver_id == receiver,
        Message.is_deleted == False,
    ).sort(NEWEST_FIRST).skip(skip).limit(limit).to_list()


async def get_unread_messages(user_id: str) -> List[Message]:
    """읽지 않은 받은 메시지 목록 (최신순)"""
    receiver = _as_object_id(user_id, "user_id")

    return await Message.find(
        Message.receiver_id == receiver,
        Message.read == False,
        Message.is_deleted == False,
    ).sort(NEWEST_FIRST).to_list()


async def get_unread_count(user_id: str) -> int:
    """읽지 않은 받은 메시지 수"""
    receiver = _as_object_id(user_id, "user_id")
    return await Message.find(
        Message.receiver_id == receiver,
        Message.read == False,
        Message.is_deleted == False,
    ).count()


# =============================================================================
# State transitions
# =============================================================================

async def mark_as_delivered(message_id: str) -> bool:
    """
    전달 완료 표시 (Delivery Consumer에서 사용).

    이미 delivered인 경우 delivered_at만 갱신됩니다. 잘못된 ID이거나 삭제된
    메시지면 False.
    """
    if not ObjectId.is_valid(str(message_id)):
        return False

    result = await Message.find_one(
        Message.id == PydanticObjectId(str(message_id)),
        Message.is_deleted == False,
    ).update(Message.delivered_update())

    return bool(result and result.matched_count)


def _read_steps(now) -> List[Tuple[Any, Dict[str, Any]]]:
    """
    읽음 처리 update 목록: (추가 필터, $set 문서).

    delivered 여부로 필터를 나누어 각 update가 단독으로 read ⇒ delivered를
    만족시킵니다. 두 update 사이에 상태가 바뀌어도 중간 상태가 저장되지 않으며,
    이미 전달된 메시지의 delivered_at은 유지됩니다.
    """
    return [
        (Message.delivered == False, Message.delivered_and_read_update(now)),
        (Message.delivered == True, Message.read_update(now)),
    ]


async def _update_many(query, update: Dict[str, Any]) -> int:
    result = await query.update_many(update)
    return result.modified_count if result else 0


async def mark_as_read(message_id: str, reader_id: str) -> Message:
    """
    읽음 표시. 수신자 본인만 가능하며 존재하지 않는 메시지와 구분되지 않습니다.

    첫 읽음 시각(read_at)을 유지하므로 반복 호출은 상태 변화 없는 no-op입니다.
    """
    message_oid = _as_object_id(message_id, "message_id")
    reader_oid = _as_object_id(reader_id, "reader_id")
    scope = [
        Message.id == message_oid,
        Message.receiver_id == reader_oid,
        Message.is_deleted == False,
    ]

    for condition, update in _read_steps(utcnow()):
        message = await Message.find_one(*scope, Message.read == False, condition).update(
            update,
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if message is not None:
            _publish_detached(MessageRead.from_message(message), key=str(message.sender_id))
            return message

    # 이미 읽은 메시지인지, 접근 불가인지 확인
    message = await Message.find_one(*scope)
    if message is None:
        raise message_not_found_error()
    return message


async def mark_conversation_as_read(reader_id: str, other_user_id: str) -> int:
    """other_user → reader 방향의 읽지 않은 메시지를 모두 읽음 처리, 처리 건수 반환"""
    reader_oid = _as_object_id(reader_id, "user_id")
    other_oid = _as_object_id(other_user_id, "user_id")
    scope = [
        Message.sender_id == other_oid,
        Message.receiver_id == reader_oid,
        Message.read == False,
        Message.is_deleted == False,
    ]

    modified = 0
    for condition, update in _read_steps(utcnow()):
        modified += await _update_many(Message.find(*scope, condition), update)
    return modified


async def delete_message(message_id: str, user_id: str) -> Message:
    """메시지 soft delete (발신자/수신자 모두 가능)"""
    message_oid = _as_object_id(message_id, "message_id")
    user_oid = _as_object_id(user_id, "user_id")

    message = await Message.find_one(
        Message.id == message_oid,
        Or(Message.sender_id == user_oid, Message.receiver_id == user_oid),
        Message.is_deleted == False,
    ).update(
        Message.deleted_update(),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )

    if message is None:
        raise message_not_found_error()

    logger.info(f"Message soft-deleted: {message_oid} by {user_oid}")
    return message


async def purge_deleted_messages(older_than_days: Optional[int] = None) -> int:
    """보존 기간이 지난 soft delete 메시지 물리 삭제 (TTL index 보완용)"""
    days = older_than_days if older_than_days is not None else settings.deleted_message_retention_days
    cutoff = utcnow() - timedelta(days=days)

    result = await Message.find(
        Message.is_deleted == True,
        Message.deleted_at < cutoff,
    ).delete()

    count = result.deleted_count if result else 0
    if count:
        logger.info(f"Purged {count} deleted messages older than {days} days")
    return count


# =============================================================================
# Chat list
# =============================================================================

def fold_chat_list(user_id: ObjectId, messages: Iterable[Message]) -> List[Dict[str, Any]]:
    """
    최신순 메시지 스트림을 상대방별로 접습니다.

    상대방마다 (가장 최근 메시지, 내가 수신자인 읽지 않은 메시지 수)를 남기고
    최근 메시지 시각 내림차순으로 반환합니다.
    """
    conversations: Dict[ObjectId, Dict[str, Any]] = {}

    for message in messages:
        counterpart = message.counterpart_of(user_id)
        entry = conversations.get(counterpart)
        if entry is None:
            entry = conversations[counterpart] = {
                "user_id": counterpart,
                "last_message": message,
                "unread_count": 0,
            }
        elif (message.created_at, message.id) > (entry["last_message"].created_at, entry["last_message"].id):
            entry["last_message"] = message

        if message.receiver_id == user_id and not message.read:
            entry["unread_count"] += 1

    return sorted(
        conversations.values(),
        key=lambda e: (e["last_message"].created_at, e["last_message"].id),
        reverse=True,
    )


async def get_chat_list(user_id: str) -> List[ChatListEntry]:
    """최근 대화 목록 (상대방별 마지막 메시지 + 안 읽은 수)"""
    user_oid = _as_object_id(user_id, "user_id")

    stream = Message.find(
        Or(Message.sender_id == user_oid, Message.receiver_id == user_oid),
        Message.is_deleted == False,
    ).sort(NEWEST_FIRST)
    conversations = fold_chat_list(user_oid, [message async for message in stream])

    users = await user_service.find_users_by_ids(entry["user_id"] for entry in conversations)

    chat_list = []
    for entry in conversations:
        user = users.get(entry["user_id"])
        if user is None:
            # 탈퇴 등으로 사용자 문서가 없으면 목록에서 제외
            continue
        last = entry["last_message"]
        chat_list.append(ChatListEntry(
            user_id=str(user.id),
            username=user.username,
            email=user.email,
            last_message=LastMessagePreview(
                id=str(last.id),
                content=last.content,
                message_type=last.message_type,
                sender_id=str(last.sender_id),
                created_at=last.created_at,
                read=last.read,
            ),
            unread_count=entry["unread_count"],
        ))
    return chat_list


# =============================================================================
# Response helpers
# =============================================================================

def _user_summary(user: Optional[User], user_id: ObjectId) -> UserSummary:
    if user is None:
        return UserSummary(id=str(user_id))
    return UserSummary(id=str(user.id), username=user.username, email=user.email)


async def to_responses(messages: List[Message]) -> List[MessageResponse]:
    """송수신자 정보를 채운 응답 목록 (사용자 조회는 한 번)"""
    users = await user_service.find_users_by_ids(
        uid for message in messages for uid in (message.sender_id, message.receiver_id)
    )

    responses = []
    for message in messages:
        message_dict = message.model_dump(exclude={"id", "revision_id"})
        message_dict.update(
            id=str(message.id),
            sender_id=str(message.sender_id),
            receiver_id=str(message.receiver_id),
            sender=_user_summary(users.get(message.sender_id), message.sender_id),
            receiver=_user_summary(users.get(message.receiver_id), message.receiver_id),
        )
        responses.append(MessageResponse(**message_dict))
    return responses


async def to_response(message: Message) -> MessageResponse:
    return (await to_responses([message]))[0]
