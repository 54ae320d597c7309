from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from beanie import Document, PydanticObjectId
from pydantic import Field, field_validator, model_validator
from pymongo import ASCENDING, DESCENDING, IndexModel

from messenger.utils.time_utils import utcnow

MESSAGE_MAX_LENGTH = 5000
DELETED_MESSAGE_TTL_SECONDS = 30 * 24 * 60 * 60  # 30 days


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"


class Message(Document):
    sender_id: PydanticObjectId = Field(..., description="User ID who sent the message")
    receiver_id: PydanticObjectId = Field(..., description="User ID who receives the message")
    content: str = Field(..., max_length=MESSAGE_MAX_LENGTH, description="Message content")
    message_type: MessageType = Field(default=MessageType.TEXT, description="Type of message: text, image, video, file")
    attachment_url: Optional[str] = Field(None, description="Attachment URL for non-text messages")

    # delivery / read state
    delivered: bool = Field(default=False)
    delivered_at: Optional[datetime] = Field(None)
    read: bool = Field(default=False)
    read_at: Optional[datetime] = Field(None)

    # soft delete
    is_deleted: bool = Field(default=False)
    deleted_at: Optional[datetime] = Field(None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "messages"
        indexes = [
            IndexModel([("receiver_id", ASCENDING), ("created_at", DESCENDING)], name="inbox_messages"),
            IndexModel(
                [("sender_id", ASCENDING), ("receiver_id", ASCENDING), ("created_at", DESCENDING)],
                name="conversation_messages",
            ),
            IndexModel(
                [("receiver_id", ASCENDING), ("read", ASCENDING), ("created_at", DESCENDING)],
                name="unread_messages",
            ),
            IndexModel(
                [("receiver_id", ASCENDING), ("delivered", ASCENDING), ("created_at", DESCENDING)],
                name="undelivered_messages",
            ),
            # soft delete 후 30일 뒤 MongoDB TTL monitor가 물리 삭제
            IndexModel(
                [("deleted_at", ASCENDING)],
                name="ttl_deleted_messages",
                expireAfterSeconds=DELETED_MESSAGE_TTL_SECONDS,
                partialFilterExpression={"is_deleted": True},
            ),
        ]

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message content cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_state(self) -> "Message":
        if self.sender_id == self.receiver_id:
            raise ValueError("Cannot send message to yourself")
        if not self.delivered and self.delivered_at is not None:
            raise ValueError("delivered_at must be empty while the message is undelivered")
        if self.read and not (self.delivered and self.delivered_at is not None):
            raise ValueError("A read message must also be delivered")
        return self

    def __repr__(self):
        return f"<Message(id={self.id}, sender_id={self.sender_id}, receiver_id={self.receiver_id})>"

    # =========================================================================
    # Helpers
    # =========================================================================

    def is_participant(self, user_id: PydanticObjectId) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def counterpart_of(self, user_id: PydanticObjectId) -> PydanticObjectId:
        """대화 상대방 ID"""
        return self.receiver_id if self.sender_id == user_id else self.sender_id

    # =========================================================================
    # State transitions
    #
    # 상태 변경은 항상 조건부 update ({_id, 권한 조건, is_deleted: False})로
    # 적용되며, 아래 함수들은 $set 문서만 만든다.
    # =========================================================================

    @staticmethod
    def delivered_update(now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        return {"$set": {"delivered": True, "delivered_at": now, "updated_at": now}}

    @staticmethod
    def read_update(now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        return {"$set": {"read": True, "read_at": now, "updated_at": now}}

    @staticmethod
    def delivered_and_read_update(now: Optional[datetime] = None) -> Dict[str, Any]:
        """미전달 메시지를 한 번의 update로 delivered + read 처리"""
        now = now or utcnow()
        return {"$set": {
            "delivered": True, "delivered_at": now, "read": True, "read_at": now, "updated_at": now,
        }}

    @staticmethod
    def deleted_update(now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        return {"$set": {"is_deleted": True, "deleted_at": now, "updated_at": now}}
