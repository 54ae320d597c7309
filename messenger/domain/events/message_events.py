"""
Message Context Domain Events
"""

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Dict

from .base import DomainEvent

MESSAGE_SENT = "message.sent"
MESSAGE_READ = "message.read"


@dataclass
class MessageSent(DomainEvent):
    """메시지 전송 이벤트"""
    message_id: str
    sender_id: str
    receiver_id: str
    content: str
    message_type: str  # "text", "image", "video", "file"
    timestamp: datetime

    pattern: ClassVar[str] = MESSAGE_SENT
    wire_aliases: ClassVar[Dict[str, str]] = {"sender_id": "from", "receiver_id": "to"}

    @classmethod
    def from_message(cls, message) -> "MessageSent":
        return cls(
            message_id=str(message.id),
            sender_id=str(message.sender_id),
            receiver_id=str(message.receiver_id),
            content=message.content,
            message_type=getattr(message.message_type, "value", message.message_type),
            timestamp=message.created_at,
        )


@dataclass
class MessageRead(DomainEvent):
    """메시지 읽음 이벤트 (from: 원 발신자, to: 읽은 사용자)"""
    message_id: str
    sender_id: str
    receiver_id: str
    timestamp: datetime

    pattern: ClassVar[str] = MESSAGE_READ
    wire_aliases: ClassVar[Dict[str, str]] = {"sender_id": "from", "receiver_id": "to"}

    @classmethod
    def from_message(cls, message) -> "MessageRead":
        return cls(
            message_id=str(message.id),
            sender_id=str(message.sender_id),
            receiver_id=str(message.receiver_id),
            timestamp=message.read_at,
        )
