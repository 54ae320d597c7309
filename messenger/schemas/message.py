from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from messenger.models.messages import MESSAGE_MAX_LENGTH, MessageType


class SendMessageRequest(BaseModel):
    """메시지 전송 요청 스키마"""
    to: str = Field(..., description="수신자 사용자 ID")
    content: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH, description="메시지 내용")
    message_type: MessageType = Field(default=MessageType.TEXT, description="메시지 타입: text, image, video, file")
    attachment_url: Optional[str] = Field(None, description="첨부 파일 URL")

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError('content must not be blank')
        return v


class UserSummary(BaseModel):
    """응답에 포함되는 사용자 요약"""
    id: str
    username: Optional[str] = None
    email: Optional[str] = None


class MessageResponse(BaseModel):
    """메시지 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="메시지 ID")
    sender_id: str = Field(..., description="발신자 ID")
    receiver_id: str = Field(..., description="수신자 ID")
    sender: Optional[UserSummary] = Field(None, description="발신자 정보")
    receiver: Optional[UserSummary] = Field(None, description="수신자 정보")
    content: str = Field(..., description="메시지 내용")
    message_type: MessageType = Field(..., description="메시지 타입")
    attachment_url: Optional[str] = Field(None, description="첨부 파일 URL")

    delivered: bool = Field(default=False, description="전달 여부")
    delivered_at: Optional[datetime] = Field(None, description="전달 시간")
    read: bool = Field(default=False, description="읽음 여부")
    read_at: Optional[datetime] = Field(None, description="읽은 시간")
    is_deleted: bool = Field(default=False, description="삭제 여부")
    deleted_at: Optional[datetime] = Field(None, description="삭제 시간")

    created_at: datetime = Field(..., description="생성일시")
    updated_at: datetime = Field(..., description="수정일시")


class MessageData(BaseModel):
    message: MessageResponse


class MessageListData(BaseModel):
    """메시지 목록 응답 데이터"""
    messages: List[MessageResponse] = Field(..., description="메시지 목록")
    count: int = Field(..., description="반환된 메시지 수")


class CountData(BaseModel):
    count: int


class LastMessagePreview(BaseModel):
    id: str
    content: str
    message_type: MessageType
    sender_id: str
    created_at: datetime
    read: bool


class ChatListEntry(BaseModel):
    """대화 상대별 최근 메시지 요약"""
    user_id: str = Field(..., description="상대방 사용자 ID")
    username: str = Field(..., description="상대방 사용자명")
    email: str = Field(..., description="상대방 이메일")
    last_message: LastMessagePreview = Field(..., description="가장 최근 메시지")
    unread_count: int = Field(..., description="상대방이 보낸 안 읽은 메시지 수")


class ChatListData(BaseModel):
    conversations: List[ChatListEntry]
    count: int
