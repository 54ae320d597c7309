"""
Chat API - 1:1 메시지 관련 API 엔드포인트
"""

import logging

from fastapi import APIRouter, Depends, Query, status

from messenger.api.dependencies import get_current_user
from messenger.core.config import settings
from messenger.models.users import User
from messenger.schemas import (
    ApiResponse,
    ChatListData,
    CountData,
    MessageData,
    MessageListData,
    SendMessageRequest,
)
from messenger.services import message_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


# 고정 경로는 /{user_id}/..., /{message_id}/... 보다 먼저 선언


@router.post("/send", response_model=ApiResponse[MessageData], status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest,
    current_user: User = Depends(get_current_user)
):
    """
    메시지 전송

    - **to**: 수신자 ID
    - **content**: 메시지 내용 (최대 5000자)
    - **message_type**: text, image, video, file (기본값: text)
    - **attachment_url**: 첨부 파일 URL (선택사항)
    """
    message = await message_service.send_message(
        sender_id=str(current_user.id),
        to=request.to,
        content=request.content,
        message_type=request.message_type,
        attachment_url=request.attachment_url,
    )

    return ApiResponse(
        message="Message sent successfully",
        data=MessageData(message=await message_service.to_response(message)),
    )


@router.get("/conversations", response_model=ApiResponse[ChatListData])
async def get_chat_list(current_user: User = Depends(get_current_user)):
    """대화 상대별 최근 메시지 목록"""
    conversations = await message_service.get_chat_list(str(current_user.id))

    return ApiResponse(
        message="Chat list retrieved successfully",
        data=ChatListData(conversations=conversations, count=len(conversations)),
    )


@router.get("/inbox", response_model=ApiResponse[MessageListData])
async def get_inbox(
    current_user: User = Depends(get_current_user),
    limit: int = Query(default=settings.default_page_size, description="조회할 메시지 수 (1~200으로 보정)"),
    skip: int = Query(default=0, description="건너뛸 메시지 수")
):
    """받은 메시지 목록 (최신순)"""
    messages = await message_service.get_inbox_messages(str(current_user.id), limit, skip)

    return ApiResponse(
        message="Inbox retrieved successfully",
        data=MessageListData(
            messages=await message_service.to_responses(messages),
            count=len(messages),
        ),
    )


@router.get("/unread", response_model=ApiResponse[MessageListData])
async def get_unread_messages(current_user: User = Depends(get_current_user)):
    """읽지 않은 메시지 목록"""
    messages = await message_service.get_unread_messages(str(current_user.id))

    return ApiResponse(
        message="Unread messages retrieved successfully",
        data=MessageListData(
            messages=await message_service.to_responses(messages),
            count=len(messages),
        ),
    )


@router.get("/unread/count", response_model=ApiResponse[CountData])
async def get_unread_count(current_user: User = Depends(get_current_user)):
    """읽지 않은 메시지 수"""
    count = await message_service.get_unread_count(str(current_user.id))

    return ApiResponse(message="Unread count retrieved successfully", data=CountData(count=count))


@router.get("/{user_id}/messages", response_model=ApiResponse[MessageListData])
async def get_conversation(
    user_id: str,
    current_user: User = Depends(get_current_user),
    limit: int = Query(default=settings.default_page_size, description="조회할 메시지 수 (1~200으로 보정)"),
    skip: int = Query(default=0, description="건너뛸 메시지 수 (최신 메시지 기준)")
):
    """
    특정 사용자와의 대화 조회

    최신 메시지부터 skip/limit으로 페이지를 자르고, 페이지 안에서는 오래된 순으로 반환합니다.
    """
    messages = await message_service.get_conversation(str(current_user.id), user_id, limit, skip)

    return ApiResponse(
        message="Conversation retrieved successfully",
        data=MessageListData(
            messages=await message_service.to_responses(messages),
            count=len(messages),
        ),
    )


@router.patch("/{user_id}/read-all", response_model=ApiResponse[CountData])
async def mark_conversation_as_read(
    user_id: str,
    current_user: User = Depends(get_current_user)
):
    """특정 사용자가 보낸 메시지 모두 읽음 처리"""
    count = await message_service.mark_conversation_as_read(str(current_user.id), user_id)

    return ApiResponse(message=f"{count} messages marked as read", data=CountData(count=count))


@router.patch("/{message_id}/read", response_model=ApiResponse[MessageData])
async def mark_as_read(
    message_id: str,
    current_user: User = Depends(get_current_user)
):
    """메시지 읽음 처리 (수신자만 가능)"""
    message = await message_service.mark_as_read(message_id, str(current_user.id))

    return ApiResponse(
        message="Message marked as read",
        data=MessageData(message=await message_service.to_response(message)),
    )


@router.delete("/{message_id}", response_model=ApiResponse[MessageData])
async def delete_message(
    message_id: str,
    current_user: User = Depends(get_current_user)
):
    """메시지 삭제 (발신자/수신자 모두 가능, soft delete)"""
    message = await message_service.delete_message(message_id, str(current_user.id))

    return ApiResponse(
        message="Message deleted successfully",
        data=MessageData(message=await message_service.to_response(message)),
    )
