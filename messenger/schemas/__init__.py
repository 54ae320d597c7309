from .common import ApiResponse
from .message import (
    SendMessageRequest,
    UserSummary,
    MessageResponse,
    MessageData,
    MessageListData,
    CountData,
    LastMessagePreview,
    ChatListEntry,
    ChatListData,
)

__all__ = [
    "ApiResponse",
    "SendMessageRequest",
    "UserSummary",
    "MessageResponse",
    "MessageData",
    "MessageListData",
    "CountData",
    "LastMessagePreview",
    "ChatListEntry",
    "ChatListData",
]
