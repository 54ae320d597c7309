from .users import User
from .messages import Message, MessageType

__all__ = [
    "User",
    "Message",
    "MessageType",
]
