from datetime import datetime
from typing import Optional

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, IndexModel

from messenger.utils.time_utils import utcnow


class User(Document):
    """
    사용자 문서 (읽기 전용).

    가입/프로필 관리는 외부 서비스가 담당하며 여기서는 메시지 송수신자 검증과
    응답 denormalize에만 사용합니다.
    """
    username: str = Field(..., description="Unique username")
    email: str = Field(..., description="Unique email")
    display_name: Optional[str] = Field(None)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("email", ASCENDING)], name="email_unique", unique=True),
            IndexModel([("username", ASCENDING)], name="username_unique", unique=True),
        ]

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, username={self.username})>"
