"""
JWT 액세스 토큰 유틸리티.

토큰 발급은 외부 인증 서비스의 책임이며, 이 서비스는 검증만 합니다.
create_access_token은 테스트와 로컬 개발용입니다.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from messenger.core.config import settings
from messenger.utils.time_utils import utcnow


def create_access_token(data: Dict[str, Any],
                        expires_delta: Optional[timedelta] = None) -> str:
    """JWT 액세스 토큰 생성"""
    to_encode = data.copy()

    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(hours=settings.access_token_expire_hours)

    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """JWT 액세스 토큰 디코드 (만료/위조/refresh 토큰은 None)"""
    try:
        payload = jwt.decode(token, settings.secret_key,
                             algorithms=[settings.algorithm])
        if payload.get("type") != "access":
            return None
        return payload
    except JWTError:
        return None
