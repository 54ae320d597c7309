"""
API Dependencies

FastAPI dependency functions for authentication
"""

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from messenger.core.errors import invalid_token_error
from messenger.core.logging import set_request_context
from messenger.models.users import User
from messenger.services.user_service import find_active_user_by_id
from messenger.utils.auth import decode_access_token

# OAuth2 설정 (토큰 발급은 외부 인증 서비스)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    """
    현재 인증된 사용자를 조회합니다.

    Raises:
        AuthenticationException: 토큰이 없거나 유효하지 않은 경우, 사용자가 없거나 비활성인 경우
    """
    if not token:
        raise invalid_token_error()

    # JWT 토큰 디코드
    payload = decode_access_token(token)
    if not payload:
        raise invalid_token_error()

    # 사용자 ID 추출
    user_id = payload.get("sub")
    if not user_id:
        raise invalid_token_error()

    # 사용자 조회
    user = await find_active_user_by_id(user_id)
    if not user:
        raise invalid_token_error()

    set_request_context(user_id=str(user.id))
    return user
