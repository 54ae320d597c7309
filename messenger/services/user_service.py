"""
User lookup service (외부 사용자 서비스가 소유한 users 컬렉션 읽기 전용)
"""

from typing import Dict, Iterable, Optional

from beanie import PydanticObjectId
from beanie.operators import In
from bson import ObjectId

from messenger.models.users import User


async def find_user_by_id(user_id) -> Optional[User]:
    """사용자 ID로 조회 (형식이 잘못된 ID는 None)"""
    if not isinstance(user_id, ObjectId):
        if not ObjectId.is_valid(str(user_id)):
            return None
        user_id = PydanticObjectId(str(user_id))
    return await User.get(user_id)


async def find_active_user_by_id(user_id) -> Optional[User]:
    """활성 사용자만 조회"""
    user = await find_user_by_id(user_id)
    if user is None or not user.is_active:
        return None
    return user


async def find_users_by_ids(user_ids: Iterable[ObjectId]) -> Dict[ObjectId, User]:
    """여러 사용자를 한 번의 쿼리로 조회 (N+1 방지)"""
    ids = list({PydanticObjectId(str(user_id)) for user_id in user_ids})
    if not ids:
        return {}
    users = await User.find(In(User.id, ids)).to_list()
    return {user.id: user for user in users}
