import pytest
import pytest_asyncio
from typing import AsyncGenerator
from unittest.mock import MagicMock, patch

from beanie import init_beanie
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

from messenger.main import app
from messenger.models.messages import Message
from messenger.models.users import User
from messenger.utils.auth import create_access_token


@pytest_asyncio.fixture
async def mongo_db():
    """테스트용 인메모리 MongoDB (mongomock-motor) + Beanie 초기화"""
    client = AsyncMongoMockClient()
    database = client["messenger_test"]
    # TTL / partial index는 mongomock에서 지원되지 않으므로 생성하지 않음
    await init_beanie(database=database, document_models=[User, Message], skip_indexes=True)
    yield database


@pytest.fixture
def mock_producer():
    """
    Kafka Producer mock.

    message_service가 사용하는 get_event_producer()를 대체하여
    publish_detached 호출만 기록합니다.
    """
    producer = MagicMock()
    producer.started = True
    with patch("messenger.services.message_service.get_event_producer", return_value=producer):
        yield producer


async def _create_user(username: str, email: str, is_active: bool = True) -> User:
    user = User(username=username, email=email, is_active=is_active)
    await user.insert()
    return user


@pytest_asyncio.fixture
async def test_user_1(mongo_db) -> User:
    """테스트용 사용자 1"""
    return await _create_user("testuser1", "test1@example.com")


@pytest_asyncio.fixture
async def test_user_2(mongo_db) -> User:
    """테스트용 사용자 2"""
    return await _create_user("testuser2", "test2@example.com")


@pytest_asyncio.fixture
async def test_user_3(mongo_db) -> User:
    """테스트용 사용자 3"""
    return await _create_user("testuser3", "test3@example.com")


@pytest_asyncio.fixture
async def inactive_user(mongo_db) -> User:
    """비활성 사용자"""
    return await _create_user("inactive", "inactive@example.com", is_active=False)


@pytest.fixture
def auth_token_user_1(test_user_1) -> str:
    """사용자 1의 인증 토큰"""
    return create_access_token(data={"sub": str(test_user_1.id), "email": test_user_1.email})


@pytest.fixture
def auth_token_user_2(test_user_2) -> str:
    """사용자 2의 인증 토큰"""
    return create_access_token(data={"sub": str(test_user_2.id), "email": test_user_2.email})


@pytest.fixture
def auth_token_user_3(test_user_3) -> str:
    """사용자 3의 인증 토큰"""
    return create_access_token(data={"sub": str(test_user_3.id), "email": test_user_3.email})


@pytest_asyncio.fixture
async def client(mongo_db, mock_producer) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트 (lifespan 미실행: Kafka/MongoDB 연결 없음)"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    def _headers(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}
    return _headers
