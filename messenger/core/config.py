"""
Messenger Service Configuration

환경 변수를 통한 설정 관리
"""

from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """Messenger Service 설정"""

    # Application
    app_name: str = "Messenger Service"
    version: str = "1.0.0"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database - MongoDB
    mongo_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "messenger"
    mongo_max_pool_size: int = 10
    mongo_server_selection_timeout_ms: int = 5000

    # JWT
    secret_key: str = "your-secret-key-here"
    algorithm: str = "HS256"
    access_token_expire_hours: int = 2

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    # Messages
    message_max_length: int = 5000
    default_page_size: int = 50
    max_page_size: int = 200
    deleted_message_retention_days: int = 30

    # Delivery pipeline
    run_delivery_consumer: bool = True
    delivery_simulated_delay_ms: int = 500
    push_notification_delay_ms: int = 200
    realtime_notification_delay_ms: int = 100

    # Logging
    log_dir: str = "logs"
    log_to_file: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # 추가 환경변수 무시


settings = Settings()
