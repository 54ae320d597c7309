"""
Kafka Configuration
"""

from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings


class KafkaConfig(BaseSettings):
    """Kafka 설정"""

    # Kafka 브로커 주소 (comma separated)
    bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Kafka bootstrap servers"
    )

    # Topic 설정
    topic_chat_messages: str = Field(
        default="chat.messages",
        description="Durable topic carrying message.sent / message.read events"
    )
    dead_letter_suffix: str = ".dlq"

    # Producer 설정
    producer_acks: str = Field(
        default="all",
        description="Producer acks: 'all', '1', '0'"
    )
    producer_compression_type: str = Field(
        default="gzip",
        description="Compression type: 'none', 'gzip', 'lz4'"
    )
    producer_request_timeout_ms: int = Field(
        default=30000,
        description="Request timeout in milliseconds"
    )
    publish_max_retries: int = Field(
        default=3,
        description="Attempts per detached publish before giving up"
    )
    publish_retry_backoff_ms: int = Field(
        default=500,
        description="Linear backoff step between publish attempts"
    )

    # Startup 재시도 (소진 시 기동 실패)
    startup_max_attempts: int = 5
    startup_retry_delay_ms: int = 2000

    # Consumer 설정
    consumer_group_id: str = "message-delivery"
    consumer_auto_offset_reset: str = Field(
        default="earliest",
        description="Auto offset reset: 'earliest', 'latest'"
    )
    consumer_session_timeout_ms: int = Field(
        default=30000,
        description="Session timeout in milliseconds"
    )
    consumer_failure_policy: str = Field(
        default="ack",
        description="What to do with failed events: 'ack' or 'dead_letter'"
    )

    @property
    def bootstrap_server_list(self) -> List[str]:
        return [server.strip() for server in self.bootstrap_servers.split(",") if server.strip()]

    @property
    def dead_letter_topic(self) -> str:
        return f"{self.topic_chat_messages}{self.dead_letter_suffix}"

    class Config:
        env_prefix = "KAFKA_"
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Singleton instance
kafka_config = KafkaConfig()
