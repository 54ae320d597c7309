"""
Kafka Infrastructure

Producer, Consumer, Config 등 Delivery Queue 인프라 코드
"""

from .producer import DomainEventProducer, get_event_producer
from .consumer import (
    DomainEventConsumer,
    ProcessingOutcome,
    AckAction,
    AckPolicy,
    AlwaysAckPolicy,
    DeadLetterPolicy,
    get_ack_policy,
)
from .config import KafkaConfig, kafka_config

__all__ = [
    'DomainEventProducer',
    'get_event_producer',
    'DomainEventConsumer',
    'ProcessingOutcome',
    'AckAction',
    'AckPolicy',
    'AlwaysAckPolicy',
    'DeadLetterPolicy',
    'get_ack_policy',
    'KafkaConfig',
    'kafka_config',
]
