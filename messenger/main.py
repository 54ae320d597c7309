"""
Messenger Service - FastAPI Application

1:1 메시지 전송/조회와 Kafka 기반 전달 확인 파이프라인을 담당하는 서비스
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from messenger.api import health, message
from messenger.core.config import settings
from messenger.core.logging import setup_logging
from messenger.database import close_databases, init_databases
from messenger.infrastructure.kafka import get_event_producer
from messenger.middleware.error_handler import (
    ErrorHandlerMiddleware,
    create_http_exception_handler,
    create_validation_exception_handler,
)
from messenger.middleware.logging_middleware import LoggingMiddleware
from messenger.services.delivery_handler import create_delivery_consumer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    # Startup
    setup_logging()
    logger.info(f"🚀 {settings.app_name} starting up...")

    # MongoDB 초기화
    await init_databases()

    # Kafka Producer (재시도 예산 소진 시 기동 실패)
    producer = get_event_producer()
    await producer.start()

    # Delivery Consumer (별도 worker 프로세스로 돌릴 경우 비활성화)
    consumer = None
    if settings.run_delivery_consumer:
        consumer = create_delivery_consumer()
        await consumer.start()

    yield

    # Shutdown
    logger.info(f"🛑 {settings.app_name} shutting down...")

    if consumer:
        await consumer.stop()

    await producer.stop()

    await close_databases()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan
)

# 미들웨어 (나중에 추가한 것이 바깥쪽)
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 예외 핸들러
app.add_exception_handler(StarletteHTTPException, create_http_exception_handler())
app.add_exception_handler(RequestValidationError, create_validation_exception_handler())

# Include routers
app.include_router(health.router)
app.include_router(message.router, prefix=settings.api_prefix)

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "messenger.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
