from fastapi import APIRouter, HTTPException

from messenger.core.config import settings
from messenger.database import check_database_health
from messenger.infrastructure.kafka import get_event_producer
from messenger.utils.time_utils import utcnow

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Application health check endpoint"""
    try:
        db_health = await check_database_health()
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Health check failed: {str(e)}"
        )

    producer = get_event_producer()
    return {
        "status": "healthy" if db_health["overall"] else "unhealthy",
        "timestamp": utcnow(),
        "databases": {
            "mongodb": "connected" if db_health["mongodb"] else "disconnected"
        },
        # 큐 발행 실패는 전송을 막지 않으므로 상태에만 표시
        "queue": {
            "producer": "started" if producer.started else "stopped"
        },
        "service": settings.app_name
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness probe endpoint"""
    db_health = await check_database_health()

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - database connection failed"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": utcnow()}
