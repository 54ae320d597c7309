"""
시간 관련 유틸리티 함수
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    naive UTC 현재 시각.

    MongoDB는 tz 정보 없이 UTC로 저장/반환하므로 비교 대상과 형식을 맞춥니다.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """aware datetime을 naive UTC로 변환 (naive는 UTC로 간주)"""
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def elapsed_ms(since: Optional[datetime], until: Optional[datetime] = None) -> Optional[float]:
    """since부터 until(기본: 현재)까지 경과 시간 (ms)"""
    if since is None:
        return None
    until = until or utcnow()
    return round((to_naive_utc(until) - to_naive_utc(since)).total_seconds() * 1000, 3)
