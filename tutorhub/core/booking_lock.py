"""
Per-teacher scheduling mutex backed by Redis.

Booking creation, reschedule and rebook hold this lock across the
conflict check and the insert. The lock is fail-open: when Redis is not
configured or unreachable the database row lock and the partial unique
index on bookings still reject double-booking.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _lock_key(teacher_id: str, booking_date: date) -> str:
    return f"tutorhub:lock:teacher:{teacher_id}:{booking_date.isoformat()}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("teacher_slot_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_teacher_slot_lock(
    teacher_id: str, booking_date: date, ttl_s: Optional[int] = None
) -> bool:
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")
        return True
    try:
        acquired = bool(
            client.set(
                _lock_key(teacher_id, booking_date),
                str(time.time()),
                nx=True,
                ex=ttl_s or settings.booking_lock_ttl_seconds,
            )
        )
    except Exception as exc:
        prometheus_metrics.record_booking_lock("acquire", "error")
        logger.warning(
            "teacher_slot_lock_acquire_failed",
            extra={
                "teacher_id": teacher_id,
                "booking_date": booking_date.isoformat(),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return True
    prometheus_metrics.record_booking_lock("acquire", "success" if acquired else "blocked")
    return acquired


def release_teacher_slot_lock(teacher_id: str, booking_date: date) -> None:
    client = _get_sync_redis()
    if client is None:
        return
    try:
        deleted = client.delete(_lock_key(teacher_id, booking_date))
        prometheus_metrics.record_booking_lock("release", "success" if deleted else "not_found")
    except Exception as exc:
        prometheus_metrics.record_booking_lock("release", "error")
        logger.warning(
            "teacher_slot_lock_release_failed",
            extra={
                "teacher_id": teacher_id,
                "booking_date": booking_date.isoformat(),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def teacher_slot_lock(
    teacher_id: str, booking_date: date, ttl_s: Optional[int] = None
) -> Iterator[bool]:
    """Yield whether the lock was obtained; the caller decides how to react to ``False``."""
    acquired = acquire_teacher_slot_lock(teacher_id, booking_date, ttl_s=ttl_s)
    try:
        yield acquired
    finally:
        if acquired:
            release_teacher_slot_lock(teacher_id, booking_date)
