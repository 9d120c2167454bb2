from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Iterator, Optional
from urllib.parse import quote

from redis import Redis

from app.core.config import settings
from app.domain.availability import ScheduleKey
from app.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _lock_key(key: ScheduleKey) -> str:
    # ids are percent-encoded so ":" only ever separates fields
    course = quote(key.course_id, safe="")
    lecturer = quote(key.lecturer_id, safe="")
    return f"schedule:{course}:{lecturer}:{key.day_date.isoformat()}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
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
                socket_connect_timeout=1,
            )
            client.ping()
        except Exception as exc:
            logger.warning("schedule_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_schedule_lock(key: ScheduleKey, ttl_s: Optional[int] = None) -> bool:
    """
    Take the per-day mutex.

    Returns True when Redis is unreachable: the conditional update in the
    repository still serializes writers, the lock only cuts retries.
    """
    ttl = ttl_s or settings.schedule_lock_ttl_seconds
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_schedule_lock("acquire", "redis_unavailable")
        logger.warning("schedule_lock_redis_unavailable", extra={"schedule": str(key)})
        return True
    try:
        acquired = bool(
            client.set(_namespaced_key(_lock_key(key)), str(time.time()), nx=True, ex=ttl)
        )
        if acquired:
            prometheus_metrics.record_schedule_lock("acquire", "success")
        else:
            prometheus_metrics.record_schedule_lock("acquire", "blocked")
        return acquired
    except Exception as exc:
        prometheus_metrics.record_schedule_lock("acquire", "error")
        logger.warning(
            "schedule_lock_acquire_failed",
            extra={
                "schedule": str(key),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return True


def release_schedule_lock(key: ScheduleKey) -> None:
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_schedule_lock("release", "redis_unavailable")
        return
    try:
        deleted = client.delete(_namespaced_key(_lock_key(key)))
        if deleted:
            prometheus_metrics.record_schedule_lock("release", "success")
        else:
            prometheus_metrics.record_schedule_lock("release", "not_found")
    except Exception as exc:
        prometheus_metrics.record_schedule_lock("release", "error")
        logger.warning(
            "schedule_lock_release_failed",
            extra={
                "schedule": str(key),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def schedule_lock(
    key: ScheduleKey,
    ttl_s: Optional[int] = None,
    *,
    wait_s: float = 2.0,
    poll_s: float = 0.05,
) -> Iterator[bool]:
    """
    Hold the per-day mutex for the duration of the block.

    Polls for up to wait_s; yields False if the lock stayed busy so the
    caller can still proceed on the compare-and-swap alone.
    """
    if not settings.schedule_lock_enabled:
        yield True
        return

    deadline = time.monotonic() + wait_s
    acquired = acquire_schedule_lock(key, ttl_s=ttl_s)
    while not acquired and time.monotonic() < deadline:
        time.sleep(poll_s)
        acquired = acquire_schedule_lock(key, ttl_s=ttl_s)
    try:
        yield acquired
    finally:
        if acquired:
            release_schedule_lock(key)
