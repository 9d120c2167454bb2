"""
Unit tests for schedule_lock.py.

Coverage:
1) Key generation
2) Lock acquisition/release
3) TTL propagation
4) Graceful degradation when Redis is unavailable
5) Context manager behavior
"""

from datetime import date
from unittest.mock import ANY, MagicMock, patch

import pytest

from app.core.config import settings
from app.core.schedule_lock import (
    _lock_key,
    _namespaced_key,
    acquire_schedule_lock,
    release_schedule_lock,
    schedule_lock,
)
from app.domain.availability import ScheduleKey

KEY = ScheduleKey("math101", "ada", date(2025, 3, 10))


@pytest.fixture
def lock_enabled(monkeypatch):
    monkeypatch.setattr(settings, "schedule_lock_enabled", True)


class TestKeyGeneration:
    def test_lock_key_format(self):
        assert _lock_key(KEY) == "schedule:math101:ada:2025-03-10:mutex"

    def test_lock_key_distinguishes_ids_with_separators(self):
        first = ScheduleKey("a_b", "c", date(2025, 3, 10))
        second = ScheduleKey("a", "b_c", date(2025, 3, 10))
        third = ScheduleKey("a:b", "c", date(2025, 3, 10))
        fourth = ScheduleKey("a", "b:c", date(2025, 3, 10))
        keys = {_lock_key(k) for k in (first, second, third, fourth)}
        assert len(keys) == 4

    def test_namespaced_key_format(self):
        namespaced = _namespaced_key(_lock_key(KEY))
        assert namespaced == f"{settings.lock_namespace}:lock:schedule:math101:ada:2025-03-10:mutex"


class TestLockAcquisition:
    def test_acquire_lock_success(self):
        mock_redis = MagicMock()
        mock_redis.set.return_value = True
        with patch("app.core.schedule_lock._get_sync_redis", return_value=mock_redis):
            assert acquire_schedule_lock(KEY) is True
        mock_redis.set.assert_called_once_with(
            _namespaced_key(_lock_key(KEY)),
            ANY,
            nx=True,
            ex=settings.schedule_lock_ttl_seconds,
        )

    def test_acquire_lock_already_held(self):
        mock_redis = MagicMock()
        mock_redis.set.return_value = None
        with patch("app.core.schedule_lock._get_sync_redis", return_value=mock_redis):
            assert acquire_schedule_lock(KEY) is False

    def test_acquire_lock_passes_ttl(self):
        mock_redis = MagicMock()
        mock_redis.set.return_value = True
        with patch("app.core.schedule_lock._get_sync_redis", return_value=mock_redis):
            acquire_schedule_lock(KEY, ttl_s=45)
        assert mock_redis.set.call_args.kwargs["ex"] == 45

    def test_release_deletes_key(self):
        mock_redis = MagicMock()
        mock_redis.delete.return_value = 1
        with patch("app.core.schedule_lock._get_sync_redis", return_value=mock_redis):
            release_schedule_lock(KEY)
        mock_redis.delete.assert_called_once_with(_namespaced_key(_lock_key(KEY)))


class TestGracefulDegradation:
    def test_acquire_without_redis_proceeds(self):
        with patch("app.core.schedule_lock._get_sync_redis", return_value=None):
            assert acquire_schedule_lock(KEY) is True

    def test_acquire_redis_error_proceeds(self):
        mock_redis = MagicMock()
        mock_redis.set.side_effect = ConnectionError("redis down")
        with patch("app.core.schedule_lock._get_sync_redis", return_value=mock_redis):
            assert acquire_schedule_lock(KEY) is True

    def test_release_without_redis_is_noop(self):
        with patch("app.core.schedule_lock._get_sync_redis", return_value=None):
            release_schedule_lock(KEY)

    def test_release_error_does_not_raise(self):
        mock_redis = MagicMock()
        mock_redis.delete.side_effect = ConnectionError("redis down")
        with patch("app.core.schedule_lock._get_sync_redis", return_value=mock_redis):
            release_schedule_lock(KEY)


class TestContextManager:
    def test_disabled_lock_never_touches_redis(self, monkeypatch):
        monkeypatch.setattr(settings, "schedule_lock_enabled", False)
        with patch("app.core.schedule_lock._get_sync_redis") as mock_get:
            with schedule_lock(KEY) as acquired:
                assert acquired is True
        mock_get.assert_not_called()

    def test_acquires_and_releases(self, lock_enabled):
        with patch("app.core.schedule_lock.acquire_schedule_lock", return_value=True) as acq, patch(
            "app.core.schedule_lock.release_schedule_lock"
        ) as rel:
            with schedule_lock(KEY) as acquired:
                assert acquired is True
                rel.assert_not_called()
        acq.assert_called_once_with(KEY, ttl_s=None)
        rel.assert_called_once_with(KEY)

    def test_releases_when_block_raises(self, lock_enabled):
        with patch("app.core.schedule_lock.acquire_schedule_lock", return_value=True), patch(
            "app.core.schedule_lock.release_schedule_lock"
        ) as rel:
            with pytest.raises(RuntimeError):
                with schedule_lock(KEY):
                    raise RuntimeError("boom")
        rel.assert_called_once_with(KEY)

    def test_busy_lock_yields_false_after_wait(self, lock_enabled):
        with patch("app.core.schedule_lock.acquire_schedule_lock", return_value=False) as acq, patch(
            "app.core.schedule_lock.release_schedule_lock"
        ) as rel, patch("app.core.schedule_lock.time.sleep"):
            with schedule_lock(KEY, wait_s=0.0) as acquired:
                assert acquired is False
        assert acq.call_count >= 1
        rel.assert_not_called()

    def test_retries_until_acquired(self, lock_enabled):
        with patch(
            "app.core.schedule_lock.acquire_schedule_lock", side_effect=[False, False, True]
        ) as acq, patch("app.core.schedule_lock.release_schedule_lock") as rel, patch(
            "app.core.schedule_lock.time.sleep"
        ):
            with schedule_lock(KEY, wait_s=60.0) as acquired:
                assert acquired is True
        assert acq.call_count == 3
        rel.assert_called_once_with(KEY)
