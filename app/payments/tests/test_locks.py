"""
Tests for the Redis lock that serialises reconciliation sweeps.
"""

import pytest

from payments.exceptions import LockAcquisitionError
from payments.locks import DistributedLock


class TestDistributedLock:
    """Tests for DistributedLock against a mocked Redis client."""

    def test_acquire_sets_key_with_nx_and_ttl(self, mock_redis):
        """Should SET lock:<key> NX with the configured TTL."""
        lock = DistributedLock("payments:reconcile", ttl=600, blocking=False)

        assert lock.acquire() is True
        assert lock.is_held is True

        args, kwargs = mock_redis.set.call_args
        assert args[0] == "lock:payments:reconcile"
        assert kwargs == {"nx": True, "ex": 600}

    def test_each_acquisition_uses_fresh_token(self, mock_redis):
        first = DistributedLock("a", blocking=False)
        second = DistributedLock("b", blocking=False)

        first.acquire()
        second.acquire()

        assert first._token and second._token
        assert first._token != second._token

    def test_non_blocking_raises_when_held(self, mock_redis):
        """Non-blocking mode fails at once and does not claim the lock."""
        mock_redis.set.return_value = False
        lock = DistributedLock("payments:reconcile", blocking=False)

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert "already held" in str(exc_info.value)
        assert exc_info.value.details["key"] == "lock:payments:reconcile"
        assert lock.is_held is False
        assert mock_redis.set.call_count == 1

    def test_blocking_retries_until_free(self, mock_redis):
        mock_redis.set.side_effect = [False, False, True]

        lock = DistributedLock("k", blocking=True, timeout=1.0)

        assert lock.acquire() is True
        assert mock_redis.set.call_count == 3

    def test_blocking_timeout_raises(self, mock_redis):
        mock_redis.set.return_value = False

        lock = DistributedLock("k", blocking=True, timeout=0.1)

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert "within 0.1s" in str(exc_info.value)
        assert exc_info.value.details["timeout"] == 0.1
        assert lock.is_held is False

    def test_release_runs_token_checked_script(self, mock_redis):
        lock = DistributedLock("k", blocking=False)
        lock.acquire()
        token = lock._token

        assert lock.release() is True

        args = mock_redis.eval.call_args[0]
        assert args[1:] == (1, "lock:k", token)
        assert lock.is_held is False

    def test_release_of_foreign_lock_returns_false(self, mock_redis):
        """The script returns 0 when the stored token is not ours."""
        mock_redis.eval.return_value = 0
        lock = DistributedLock("k", blocking=False)
        lock.acquire()

        assert lock.release() is False

    def test_release_without_acquire_is_noop(self, mock_redis):
        lock = DistributedLock("k", blocking=False)

        assert lock.release() is False
        mock_redis.eval.assert_not_called()

    def test_context_manager_releases_on_exception(self, mock_redis):
        with pytest.raises(ValueError, match="boom"):
            with DistributedLock("k", blocking=False) as lock:
                assert lock.is_held
                raise ValueError("boom")

        mock_redis.eval.assert_called_once()
