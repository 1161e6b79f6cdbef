"""
Tests for DistributedLock and check_version.

Redis is replaced with a MagicMock; the lock only relies on SET NX EX and
the check-and-delete script.
"""

from unittest.mock import MagicMock, patch

import pytest

from core.exceptions import NotFoundError
from fees.exceptions import LockAcquisitionError, StaleRecordError
from fees.locks import DistributedLock, check_version
from fees.models import PaymentAttempt, PaymentDispute
from fees.tests.factories import PaymentDisputeFactory


@pytest.fixture
def redis():
    client = MagicMock()
    client.set.return_value = True
    client.eval.return_value = 1
    with patch("fees.locks.get_redis_connection", return_value=client):
        yield client


class TestDistributedLock:
    def test_acquire_sets_key_with_ttl(self, redis):
        lock = DistributedLock("fees:test", ttl=15)

        assert lock.acquire() is True

        redis.set.assert_called_once_with("lock:fees:test", lock._token, nx=True, ex=15)
        assert lock.is_held

    def test_non_blocking_fails_fast_when_held(self, redis):
        redis.set.return_value = None
        lock = DistributedLock("fees:test", blocking=False)

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert exc_info.value.details == {"key": "lock:fees:test"}
        assert redis.set.call_count == 1
        assert not lock.is_held

    def test_blocking_retries_until_free(self, redis):
        redis.set.side_effect = [None, None, True]
        lock = DistributedLock("fees:test", timeout=5)

        with patch("fees.locks.time.sleep") as sleep:
            assert lock.acquire() is True

        assert redis.set.call_count == 3
        assert sleep.call_count == 2

    def test_blocking_gives_up_after_timeout(self, redis):
        redis.set.return_value = None
        lock = DistributedLock("fees:test", timeout=0.1)

        with patch("fees.locks.time.sleep"), patch(
            "fees.locks.time.monotonic", side_effect=[0.0, 0.05, 0.2]
        ):
            with pytest.raises(LockAcquisitionError) as exc_info:
                lock.acquire()

        assert exc_info.value.details["timeout"] == 0.1

    def test_release_uses_owner_token(self, redis):
        lock = DistributedLock("fees:test")
        lock.acquire()
        token = lock._token

        assert lock.release() is True

        redis.eval.assert_called_once_with(
            DistributedLock.RELEASE_SCRIPT, 1, "lock:fees:test", token
        )
        assert not lock.is_held

    def test_release_of_expired_lock_reports_false(self, redis):
        redis.eval.return_value = 0
        lock = DistributedLock("fees:test")
        lock.acquire()

        assert lock.release() is False

    def test_release_without_acquire_is_noop(self, redis):
        assert DistributedLock("fees:test").release() is False
        redis.eval.assert_not_called()

    def test_context_manager_releases_on_error(self, redis):
        with pytest.raises(RuntimeError):
            with DistributedLock("fees:test"):
                raise RuntimeError("boom")

        redis.eval.assert_called_once()


@pytest.mark.django_db
class TestCheckVersion:
    def test_returns_row_when_version_matches(self):
        dispute = PaymentDisputeFactory()

        locked = check_version(PaymentDispute, dispute.pk, dispute.version)

        assert locked.pk == dispute.pk

    def test_stale_version_reports_current(self):
        dispute = PaymentDisputeFactory()

        with pytest.raises(StaleRecordError) as exc_info:
            check_version(PaymentDispute, dispute.pk, dispute.version + 3)

        assert exc_info.value.details["current_version"] == dispute.version
        assert exc_info.value.details["expected_version"] == dispute.version + 3

    def test_missing_row(self):
        dispute = PaymentDisputeFactory()

        with pytest.raises(NotFoundError) as exc_info:
            check_version(PaymentAttempt, dispute.pk, 1)

        assert exc_info.value.error_code == "PAYMENTATTEMPT_NOT_FOUND"
