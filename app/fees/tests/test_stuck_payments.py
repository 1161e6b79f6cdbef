"""
Tests for StuckPaymentDetector.
"""

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

import pytest
from freezegun import freeze_time

from fees.services import StuckPaymentDetector
from fees.state_machines import PaymentAttemptStatus
from fees.tests.factories import FeeInvoiceFactory, PaymentAttemptFactory

NOW = datetime(2026, 7, 1, 12, 0, tzinfo=dt_timezone.utc)


def _attempt_created(minutes_ago, **kwargs):
    with freeze_time(NOW - timedelta(minutes=minutes_ago)):
        return PaymentAttemptFactory(with_gateway_ref=True, **kwargs)


@pytest.mark.django_db
class TestFindStuckAttempts:
    @pytest.fixture(autouse=True)
    def _threshold(self, settings):
        settings.FEES_STUCK_PAYMENT_THRESHOLD_MINUTES = 60

    def test_threshold_boundary(self, student):
        invoice = FeeInvoiceFactory(student=student)
        fresh = _attempt_created(59, invoice=invoice, status=PaymentAttemptStatus.PROCESSING)
        stuck = _attempt_created(61, invoice=invoice, status=PaymentAttemptStatus.PROCESSING)

        result = list(StuckPaymentDetector.find_stuck_attempts(student.tenant, now=NOW))

        assert result == [stuck]
        assert fresh not in result

    def test_exactly_threshold_old_is_not_stuck(self, student):
        _attempt_created(
            60,
            invoice=FeeInvoiceFactory(student=student),
            status=PaymentAttemptStatus.PROCESSING,
        )

        assert not StuckPaymentDetector.find_stuck_attempts(student.tenant, now=NOW).exists()

    @pytest.mark.parametrize(
        "status",
        [
            PaymentAttemptStatus.INITIATED,
            PaymentAttemptStatus.PENDING,
            PaymentAttemptStatus.SUCCESS,
            PaymentAttemptStatus.FAILED,
            PaymentAttemptStatus.DISPUTED,
        ],
    )
    def test_only_processing_attempts_are_stuck(self, student, status):
        _attempt_created(120, invoice=FeeInvoiceFactory(student=student), status=status)

        assert not StuckPaymentDetector.find_stuck_attempts(student.tenant, now=NOW).exists()

    def test_oldest_first(self, student):
        newer = _attempt_created(
            90,
            invoice=FeeInvoiceFactory(student=student),
            status=PaymentAttemptStatus.PROCESSING,
        )
        older = _attempt_created(
            300,
            invoice=FeeInvoiceFactory(student=student),
            status=PaymentAttemptStatus.PROCESSING,
        )

        result = list(StuckPaymentDetector.find_stuck_attempts(student.tenant, now=NOW))

        assert result == [older, newer]

    def test_other_schools_are_excluded(self, student, other_school):
        from authentication.tests.factories import StudentFactory

        _attempt_created(
            120,
            invoice=FeeInvoiceFactory(student=StudentFactory(tenant=other_school)),
            status=PaymentAttemptStatus.PROCESSING,
        )

        assert not StuckPaymentDetector.find_stuck_attempts(student.tenant, now=NOW).exists()

    def test_custom_threshold(self, student):
        attempt = _attempt_created(
            20,
            invoice=FeeInvoiceFactory(student=student),
            status=PaymentAttemptStatus.PROCESSING,
        )

        result = StuckPaymentDetector.find_stuck_attempts(
            student.tenant, threshold=timedelta(minutes=15), now=NOW
        )

        assert list(result) == [attempt]


class TestThresholdFromMinutes:
    def test_parses_positive_integer(self):
        assert StuckPaymentDetector.threshold_from_minutes("15") == timedelta(minutes=15)

    @pytest.mark.parametrize("value", ["0", "-5", "abc", "527041", "9" * 30])
    def test_rejects_invalid_values(self, value):
        with pytest.raises(ValueError):
            StuckPaymentDetector.threshold_from_minutes(value)

    def test_accepts_upper_bound(self):
        assert StuckPaymentDetector.threshold_from_minutes("527040") == timedelta(days=366)
