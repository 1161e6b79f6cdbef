"""
Tests for ReconciliationService.

The Redis lock is patched out; lock behaviour itself is covered in
test_locks.py.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from fees.exceptions import LockAcquisitionError, ReconciliationLockError
from fees.gateways import GatewayPaymentStatus
from fees.models import FeeInvoice, PaymentAttempt, ReconciliationRun
from fees.services import ReconciliationService
from fees.state_machines import (
    InvoiceStatus,
    PaymentAttemptStatus,
    ReconciliationRunStatus,
    TriggerSource,
)
from fees.tests.factories import PaymentAttemptFactory


@pytest.fixture
def mock_lock():
    with patch("fees.services.reconciliation_service.DistributedLock") as lock_class:
        yield lock_class.return_value


def _reload(attempt):
    return PaymentAttempt.objects.get(pk=attempt.pk)


@pytest.mark.django_db
class TestRunReconciliation:
    def test_heals_processing_attempt_reported_successful(
        self, mock_lock, gateway, processing_attempt
    ):
        result = ReconciliationService.run_reconciliation()

        assert result.success
        assert result.data.attempts_checked == 1
        assert result.data.healed == 1
        attempt = _reload(processing_attempt)
        assert attempt.status == PaymentAttemptStatus.SUCCESS
        assert FeeInvoice.objects.get(pk=attempt.invoice_id).status == InvoiceStatus.PAID
        assert attempt.audit_logs.filter(
            trigger_source=TriggerSource.BACKGROUND_JOB,
            new_status=PaymentAttemptStatus.SUCCESS,
        ).exists()

    def test_failed_report_counts_as_healed(self, mock_lock, gateway, pending_attempt):
        gateway.force_status = GatewayPaymentStatus.FAILED

        result = ReconciliationService.run_reconciliation()

        assert result.data.healed == 1
        assert _reload(pending_attempt).status == PaymentAttemptStatus.FAILED

    def test_gateway_still_processing_leaves_attempt(
        self, mock_lock, gateway, processing_attempt
    ):
        gateway.force_status = GatewayPaymentStatus.PROCESSING

        result = ReconciliationService.run_reconciliation()

        assert result.data.still_pending == 1
        assert result.data.healed == 0
        assert _reload(processing_attempt).status == PaymentAttemptStatus.PROCESSING

    def test_pending_report_moves_attempt_to_pending(
        self, mock_lock, gateway, processing_attempt
    ):
        gateway.force_status = GatewayPaymentStatus.PENDING

        result = ReconciliationService.run_reconciliation()

        assert result.data.still_pending == 1
        assert _reload(processing_attempt).status == PaymentAttemptStatus.PENDING

    def test_old_attempt_escalated_without_polling(self, mock_lock, gateway, invoice):
        with freeze_time(timezone.now() - timedelta(hours=25)):
            stale = PaymentAttemptFactory(
                invoice=invoice,
                status=PaymentAttemptStatus.PROCESSING,
                with_gateway_ref=True,
            )

        with patch.object(gateway, "fetch_status") as fetch_status:
            result = ReconciliationService.run_reconciliation()

        fetch_status.assert_not_called()
        assert result.data.escalated == 1
        attempt = _reload(stale)
        assert attempt.status == PaymentAttemptStatus.DISPUTED
        assert FeeInvoice.objects.get(pk=invoice.pk).paid_amount == 0

    def test_custom_escalation_window(self, mock_lock, gateway, invoice):
        with freeze_time(timezone.now() - timedelta(hours=3)):
            PaymentAttemptFactory(
                invoice=invoice,
                status=PaymentAttemptStatus.PROCESSING,
                with_gateway_ref=True,
            )

        result = ReconciliationService.run_reconciliation(auto_dispute_after_hours=2)

        assert result.data.escalated == 1
        assert result.data.healed == 0

    def test_attempt_without_gateway_reference_skipped(self, mock_lock, gateway, invoice):
        attempt = PaymentAttemptFactory(
            invoice=invoice, status=PaymentAttemptStatus.PROCESSING
        )

        result = ReconciliationService.run_reconciliation()

        assert result.data.skipped == 1
        assert result.data.attempts_checked == 1
        assert _reload(attempt).status == PaymentAttemptStatus.PROCESSING

    def test_terminal_and_initiated_attempts_ignored(
        self, mock_lock, gateway, failed_attempt, initiated_attempt
    ):
        result = ReconciliationService.run_reconciliation()

        assert result.data.attempts_checked == 0

    def test_gateway_errors_counted_and_run_continues(
        self, mock_lock, unavailable_gateway, processing_attempt
    ):
        result = ReconciliationService.run_reconciliation()

        assert result.success
        assert result.data.errors == 1
        assert _reload(processing_attempt).status == PaymentAttemptStatus.PROCESSING

    def test_max_attempts_bounds_the_run(self, mock_lock, gateway, student):
        for _ in range(3):
            PaymentAttemptFactory(
                invoice__student=student,
                status=PaymentAttemptStatus.PROCESSING,
                with_gateway_ref=True,
            )

        result = ReconciliationService.run_reconciliation(max_attempts=2)

        assert result.data.attempts_checked == 2
        assert PaymentAttempt.objects.filter(status=PaymentAttemptStatus.SUCCESS).count() == 2

    def test_records_completed_run(self, mock_lock, gateway, processing_attempt):
        result = ReconciliationService.run_reconciliation()

        run = ReconciliationRun.objects.get(pk=result.data.run_id)
        assert run.status == ReconciliationRunStatus.COMPLETED
        assert run.attempts_checked == 1
        assert run.healed == 1
        assert run.auto_dispute_after_hours == 24
        assert run.completed_at is not None

    def test_unexpected_error_marks_run_failed(self, mock_lock, gateway, processing_attempt):
        with patch.object(gateway, "fetch_status", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                ReconciliationService.run_reconciliation()

        run = ReconciliationRun.objects.get()
        assert run.status == ReconciliationRunStatus.FAILED
        assert run.error_message == "boom"
        mock_lock.release.assert_called_once()

    def test_lock_released_after_run(self, mock_lock, gateway):
        ReconciliationService.run_reconciliation()

        mock_lock.acquire.assert_called_once()
        mock_lock.release.assert_called_once()

    def test_refuses_to_overlap_a_running_pass(self, mock_lock, gateway, processing_attempt):
        mock_lock.acquire.side_effect = LockAcquisitionError("held")

        with pytest.raises(ReconciliationLockError):
            ReconciliationService.run_reconciliation()

        assert ReconciliationRun.objects.count() == 0
        mock_lock.release.assert_not_called()
        assert _reload(processing_attempt).status == PaymentAttemptStatus.PROCESSING
