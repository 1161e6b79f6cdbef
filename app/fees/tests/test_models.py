"""
Tests for fee models: derived invoice state, numbering and the audit trail.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.exceptions import ConflictError, PermissionDeniedError
from fees.exceptions import FeesValidationError, InvoiceNotPayableError
from fees.models import (
    INVOICE_PREFIX,
    RECEIPT_PREFIX,
    DocumentSequence,
    FeeInvoice,
    PaymentAttempt,
    PaymentAuditLog,
    ReconciliationRun,
)
from fees.state_machines import (
    DisputeStatus,
    InvoiceStatus,
    PaymentAttemptStatus,
    ReconciliationRunStatus,
    TriggerSource,
)
from fees.tests.factories import (
    FeeInvoiceFactory,
    PaymentAttemptFactory,
    PaymentDisputeFactory,
)


# =============================================================================
# FeeInvoice
# =============================================================================


@pytest.mark.django_db
class TestFeeInvoiceStatus:
    def test_new_invoice_is_pending_with_full_balance(self, invoice):
        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.balance_amount == Decimal("5000.00")
        assert invoice.paid_amount == Decimal("0.00")

    def test_late_fee_is_part_of_balance(self, student):
        invoice = FeeInvoiceFactory(
            student=student,
            total_amount=Decimal("5000.00"),
            late_fee_applied=Decimal("250.00"),
        )

        assert invoice.amount_due == Decimal("5250.00")
        assert invoice.balance_amount == Decimal("5250.00")

    def test_past_due_unpaid_invoice_is_overdue(self, student):
        invoice = FeeInvoiceFactory(
            student=student,
            issued_date=timezone.localdate() - timedelta(days=40),
            due_date=timezone.localdate() - timedelta(days=1),
        )

        assert invoice.status == InvoiceStatus.OVERDUE

    def test_partial_payment(self, invoice):
        invoice.record_payment(Decimal("3000.00"))
        invoice.save()

        invoice.refresh_from_db()
        assert invoice.status == InvoiceStatus.PARTIAL
        assert invoice.paid_amount == Decimal("3000.00")
        assert invoice.balance_amount == Decimal("2000.00")

    def test_partial_beats_overdue(self, student):
        invoice = FeeInvoiceFactory(
            student=student,
            issued_date=date(2026, 1, 1),
            due_date=date(2026, 1, 31),
        )

        invoice.record_payment(Decimal("100.00"))

        assert invoice.status == InvoiceStatus.PARTIAL

    def test_full_payment_marks_paid(self, invoice):
        invoice.record_payment(Decimal("5000.00"))
        invoice.save()

        invoice.refresh_from_db()
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.balance_amount == Decimal("0.00")
        assert invoice.is_paid

    def test_save_with_update_fields_persists_derived_fields(self, invoice):
        invoice.paid_amount = Decimal("5000.00")
        invoice.save(update_fields=["paid_amount"])

        stored = FeeInvoice.objects.get(pk=invoice.pk)
        assert stored.status == InvoiceStatus.PAID
        assert stored.balance_amount == Decimal("0.00")

    @pytest.mark.parametrize("amount", [Decimal("0.00"), Decimal("-1.00"), None])
    def test_record_payment_rejects_non_positive_amount(self, invoice, amount):
        with pytest.raises(FeesValidationError):
            invoice.record_payment(amount)

    def test_record_payment_on_cancelled_invoice_raises(self, invoice):
        invoice.cancel()

        with pytest.raises(InvoiceNotPayableError):
            invoice.record_payment(Decimal("10.00"))


@pytest.mark.django_db
class TestFeeInvoiceCancel:
    def test_cancel_is_sticky(self, invoice):
        invoice.cancel()
        invoice.save()

        invoice.refresh_from_db()
        assert invoice.status == InvoiceStatus.CANCELLED
        assert invoice.cancelled_at is not None

        # Recomputing never leaves Cancelled, even when the due date passed
        invoice.refresh_status(today=invoice.due_date + timedelta(days=1))
        assert invoice.status == InvoiceStatus.CANCELLED

    def test_cancel_twice_raises(self, invoice):
        invoice.cancel()

        with pytest.raises(ConflictError) as exc_info:
            invoice.cancel()

        assert exc_info.value.error_code == "INVOICE_ALREADY_CANCELLED"

    def test_cancel_with_payments_raises(self, invoice):
        invoice.record_payment(Decimal("100.00"))

        with pytest.raises(ConflictError) as exc_info:
            invoice.cancel()

        assert exc_info.value.error_code == "INVOICE_HAS_PAYMENTS"


@pytest.mark.django_db
class TestFeeInvoiceQuerySet:
    def test_visible_to_student_is_own_invoices_only(self, invoice, school):
        from authentication.tests.factories import StudentFactory

        classmate = StudentFactory(tenant=school)
        FeeInvoiceFactory(student=classmate)

        assert list(FeeInvoice.objects.visible_to(invoice.student)) == [invoice]

    def test_visible_to_staff_is_whole_school(self, invoice, accountant, other_school):
        from authentication.tests.factories import StudentFactory

        FeeInvoiceFactory(student=StudentFactory(tenant=other_school))

        assert list(FeeInvoice.objects.visible_to(accountant)) == [invoice]

    def test_invoice_number_unique_per_school(self, invoice):
        with pytest.raises(IntegrityError), transaction.atomic():
            FeeInvoiceFactory(student=invoice.student, invoice_number=invoice.invoice_number)

    def test_same_invoice_number_allowed_in_another_school(self, invoice, other_school):
        from authentication.tests.factories import StudentFactory

        other = FeeInvoiceFactory(
            student=StudentFactory(tenant=other_school),
            invoice_number=invoice.invoice_number,
        )

        assert other.invoice_number == invoice.invoice_number


# =============================================================================
# DocumentSequence
# =============================================================================


@pytest.mark.django_db
class TestDocumentSequence:
    def test_numbers_increment_per_school_prefix_and_year(self, school, other_school):
        assert DocumentSequence.next_number(school, INVOICE_PREFIX, 2026) == "INV-2026-00001"
        assert DocumentSequence.next_number(school, INVOICE_PREFIX, 2026) == "INV-2026-00002"
        assert DocumentSequence.next_number(school, INVOICE_PREFIX, 2027) == "INV-2027-00001"
        assert (
            DocumentSequence.next_number(school, RECEIPT_PREFIX, 2026)
            == "RCP-STU-2026-00001"
        )
        assert (
            DocumentSequence.next_number(other_school, INVOICE_PREFIX, 2026)
            == "INV-2026-00001"
        )

    def test_accepts_tenant_primary_key(self, school):
        DocumentSequence.next_value(school, INVOICE_PREFIX, 2026)

        assert DocumentSequence.next_value(school.pk, INVOICE_PREFIX, 2026) == 2


# =============================================================================
# PaymentAttempt
# =============================================================================


@pytest.mark.django_db
class TestPaymentAttempt:
    def test_defaults(self, initiated_attempt, invoice):
        assert initiated_attempt.status == PaymentAttemptStatus.INITIATED
        assert initiated_attempt.amount == invoice.balance_amount
        assert initiated_attempt.version == 1

    def test_save_increments_version(self, processing_attempt):
        processing_attempt.mark_pending()
        processing_attempt.save()

        assert processing_attempt.version == 2
        assert PaymentAttempt.objects.get(pk=processing_attempt.pk).version == 2

    def test_idempotency_key_format(self, invoice):
        key = PaymentAttempt.build_idempotency_key(invoice)

        prefix, invoice_hex, millis, suffix = key.split("_")
        assert prefix == "idmp"
        assert invoice_hex == invoice.pk.hex
        assert millis.isdigit()
        assert len(suffix) == 8

    def test_idempotency_keys_are_unique(self, invoice):
        keys = {PaymentAttempt.build_idempotency_key(invoice) for _ in range(50)}

        assert len(keys) == 50

    def test_duplicate_idempotency_key_rejected(self, initiated_attempt):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentAttemptFactory(
                invoice=initiated_attempt.invoice,
                idempotency_key=initiated_attempt.idempotency_key,
            )

    def test_in_flight_queryset(self, processing_attempt, failed_attempt):
        assert list(PaymentAttempt.objects.in_flight()) == [processing_attempt]


# =============================================================================
# PaymentDispute
# =============================================================================


@pytest.mark.django_db
class TestPaymentDispute:
    def test_one_active_dispute_per_invoice(self, invoice):
        PaymentDisputeFactory(invoice=invoice)

        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentDisputeFactory(invoice=invoice)

    def test_resolved_dispute_does_not_block_a_new_one(self, invoice):
        PaymentDisputeFactory(invoice=invoice, status=DisputeStatus.REJECTED)

        dispute = PaymentDisputeFactory(invoice=invoice)

        assert dispute.status == DisputeStatus.OPEN


# =============================================================================
# PaymentAuditLog
# =============================================================================


@pytest.mark.django_db
class TestPaymentAuditLog:
    def test_record_captures_transition(self, processing_attempt, student):
        entry = PaymentAuditLog.record(
            processing_attempt,
            previous_status=PaymentAttemptStatus.INITIATED,
            trigger_source=TriggerSource.STUDENT_PORTAL,
            note="Gateway checkout session created",
            actor=student,
        )

        assert entry.tenant_id == processing_attempt.tenant_id
        assert entry.previous_status == PaymentAttemptStatus.INITIATED
        assert entry.new_status == PaymentAttemptStatus.PROCESSING
        assert list(processing_attempt.audit_logs.all()) == [entry]

    def test_entries_cannot_be_modified(self, processing_attempt):
        entry = PaymentAuditLog.record(
            processing_attempt, None, TriggerSource.STUDENT_PORTAL
        )
        entry.note = "rewritten"

        with pytest.raises(PermissionDeniedError) as exc_info:
            entry.save()

        assert exc_info.value.error_code == "AUDIT_LOG_IMMUTABLE"

    def test_entries_cannot_be_deleted(self, processing_attempt):
        entry = PaymentAuditLog.record(
            processing_attempt, None, TriggerSource.STUDENT_PORTAL
        )

        with pytest.raises(PermissionDeniedError):
            entry.delete()

        assert PaymentAuditLog.objects.filter(pk=entry.pk).exists()


# =============================================================================
# ReconciliationRun
# =============================================================================


@pytest.mark.django_db
class TestReconciliationRun:
    def test_mark_completed_sets_counters_and_duration(self):
        run = ReconciliationRun.objects.create(
            started_at=timezone.now() - timedelta(seconds=5),
            auto_dispute_after_hours=24,
        )

        run.mark_completed(attempts_checked=3, healed=2, escalated=1)

        run.refresh_from_db()
        assert run.status == ReconciliationRunStatus.COMPLETED
        assert run.healed == 2
        assert run.duration_seconds >= 5

    def test_mark_failed_keeps_error(self):
        run = ReconciliationRun.objects.create(
            started_at=timezone.now(), auto_dispute_after_hours=24
        )

        run.mark_failed("redis went away")

        assert run.status == ReconciliationRunStatus.FAILED
        assert run.error_message == "redis went away"
