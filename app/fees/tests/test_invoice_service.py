"""
Tests for InvoiceService.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from authentication.tests.factories import StudentFactory
from fees.services import InvoiceService
from fees.state_machines import InvoiceStatus, PaymentAttemptStatus
from fees.tests.factories import FeeInvoiceFactory, PaymentAttemptFactory


@pytest.mark.django_db
class TestCreateInvoice:
    def test_creates_numbered_invoice(self, school, student, accountant):
        result = InvoiceService.create_invoice(
            tenant=school,
            student=student,
            total_amount=Decimal("5000.00"),
            due_date=date(2026, 7, 10),
            generated_by=accountant,
            billing_period_label="Term 2",
            issued_date=date(2026, 6, 1),
        )

        assert result.success
        invoice = result.data
        assert invoice.invoice_number == "INV-2026-00001"
        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.balance_amount == Decimal("5000.00")
        assert invoice.generated_by == accountant
        assert invoice.tenant == school

    def test_numbers_are_sequential(self, school, student):
        numbers = [
            InvoiceService.create_invoice(
                tenant=school,
                student=student,
                total_amount=Decimal("100.00"),
                due_date=date(2026, 7, 10),
                issued_date=date(2026, 6, 1),
            ).data.invoice_number
            for _ in range(3)
        ]

        assert numbers == ["INV-2026-00001", "INV-2026-00002", "INV-2026-00003"]

    def test_defaults_issue_date_to_today(self, school, student):
        result = InvoiceService.create_invoice(
            tenant=school,
            student=student,
            total_amount=Decimal("100.00"),
            due_date=timezone.localdate() + timedelta(days=10),
        )

        assert result.data.issued_date == timezone.localdate()
        assert result.data.invoice_number.startswith(f"INV-{timezone.localdate().year}-")

    def test_student_of_another_school_is_rejected(self, school, other_school):
        outsider = StudentFactory(tenant=other_school)

        result = InvoiceService.create_invoice(
            tenant=school,
            student=outsider,
            total_amount=Decimal("100.00"),
            due_date=date(2026, 7, 10),
        )

        assert not result.success
        assert result.error_code == "FEES_VALIDATION_ERROR"
        assert result.status_code == 400

    def test_staff_cannot_be_invoiced(self, school, accountant):
        result = InvoiceService.create_invoice(
            tenant=school,
            student=accountant,
            total_amount=Decimal("100.00"),
            due_date=date(2026, 7, 10),
        )

        assert not result.success

    @pytest.mark.parametrize("total", [Decimal("0.00"), Decimal("-10.00")])
    def test_total_must_be_positive(self, school, student, total):
        result = InvoiceService.create_invoice(
            tenant=school,
            student=student,
            total_amount=total,
            due_date=date(2026, 7, 10),
        )

        assert not result.success
        assert "total_amount" in result.details


@pytest.mark.django_db
class TestCancelInvoice:
    def test_cancels_unpaid_invoice(self, accountant, invoice):
        result = InvoiceService.cancel_invoice(accountant, invoice.id)

        assert result.success
        invoice.refresh_from_db()
        assert invoice.status == InvoiceStatus.CANCELLED

    def test_refused_while_payment_in_flight(self, accountant, processing_attempt):
        result = InvoiceService.cancel_invoice(accountant, processing_attempt.invoice_id)

        assert not result.success
        assert result.error_code == "PAYMENT_IN_PROGRESS"
        assert result.status_code == 409

    def test_refused_when_money_received(self, accountant, student):
        invoice = FeeInvoiceFactory(student=student, paid_amount=Decimal("100.00"))
        PaymentAttemptFactory(
            invoice=invoice,
            amount=Decimal("100.00"),
            status=PaymentAttemptStatus.SUCCESS,
        )

        result = InvoiceService.cancel_invoice(accountant, invoice.id)

        assert not result.success
        assert result.error_code == "INVOICE_HAS_PAYMENTS"

    def test_invoice_of_another_school_is_not_found(self, other_school, invoice):
        from authentication.tests.factories import AccountantFactory

        outsider = AccountantFactory(tenant=other_school)

        result = InvoiceService.cancel_invoice(outsider, invoice.id)

        assert not result.success
        assert result.error_code == "INVOICE_NOT_FOUND"
        assert result.status_code == 404
