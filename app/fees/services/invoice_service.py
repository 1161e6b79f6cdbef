"""
Invoice service - fee cycle generation and cancellation.

Usage:
    from fees.services import InvoiceService

    result = InvoiceService.create_invoice(
        tenant=school,
        student=student,
        total_amount=Decimal("5000.00"),
        due_date=date(2026, 7, 10),
        generated_by=accountant,
    )
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult
from fees.exceptions import (
    FeesValidationError,
    InvoiceNotFoundError,
    PaymentInProgressError,
)
from fees.models import INVOICE_PREFIX, DocumentSequence, FeeInvoice

if TYPE_CHECKING:
    from authentication.models import User


class InvoiceService(BaseService):
    """Creates, cancels and locks fee invoices."""

    @classmethod
    def lock_invoice(cls, tenant_id, invoice_id, student=None) -> FeeInvoice:
        """
        Fetch an invoice with a row lock. Must run inside a transaction.

        A row from another school, or another student's invoice when
        student is given, is reported as not found.
        """
        queryset = FeeInvoice.objects.for_tenant(tenant_id).select_for_update()
        if student is not None:
            queryset = queryset.filter(student=student)
        invoice = queryset.filter(pk=invoice_id).first()
        if invoice is None:
            raise InvoiceNotFoundError(
                f"Invoice {invoice_id} not found",
                details={"invoice_id": str(invoice_id)},
            )
        return invoice

    @classmethod
    def create_invoice(
        cls,
        tenant,
        student: User,
        total_amount: Decimal,
        due_date: date,
        generated_by: User | None = None,
        billing_period_label: str = "",
        late_fee_applied: Decimal = Decimal("0.00"),
        remarks: str = "",
        issued_date: date | None = None,
    ) -> ServiceResult[FeeInvoice]:
        """
        Generate an invoice for one student.

        The invoice number is drawn from the school's INV sequence for the
        year of issue.
        """
        issued_date = issued_date or timezone.localdate()

        try:
            if student.tenant_id != tenant.pk or not student.is_student:
                raise FeesValidationError(
                    "Invoices can only be issued to students of this school",
                    details={"student_id": str(student.pk)},
                )
            if total_amount is None or total_amount <= 0:
                raise FeesValidationError(
                    "Invoice total must be positive",
                    details={"total_amount": str(total_amount)},
                )
            if late_fee_applied < 0:
                raise FeesValidationError("Late fee cannot be negative")

            with cls.atomic():
                invoice = FeeInvoice.objects.create(
                    tenant=tenant,
                    student=student,
                    invoice_number=DocumentSequence.next_number(
                        tenant, INVOICE_PREFIX, issued_date.year
                    ),
                    total_amount=total_amount,
                    late_fee_applied=late_fee_applied,
                    due_date=due_date,
                    issued_date=issued_date,
                    billing_period_label=billing_period_label,
                    remarks=remarks,
                    generated_by=generated_by,
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Invoice creation")

        cls.get_logger().info(
            "Invoice created",
            extra={
                "tenant_id": str(tenant.pk),
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "total_amount": str(invoice.total_amount),
            },
        )
        return ServiceResult.success(invoice)

    @classmethod
    def cancel_invoice(cls, user: User, invoice_id) -> ServiceResult[FeeInvoice]:
        """
        Cancel an invoice that has received no money.

        Refused while a payment attempt is still in flight.
        """
        try:
            with cls.atomic():
                invoice = cls.lock_invoice(user.tenant_id, invoice_id)
                if invoice.payment_attempts.in_flight().exists():
                    raise PaymentInProgressError(
                        "A payment for this invoice is still in progress",
                        details={"invoice_id": str(invoice.id)},
                    )
                invoice.cancel()
                invoice.save()
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Invoice cancellation")

        cls.get_logger().info(
            "Invoice cancelled",
            extra={
                "invoice_id": str(invoice.id),
                "cancelled_by": str(user.pk),
            },
        )
        return ServiceResult.success(invoice)
