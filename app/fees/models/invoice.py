"""
FeeInvoice model - what a student owes for one billing period.

The invoice is the single source of truth for how much has been paid.
paid_amount only grows through record_payment(), which is called when a
gateway payment succeeds or an admin approves a dispute. balance_amount and
status are derived from the amounts on every save.

Usage:
    invoice = FeeInvoice.objects.create(
        tenant=school,
        student=student,
        invoice_number="INV-2026-00001",
        total_amount=Decimal("5000.00"),
        due_date=date(2026, 7, 10),
    )

    invoice.record_payment(Decimal("3000.00"))
    invoice.save()
    invoice.status  # InvoiceStatus.PARTIAL
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.exceptions import ConflictError
from fees.exceptions import FeesValidationError, InvoiceNotPayableError
from fees.state_machines import InvoiceStatus
from tenants.managers import TenantScopedQuerySet
from tenants.models import TenantOwnedModel

ZERO = Decimal("0.00")


class FeeInvoiceQuerySet(TenantScopedQuerySet):
    """QuerySet helpers for invoices."""

    def visible_to(self, user) -> FeeInvoiceQuerySet:
        """Invoices of the user's school; students only see their own."""
        queryset = self.for_tenant(user.tenant_id)
        if user.is_student:
            queryset = queryset.filter(student=user)
        return queryset

    def outstanding(self) -> FeeInvoiceQuerySet:
        """Invoices that can still receive money."""
        return self.exclude(status__in=[InvoiceStatus.PAID, InvoiceStatus.CANCELLED])


class FeeInvoice(TenantOwnedModel):
    """
    A fee invoice issued to a student.

    Fields:
        invoice_number: INV-{year}-{sequence}, unique per school
        student: Student who owes the fee
        billing_period_label: Human label, e.g. "Term 1 2026-27"
        total_amount: Fee amount before late fees
        late_fee_applied: Late fee added after the due date
        paid_amount: Money received so far
        balance_amount: total_amount + late_fee_applied - paid_amount
        status: Derived status (see InvoiceStatus)
        issued_date / due_date: Billing dates
        generated_by: Staff member who generated the invoice
        cancelled_at: When the invoice was cancelled
    """

    # ==========================================================================
    # Identity & Relationships
    # ==========================================================================

    invoice_number = models.CharField(
        max_length=32,
        help_text="Invoice number, unique within the school",
    )

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="fee_invoices",
        help_text="Student billed by this invoice",
    )

    generated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="generated_invoices",
        help_text="Staff member who generated the invoice",
    )

    billing_period_label = models.CharField(
        max_length=100,
        blank=True,
        help_text="Billing period shown to the student",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Fee amount before late fees",
    )
    late_fee_applied = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        help_text="Late fee added to the invoice",
    )
    paid_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        help_text="Money received against this invoice",
    )
    balance_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        help_text="Outstanding balance (derived)",
    )

    # ==========================================================================
    # Status & Dates
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.PENDING,
        db_index=True,
        help_text="Derived from amounts and due date; cancelled is explicit",
    )
    issued_date = models.DateField(
        default=timezone.localdate,
        help_text="Date the invoice was issued",
    )
    due_date = models.DateField(
        help_text="Date after which the invoice is overdue",
    )
    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the invoice was cancelled",
    )
    remarks = models.TextField(blank=True)

    objects = FeeInvoiceQuerySet.as_manager()

    class Meta:
        ordering = ["-issued_date", "-created_at"]
        verbose_name = "Fee invoice"
        verbose_name_plural = "Fee invoices"
        indexes = [
            models.Index(fields=["tenant", "status"], name="fee_invoice_tenant_status_idx"),
            models.Index(fields=["tenant", "student"], name="fee_invoice_tenant_student_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "invoice_number"],
                name="fee_invoice_number_unique_per_tenant",
            ),
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="fee_invoice_total_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(paid_amount__gte=0),
                name="fee_invoice_paid_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"FeeInvoice({self.invoice_number}, {self.status}, {self.balance_amount})"

    def save(self, *args, **kwargs):
        """Recompute balance and derived status before writing."""
        self.refresh_status()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | {"balance_amount", "status"}
        super().save(*args, **kwargs)

    # ==========================================================================
    # Derived State
    # ==========================================================================

    @property
    def amount_due(self) -> Decimal:
        """Total the student owes including late fees."""
        return self.total_amount + self.late_fee_applied

    def refresh_status(self, today=None) -> None:
        """
        Recompute balance_amount and status from the amounts.

        Precedence: cancelled (sticky) > paid > partial > overdue > pending.
        """
        self.balance_amount = self.amount_due - self.paid_amount
        if self.status == InvoiceStatus.CANCELLED:
            return

        today = today or timezone.localdate()
        if self.balance_amount <= 0:
            self.status = InvoiceStatus.PAID
        elif self.paid_amount > 0:
            self.status = InvoiceStatus.PARTIAL
        elif self.due_date and self.due_date < today:
            self.status = InvoiceStatus.OVERDUE
        else:
            self.status = InvoiceStatus.PENDING

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED

    # ==========================================================================
    # Mutations
    # ==========================================================================

    def record_payment(self, amount: Decimal) -> None:
        """
        Credit money received against the invoice.

        Does not save. Raises if the invoice is cancelled or the amount is
        not positive. Paying past the balance is allowed (the balance goes
        negative and the invoice is Paid); the caller decides whether that
        is acceptable before crediting.
        """
        if self.is_cancelled:
            raise InvoiceNotPayableError(
                f"Invoice {self.invoice_number} is cancelled",
                details={"invoice_id": str(self.id)},
            )
        if amount is None or amount <= 0:
            raise FeesValidationError(
                "Payment amount must be positive",
                details={"amount": str(amount)},
            )
        self.paid_amount = self.paid_amount + amount
        self.refresh_status()

    def cancel(self) -> None:
        """
        Cancel an invoice that has received no money. Does not save.

        Raises:
            ConflictError: If the invoice is already cancelled or has payments
        """
        if self.is_cancelled:
            raise ConflictError(
                f"Invoice {self.invoice_number} is already cancelled",
                error_code="INVOICE_ALREADY_CANCELLED",
                details={"invoice_id": str(self.id)},
            )
        if self.paid_amount > 0:
            raise ConflictError(
                f"Invoice {self.invoice_number} has payments and cannot be cancelled",
                error_code="INVOICE_HAS_PAYMENTS",
                details={
                    "invoice_id": str(self.id),
                    "paid_amount": str(self.paid_amount),
                },
            )
        self.status = InvoiceStatus.CANCELLED
        self.cancelled_at = timezone.now()
