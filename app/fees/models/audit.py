"""
Audit and receipt models.

PaymentAuditLog is the append-only history of every PaymentAttempt status
change. Rows are written by the services that drive transitions and are
never updated or deleted; finance staff reconcile against it.

Receipt is issued exactly once for each attempt that reaches SUCCESS,
whether the money was confirmed by the gateway or by an approved dispute.

Usage:
    from fees.models import PaymentAuditLog, Receipt

    PaymentAuditLog.record(
        attempt,
        previous_status=PaymentAttemptStatus.PROCESSING,
        trigger_source=TriggerSource.BACKGROUND_JOB,
        note="Gateway confirmed payment",
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.exceptions import PermissionDeniedError
from fees.state_machines import PaymentAttemptStatus, TriggerSource
from tenants.managers import TenantScopedQuerySet
from tenants.models import TenantOwnedModel


class PaymentAuditLog(TenantOwnedModel):
    """
    Immutable record of a payment attempt status change.

    Fields:
        payment_attempt: Attempt whose status changed
        previous_status: Status before the change (None on creation)
        new_status: Status after the change
        trigger_source: What caused the change
        actor: User who caused it, when a person did
        note: Free-text context
    """

    payment_attempt = models.ForeignKey(
        "fees.PaymentAttempt",
        on_delete=models.PROTECT,
        related_name="audit_logs",
    )
    previous_status = models.CharField(
        max_length=20,
        choices=PaymentAttemptStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(
        max_length=20,
        choices=PaymentAttemptStatus.choices,
    )
    trigger_source = models.CharField(
        max_length=30,
        choices=TriggerSource.choices,
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    note = models.TextField(blank=True)

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Payment audit log"
        verbose_name_plural = "Payment audit logs"
        indexes = [
            models.Index(
                fields=["payment_attempt", "created_at"],
                name="audit_log_attempt_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"PaymentAuditLog({self.payment_attempt_id}: "
            f"{self.previous_status} -> {self.new_status})"
        )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PermissionDeniedError(
                "Payment audit log entries cannot be modified",
                error_code="AUDIT_LOG_IMMUTABLE",
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionDeniedError(
            "Payment audit log entries cannot be deleted",
            error_code="AUDIT_LOG_IMMUTABLE",
        )

    @classmethod
    def record(
        cls,
        attempt,
        previous_status: str | None,
        trigger_source: str,
        note: str = "",
        actor=None,
    ) -> PaymentAuditLog:
        """Append an entry for the attempt's current status."""
        return cls.objects.create(
            tenant_id=attempt.tenant_id,
            payment_attempt=attempt,
            previous_status=previous_status,
            new_status=attempt.status,
            trigger_source=trigger_source,
            actor=actor,
            note=note,
        )


class ReceiptQuerySet(TenantScopedQuerySet):
    def visible_to(self, user) -> ReceiptQuerySet:
        queryset = self.for_tenant(user.tenant_id)
        if user.is_student:
            queryset = queryset.filter(student=user)
        return queryset


class Receipt(TenantOwnedModel):
    """
    Proof of payment for a successful attempt.

    Fields:
        payment_attempt: The successful attempt (one receipt each)
        invoice: Invoice credited
        student: Student who paid
        receipt_number: RCP-STU-{year}-{sequence}, unique per school
        amount: Amount credited
        issued_at: When the receipt was issued
    """

    payment_attempt = models.OneToOneField(
        "fees.PaymentAttempt",
        on_delete=models.PROTECT,
        related_name="receipt",
    )
    invoice = models.ForeignKey(
        "fees.FeeInvoice",
        on_delete=models.PROTECT,
        related_name="receipts",
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="fee_receipts",
    )
    receipt_number = models.CharField(max_length=32)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    issued_at = models.DateTimeField(default=timezone.now)

    objects = ReceiptQuerySet.as_manager()

    class Meta:
        ordering = ["-issued_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "receipt_number"],
                name="receipt_number_unique_per_tenant",
            ),
        ]

    def __str__(self) -> str:
        return f"Receipt({self.receipt_number}, {self.amount})"
