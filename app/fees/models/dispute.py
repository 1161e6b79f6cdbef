"""
PaymentDispute model - a student's claim that money left their account.

When a gateway payment is stuck, or the student paid by bank transfer and
the invoice still shows a balance, they file a dispute with the transaction
reference and the amount. An admin approves it (crediting the invoice) or
rejects it. Either decision is final.

Usage:
    dispute = PaymentDispute.objects.create(
        tenant=school,
        student=student,
        invoice=invoice,
        transaction_reference="UPI123456789",
        amount=Decimal("5000.00"),
        student_note="Money debited on 3 July, invoice still unpaid",
    )

    dispute.approve(resolved_by=admin, note="Verified against bank statement")
    dispute.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from fees.state_machines import (
    ACTIVE_DISPUTE_STATUSES,
    DisputeAction,
    DisputeStatus,
)
from tenants.managers import TenantScopedQuerySet
from tenants.models import TenantOwnedModel


class PaymentDisputeQuerySet(TenantScopedQuerySet):
    """QuerySet helpers for disputes."""

    def visible_to(self, user) -> PaymentDisputeQuerySet:
        queryset = self.for_tenant(user.tenant_id)
        if user.is_student:
            queryset = queryset.filter(student=user)
        return queryset

    def active(self) -> PaymentDisputeQuerySet:
        """Disputes still waiting on an admin (OPEN or UNDER_REVIEW)."""
        return self.filter(status__in=ACTIVE_DISPUTE_STATUSES)


class PaymentDispute(TenantOwnedModel):
    """
    A student's claim against an invoice.

    State Flow:
        OPEN -> UNDER_REVIEW -> APPROVED / REJECTED
        OPEN -> APPROVED / REJECTED

    Fields:
        student: Student filing the claim
        invoice: Invoice the claim is against
        payment_attempt: Attempt the claim refers to, if any
        transaction_reference: Gateway or UPI reference quoted by the student
        bank_reference_number: Bank reference for offline transfers
        amount: Amount the student claims to have paid
        student_note: Student's explanation
        status: Current FSM state
        admin_note: Mandatory note recorded with the decision
        resolution_action: APPROVE or REJECT once decided
        resolved_by / resolved_at: Who decided and when
        version: Optimistic locking version
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_disputes",
        help_text="Student who filed the dispute",
    )

    invoice = models.ForeignKey(
        "fees.FeeInvoice",
        on_delete=models.PROTECT,
        related_name="disputes",
        help_text="Invoice being disputed",
    )

    payment_attempt = models.ForeignKey(
        "fees.PaymentAttempt",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="disputes",
        help_text="Payment attempt the dispute refers to",
    )

    # ==========================================================================
    # Claim
    # ==========================================================================

    transaction_reference = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Transaction reference quoted by the student",
    )

    bank_reference_number = models.CharField(
        max_length=100,
        blank=True,
        help_text="Bank reference number for offline transfers",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount the student claims to have paid",
    )

    student_note = models.TextField(
        help_text="Student's description of the problem",
    )

    # ==========================================================================
    # Decision
    # ==========================================================================

    status = FSMField(
        default=DisputeStatus.OPEN,
        choices=DisputeStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the dispute (managed by FSM)",
    )

    admin_note = models.TextField(
        blank=True,
        help_text="Note recorded with the admin decision",
    )

    resolution_action = models.CharField(
        max_length=10,
        choices=DisputeAction.choices,
        blank=True,
        help_text="Decision taken on the dispute",
    )

    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_disputes",
        help_text="Admin who resolved the dispute",
    )

    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the dispute was resolved",
    )

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    objects = PaymentDisputeQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment dispute"
        verbose_name_plural = "Payment disputes"
        indexes = [
            models.Index(fields=["tenant", "status"], name="dispute_tenant_status_idx"),
            models.Index(fields=["tenant", "student"], name="dispute_tenant_student_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_dispute_amount_positive",
            ),
            models.UniqueConstraint(
                fields=["invoice"],
                condition=models.Q(status__in=ACTIVE_DISPUTE_STATUSES),
                name="payment_dispute_one_active_per_invoice",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentDispute({self.id}, {self.status}, {self.amount})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment for optimistic locking."""
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = set(update_fields) | {"version", "updated_at"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    @property
    def is_resolved(self) -> bool:
        return self.status in (DisputeStatus.APPROVED, DisputeStatus.REJECTED)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=DisputeStatus.OPEN,
        target=DisputeStatus.UNDER_REVIEW,
    )
    def start_review(self):
        """
        An admin picked the dispute up.

        Transition: OPEN -> UNDER_REVIEW
        """
        pass

    @transition(
        field=status,
        source=[DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW],
        target=DisputeStatus.APPROVED,
    )
    def approve(self, resolved_by, note: str):
        """
        Accept the student's claim.

        Transition: OPEN/UNDER_REVIEW -> APPROVED

        Crediting the invoice is the resolution service's job; this only
        records the decision.
        """
        self._record_decision(DisputeAction.APPROVE, resolved_by, note)

    @transition(
        field=status,
        source=[DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW],
        target=DisputeStatus.REJECTED,
    )
    def reject(self, resolved_by, note: str):
        """
        Reject the student's claim.

        Transition: OPEN/UNDER_REVIEW -> REJECTED
        """
        self._record_decision(DisputeAction.REJECT, resolved_by, note)

    def _record_decision(self, action: str, resolved_by, note: str) -> None:
        self.resolution_action = action
        self.resolved_by = resolved_by
        self.admin_note = note
        self.resolved_at = timezone.now()
