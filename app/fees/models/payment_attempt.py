"""
PaymentAttempt model - one try at paying an invoice through the gateway.

A student may make several attempts against the same invoice. Each attempt
has an idempotency key generated on our side and, once the gateway accepts
it, the gateway's reference id. The status field is driven by django-fsm
transitions; every transition is mirrored into PaymentAuditLog by the
service that performs it.

Usage:
    from fees.models import PaymentAttempt
    from fees.state_machines import TriggerSource

    attempt = PaymentAttempt.objects.create(
        tenant=school,
        student=student,
        invoice=invoice,
        amount=invoice.balance_amount,
        idempotency_key=PaymentAttempt.build_idempotency_key(invoice),
        trigger_source=TriggerSource.STUDENT_PORTAL,
    )

    attempt.start_processing(gateway_ref_id="mock_txn_1a2b3c")
    attempt.save()
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime

from django.conf import settings
from django.db import models
from django.db.models import F

from django_fsm import FSMField, transition

from fees.state_machines import (
    ACTIVE_ATTEMPT_STATUSES,
    TERMINAL_ATTEMPT_STATUSES,
    PaymentAttemptStatus,
    TriggerSource,
)
from tenants.managers import TenantScopedQuerySet
from tenants.models import TenantOwnedModel


class PaymentAttemptQuerySet(TenantScopedQuerySet):
    """QuerySet helpers for payment attempts."""

    def visible_to(self, user) -> PaymentAttemptQuerySet:
        queryset = self.for_tenant(user.tenant_id)
        if user.is_student:
            queryset = queryset.filter(student=user)
        return queryset

    def in_flight(self) -> PaymentAttemptQuerySet:
        """Attempts still waiting on the gateway (PROCESSING or PENDING)."""
        return self.filter(status__in=ACTIVE_ATTEMPT_STATUSES)

    def processing_before(self, cutoff: datetime) -> PaymentAttemptQuerySet:
        """PROCESSING attempts created strictly before cutoff, oldest first."""
        return (
            self.filter(status=PaymentAttemptStatus.PROCESSING)
            .created_before(cutoff)
            .oldest()
        )

    def successful(self) -> PaymentAttemptQuerySet:
        return self.filter(status=PaymentAttemptStatus.SUCCESS)


class PaymentAttempt(TenantOwnedModel):
    """
    A single attempt to pay a fee invoice.

    State Flow:
        INITIATED -> PROCESSING -> SUCCESS
        INITIATED -> PROCESSING -> PENDING -> SUCCESS / FAILED
        INITIATED -> FAILED
        INITIATED/PROCESSING/PENDING/FAILED -> DISPUTED -> SUCCESS / FAILED

    Fields:
        student: Student paying
        invoice: Invoice being paid
        amount: Amount sent to the gateway
        idempotency_key: Our unique key for the attempt
        gateway_ref_id: Gateway transaction reference
        status: Current FSM state
        trigger_source: What created the attempt
        gateway_response: Last raw payload from the gateway
        failure_reason: Why the attempt failed
        version: Optimistic locking version
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_attempts",
        help_text="Student making the payment",
    )

    invoice = models.ForeignKey(
        "fees.FeeInvoice",
        on_delete=models.PROTECT,
        related_name="payment_attempts",
        help_text="Invoice being paid",
    )

    # ==========================================================================
    # Amount & References
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount sent to the gateway",
    )

    idempotency_key = models.CharField(
        max_length=100,
        unique=True,
        help_text="Unique key generated for this attempt",
    )

    gateway_ref_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Gateway transaction reference",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentAttemptStatus.INITIATED,
        choices=PaymentAttemptStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the attempt (managed by FSM)",
    )

    trigger_source = models.CharField(
        max_length=30,
        choices=TriggerSource.choices,
        default=TriggerSource.STUDENT_PORTAL,
        help_text="What created this attempt",
    )

    gateway_response = models.JSONField(
        default=dict,
        blank=True,
        help_text="Last raw response received from the gateway",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reason the attempt failed",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    objects = PaymentAttemptQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment attempt"
        verbose_name_plural = "Payment attempts"
        indexes = [
            models.Index(
                fields=["tenant", "status", "created_at"],
                name="pay_attempt_tenant_status_idx",
            ),
            models.Index(
                fields=["invoice", "status"], name="pay_attempt_invoice_status_idx"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_attempt_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentAttempt({self.id}, {self.status}, {self.amount})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        On update (not force_insert), atomically increments the version
        field to detect concurrent modifications.
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = set(update_fields) | {"version", "updated_at"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    @staticmethod
    def build_idempotency_key(invoice) -> str:
        """idmp_{invoice}_{epoch ms}_{random}, unique per attempt."""
        return (
            f"idmp_{invoice.pk.hex}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        )

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ATTEMPT_STATUSES

    @property
    def is_in_flight(self) -> bool:
        return self.status in ACTIVE_ATTEMPT_STATUSES

    @property
    def is_disputed(self) -> bool:
        return self.status == PaymentAttemptStatus.DISPUTED

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentAttemptStatus.INITIATED,
        target=PaymentAttemptStatus.PROCESSING,
    )
    def start_processing(self, gateway_ref_id: str, response: dict | None = None):
        """
        The gateway accepted the attempt.

        Transition: INITIATED -> PROCESSING
        """
        self.gateway_ref_id = gateway_ref_id
        if response is not None:
            self.gateway_response = response

    @transition(
        field=status,
        source=PaymentAttemptStatus.PROCESSING,
        target=PaymentAttemptStatus.PENDING,
    )
    def mark_pending(self, response: dict | None = None):
        """
        The gateway reports the payment as pending settlement.

        Transition: PROCESSING -> PENDING
        """
        if response is not None:
            self.gateway_response = response

    @transition(
        field=status,
        source=[
            PaymentAttemptStatus.PROCESSING,
            PaymentAttemptStatus.PENDING,
            PaymentAttemptStatus.DISPUTED,
        ],
        target=PaymentAttemptStatus.SUCCESS,
    )
    def succeed(self, response: dict | None = None):
        """
        Money was received.

        Transition: PROCESSING/PENDING/DISPUTED -> SUCCESS

        From DISPUTED this is an admin approving the student's claim.
        """
        self.failure_reason = None
        if response is not None:
            self.gateway_response = response

    @transition(
        field=status,
        source=[
            PaymentAttemptStatus.INITIATED,
            PaymentAttemptStatus.PROCESSING,
            PaymentAttemptStatus.PENDING,
            PaymentAttemptStatus.DISPUTED,
        ],
        target=PaymentAttemptStatus.FAILED,
    )
    def fail(self, reason: str | None = None, response: dict | None = None):
        """
        The payment did not go through.

        Transition: INITIATED/PROCESSING/PENDING/DISPUTED -> FAILED
        """
        self.failure_reason = reason
        if response is not None:
            self.gateway_response = response

    @transition(
        field=status,
        source=[
            PaymentAttemptStatus.INITIATED,
            PaymentAttemptStatus.PROCESSING,
            PaymentAttemptStatus.PENDING,
            PaymentAttemptStatus.FAILED,
        ],
        target=PaymentAttemptStatus.DISPUTED,
    )
    def dispute(self):
        """
        Freeze the attempt pending a dispute decision.

        Transition: INITIATED/PROCESSING/PENDING/FAILED -> DISPUTED

        Reached when a student files a dispute against the attempt or the
        reconciliation job gives up waiting on the gateway.
        """
        pass
