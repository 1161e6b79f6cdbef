"""
State enums for fee models.

These are Django TextChoices for database storage and admin integration.
PaymentAttempt and PaymentDispute are driven by django-fsm transitions;
FeeInvoice status is derived from its amounts on every save.

State Machines Overview:

FeeInvoice:
    pending → partial → paid           (derived from paid_amount)
    pending → overdue                  (derived from due_date)
    pending/partial/overdue → cancelled (explicit, sticky)

PaymentAttempt:
    initiated → processing → success
    initiated → processing → pending → success/failed
    initiated/processing/pending/failed → disputed → success/failed

PaymentDispute:
    open → under_review → approved/rejected
    open → approved/rejected
"""

from django.db import models


class InvoiceStatus(models.TextChoices):
    """
    Status of a FeeInvoice.

    PAID, PARTIAL, OVERDUE and PENDING are recomputed from the invoice
    amounts and due date whenever it is saved. CANCELLED is only reached
    through FeeInvoice.cancel() and is never recomputed away.
    """

    PENDING = "pending", "Pending"
    PARTIAL = "partial", "Partially Paid"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"
    CANCELLED = "cancelled", "Cancelled"


class PaymentAttemptStatus(models.TextChoices):
    """
    States for a PaymentAttempt against the payment gateway.

    Terminal states: SUCCESS, FAILED
    DISPUTED is frozen for gateway polling; only an admin resolving the
    dispute (or a gateway success callback) moves it on.

    State Flow:
        INITIATED → PROCESSING → SUCCESS
        INITIATED → PROCESSING → PENDING → SUCCESS / FAILED
        INITIATED → FAILED (gateway rejected the initiation)
        any non-terminal or FAILED → DISPUTED → SUCCESS / FAILED
    """

    INITIATED = "initiated", "Initiated"
    PROCESSING = "processing", "Processing"
    PENDING = "pending", "Pending"
    SUCCESS = "success", "Success"
    FAILED = "failed", "Failed"
    DISPUTED = "disputed", "Disputed"


ACTIVE_ATTEMPT_STATUSES = (
    PaymentAttemptStatus.PROCESSING,
    PaymentAttemptStatus.PENDING,
)

TERMINAL_ATTEMPT_STATUSES = (
    PaymentAttemptStatus.SUCCESS,
    PaymentAttemptStatus.FAILED,
)


class TriggerSource(models.TextChoices):
    """What caused a payment attempt state change (audit trail)."""

    STUDENT_PORTAL = "student_portal", "Student Portal"
    BACKGROUND_JOB = "background_job", "Background Job"
    ADMIN_MANUAL = "admin_manual", "Admin Manual"
    API_RETRY = "api_retry", "API Retry"
    GATEWAY_CALLBACK = "gateway_callback", "Gateway Callback"


class DisputeStatus(models.TextChoices):
    """
    States for a PaymentDispute.

    Terminal states: APPROVED, REJECTED

    State Flow:
        OPEN → UNDER_REVIEW → APPROVED / REJECTED
        OPEN → APPROVED / REJECTED
    """

    OPEN = "open", "Open"
    UNDER_REVIEW = "under_review", "Under Review"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


ACTIVE_DISPUTE_STATUSES = (DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW)


class DisputeAction(models.TextChoices):
    """Admin decision on a dispute."""

    APPROVE = "APPROVE", "Approve"
    REJECT = "REJECT", "Reject"


class ReconciliationRunStatus(models.TextChoices):
    """Status of a reconciliation job run."""

    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


__all__ = [
    "ACTIVE_ATTEMPT_STATUSES",
    "ACTIVE_DISPUTE_STATUSES",
    "DisputeAction",
    "DisputeStatus",
    "InvoiceStatus",
    "PaymentAttemptStatus",
    "ReconciliationRunStatus",
    "TERMINAL_ATTEMPT_STATUSES",
    "TriggerSource",
]
