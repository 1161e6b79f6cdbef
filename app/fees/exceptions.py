"""
Fee-specific exceptions.

Each exception mixes FeesError with one of the core HTTP-mapped errors, so
a service can raise it deep inside a transaction and the API layer still
answers with the right status and a stable error code.

Exception Hierarchy:
    FeesError (base for the fee domain)
    ├── FeesValidationError (400)
    ├── InvoiceNotFoundError / PaymentAttemptNotFoundError /
    │   DisputeNotFoundError / ReceiptNotFoundError (404)
    ├── InvoiceNotPayableError (409)
    │   └── InvoiceAlreadyPaidError (409)
    ├── PaymentInProgressError (409)
    ├── PaymentAlreadyCreditedError (409)
    ├── DisputeAlreadyOpenError (409)
    ├── DisputeAlreadyResolvedError (409)
    ├── AmountMismatchError (409)
    ├── ReconciliationLockError (409)
    ├── WebhookSignatureError (400)
    └── GatewayError (502)

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from fees.exceptions import AmountMismatchError

    if attempt.amount != dispute.amount:
        raise AmountMismatchError(
            "Claimed amount does not match the payment attempt",
            details={"claimed": "3000.00", "attempt_amount": "5000.00"},
        )
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

# =============================================================================
# Fee Domain Exceptions
# =============================================================================


class FeesError(BaseApplicationError):
    """
    Base exception for all fee and payment operations.

    Subclasses take their HTTP status from the core error they mix in.
    """

    default_error_code: str = "FEES_ERROR"


class FeesValidationError(FeesError, ValidationError):
    """Raised when a fee operation receives invalid input."""

    default_error_code: str = "FEES_VALIDATION_ERROR"


class InvoiceNotFoundError(FeesError, NotFoundError):
    """Raised when an invoice does not exist in the caller's school."""

    default_error_code: str = "INVOICE_NOT_FOUND"


class PaymentAttemptNotFoundError(FeesError, NotFoundError):
    """Raised when a payment attempt cannot be found."""

    default_error_code: str = "PAYMENT_ATTEMPT_NOT_FOUND"


class DisputeNotFoundError(FeesError, NotFoundError):
    """Raised when a dispute does not exist in the caller's school."""

    default_error_code: str = "DISPUTE_NOT_FOUND"


class ReceiptNotFoundError(FeesError, NotFoundError):
    """Raised when a receipt cannot be found."""

    default_error_code: str = "RECEIPT_NOT_FOUND"


class InvoiceNotPayableError(FeesError, ConflictError):
    """
    Raised when an invoice cannot accept a payment or dispute.

    A cancelled invoice is never payable.
    """

    default_error_code: str = "INVOICE_NOT_PAYABLE"


class InvoiceAlreadyPaidError(InvoiceNotPayableError):
    """Raised when an invoice has already been settled in full."""

    default_error_code: str = "INVOICE_ALREADY_PAID"


class PaymentInProgressError(FeesError, ConflictError):
    """
    Raised when a new payment is started while another is still in flight.

    The student has to wait for the PROCESSING/PENDING attempt to settle
    (or be escalated) before paying again.
    """

    default_error_code: str = "PAYMENT_IN_PROGRESS"


class PaymentAlreadyCreditedError(FeesError, ConflictError):
    """
    Raised when a payment attempt has already credited its invoice.

    Prevents crediting the same money twice through a gateway success and
    an approved dispute.
    """

    default_error_code: str = "PAYMENT_ALREADY_CREDITED"


class DisputeAlreadyOpenError(FeesError, ConflictError):
    """Raised when an invoice already has an open or under-review dispute."""

    default_error_code: str = "DISPUTE_ALREADY_OPEN"


class DisputeAlreadyResolvedError(FeesError, ConflictError):
    """
    Raised when a finalized dispute is picked up for review or receives a
    different decision.

    Replaying the decision that was already taken is not an error; the
    stored resolution is returned instead.
    """

    default_error_code: str = "DISPUTE_ALREADY_RESOLVED"


class AmountMismatchError(FeesError, ConflictError):
    """
    Raised when a dispute's claimed amount differs from its payment attempt.

    Approval credits the invoice with the claimed amount, so the claim must
    agree with the attempt the gateway knows about.
    """

    default_error_code: str = "DISPUTE_AMOUNT_MISMATCH"


class ReconciliationLockError(FeesError, ConflictError):
    """Raised when another reconciliation run already holds the lock."""

    default_error_code: str = "RECONCILIATION_IN_PROGRESS"


class WebhookSignatureError(FeesError, ValidationError):
    """Raised when a gateway callback fails signature verification."""

    default_error_code: str = "INVALID_WEBHOOK_SIGNATURE"


class GatewayError(FeesError, ExternalServiceError):
    """
    Raised when the payment gateway cannot be reached or rejects a call.

    Details carry the gateway name; the raw provider response is logged
    but not returned to clients.
    """

    default_error_code: str = "GATEWAY_ERROR"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    The record changed between the caller's read and its update. The
    caller should reload and retry, or abort.

    Attributes:
        details: Contains pk, expected_version, and current_version
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired in time.

    Attributes:
        details: Contains key and timeout
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when an FSM transition is not allowed from the current state.

    Wraps django_fsm.TransitionNotAllowed so it carries an error code.

    Example:
        try:
            attempt.succeed()
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot mark attempt {attempt.id} successful",
                details={"current_state": attempt.status, "target_state": "success"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"
