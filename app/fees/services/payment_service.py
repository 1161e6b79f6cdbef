"""
Payment service - initiating attempts and applying gateway results.

Every path that changes a PaymentAttempt's status goes through this module
(or the dispute service, which reuses credit_attempt), so each transition
is paired with a PaymentAuditLog row and every success credits the invoice
exactly once.

Two-phase initiation:
    1. In a transaction: lock the invoice, refuse if settled or already
       being paid, create the INITIATED attempt.
    2. Outside any transaction: create the gateway checkout session.
    3. In a transaction: move the attempt to PROCESSING (or FAILED if the
       gateway refused).

Usage:
    from fees.services import PaymentService

    result = PaymentService.initiate_payment(student, invoice_id)
    if result.success:
        redirect(result.data.checkout_url)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult
from fees.exceptions import (
    GatewayError,
    InvalidStateTransitionError,
    InvoiceAlreadyPaidError,
    InvoiceNotPayableError,
    PaymentAttemptNotFoundError,
    PaymentInProgressError,
)
from fees.gateways import (
    CreateSessionParams,
    GatewayPaymentStatus,
    GatewayStatusResult,
    PaymentGateway,
    get_gateway,
)
from fees.models import (
    RECEIPT_PREFIX,
    DocumentSequence,
    FeeInvoice,
    PaymentAttempt,
    PaymentAuditLog,
    Receipt,
)
from fees.services.invoice_service import InvoiceService
from fees.state_machines import (
    ACTIVE_ATTEMPT_STATUSES,
    PaymentAttemptStatus,
    TriggerSource,
)

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class PaymentInitiation:
    """
    Result of starting a payment.

    Attributes:
        attempt: The attempt, now PROCESSING
        checkout_url: Where the student completes the payment
    """

    attempt: PaymentAttempt
    checkout_url: str


class GatewayUpdateAction:
    """What apply_gateway_status did to an attempt."""

    CREDITED = "credited"
    FAILED = "failed"
    MARKED_PENDING = "marked_pending"
    ESCALATED = "escalated"
    UNCHANGED = "unchanged"


@dataclass
class GatewayUpdate:
    """
    Outcome of applying a gateway status to an attempt.

    Attributes:
        attempt: The attempt after the update
        previous_status: Status before the update
        action: One of GatewayUpdateAction
        receipt: Receipt issued when the attempt was credited
    """

    attempt: PaymentAttempt
    previous_status: str
    action: str
    receipt: Receipt | None = None

    @property
    def changed(self) -> bool:
        return self.action != GatewayUpdateAction.UNCHANGED


# =============================================================================
# Payment Service
# =============================================================================


class PaymentService(BaseService):
    """
    Payment attempt lifecycle.

    The gateway can be injected for tests with set_gateway().
    """

    _gateway: PaymentGateway | None = None

    @classmethod
    def get_gateway(cls) -> PaymentGateway:
        return cls._gateway or get_gateway()

    @classmethod
    def set_gateway(cls, gateway: PaymentGateway | None) -> None:
        """Set the gateway instance (for testing)."""
        cls._gateway = gateway

    # =========================================================================
    # Initiation
    # =========================================================================

    @classmethod
    def initiate_payment(
        cls,
        student: User,
        invoice_id,
        trigger_source: str = TriggerSource.STUDENT_PORTAL,
    ) -> ServiceResult[PaymentInitiation]:
        """Start a gateway payment for the invoice's outstanding balance."""
        log = cls.get_logger()

        try:
            with cls.atomic():
                invoice = InvoiceService.lock_invoice(
                    student.tenant_id, invoice_id, student=student
                )
                cls._ensure_payable(invoice)
                if invoice.payment_attempts.in_flight().exists():
                    raise PaymentInProgressError(
                        "A payment for this invoice is already in progress",
                        details={"invoice_id": str(invoice.id)},
                    )

                attempt = PaymentAttempt.objects.create(
                    tenant_id=invoice.tenant_id,
                    student=student,
                    invoice=invoice,
                    amount=invoice.balance_amount,
                    idempotency_key=PaymentAttempt.build_idempotency_key(invoice),
                    trigger_source=trigger_source,
                )
                PaymentAuditLog.record(
                    attempt,
                    previous_status=None,
                    trigger_source=trigger_source,
                    note="Payment attempt created",
                    actor=student,
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Payment initiation")

        gateway = cls.get_gateway()
        try:
            session = gateway.create_session(
                CreateSessionParams(
                    amount=attempt.amount,
                    currency=invoice.tenant.currency,
                    idempotency_key=attempt.idempotency_key,
                    reference=invoice.invoice_number,
                    metadata={"attempt_id": str(attempt.id)},
                )
            )
        except GatewayError as e:
            with cls.atomic():
                attempt = PaymentAttempt.objects.select_for_update().get(pk=attempt.pk)
                previous_status = attempt.status
                attempt.fail(reason=e.message)
                attempt.save()
                PaymentAuditLog.record(
                    attempt,
                    previous_status=previous_status,
                    trigger_source=trigger_source,
                    note=f"Gateway refused the payment: {e.message}",
                )
            return cls.handle_exception(e, "Gateway session creation", logging.ERROR)

        with cls.atomic():
            attempt = PaymentAttempt.objects.select_for_update().get(pk=attempt.pk)
            previous_status = attempt.status
            attempt.start_processing(session.gateway_ref_id, response=session.raw_response)
            attempt.save()
            PaymentAuditLog.record(
                attempt,
                previous_status=previous_status,
                trigger_source=trigger_source,
                note="Gateway checkout session created",
            )

        log.info(
            "Payment initiated",
            extra={
                "attempt_id": str(attempt.id),
                "invoice_id": str(invoice.id),
                "gateway": gateway.name,
                "gateway_ref_id": attempt.gateway_ref_id,
                "amount": str(attempt.amount),
            },
        )
        return ServiceResult.success(
            PaymentInitiation(attempt=attempt, checkout_url=session.checkout_url)
        )

    @staticmethod
    def _ensure_payable(invoice: FeeInvoice) -> None:
        if invoice.is_paid:
            raise InvoiceAlreadyPaidError(
                f"Invoice {invoice.invoice_number} is already paid",
                details={"invoice_id": str(invoice.id)},
            )
        if invoice.is_cancelled:
            raise InvoiceNotPayableError(
                f"Invoice {invoice.invoice_number} is cancelled",
                details={"invoice_id": str(invoice.id)},
            )

    # =========================================================================
    # Status Check
    # =========================================================================

    @classmethod
    def check_status(cls, user: User, attempt_id) -> ServiceResult[PaymentAttempt]:
        """
        Refresh an attempt from the gateway.

        Terminal and disputed attempts, and attempts the gateway never
        accepted, are returned without calling the gateway.
        """
        attempt = PaymentAttempt.objects.visible_to(user).filter(pk=attempt_id).first()
        if attempt is None:
            return ServiceResult.from_exception(
                PaymentAttemptNotFoundError(
                    f"Payment attempt {attempt_id} not found",
                    details={"attempt_id": str(attempt_id)},
                )
            )

        if attempt.status not in ACTIVE_ATTEMPT_STATUSES or not attempt.gateway_ref_id:
            return ServiceResult.success(attempt)

        try:
            status_result = cls.get_gateway().fetch_status(attempt.gateway_ref_id)
            update = cls.apply_gateway_status(
                attempt.pk, status_result, trigger_source=TriggerSource.API_RETRY
            )
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Payment status check")

        return ServiceResult.success(update.attempt)

    # =========================================================================
    # Applying Gateway Results
    # =========================================================================

    @classmethod
    def apply_gateway_status(
        cls,
        attempt_id,
        status_result: GatewayStatusResult,
        trigger_source: str,
    ) -> GatewayUpdate:
        """
        Apply a status reported by the gateway to an attempt.

        Only PROCESSING and PENDING attempts are updated; anything else
        (terminal, disputed, not yet accepted) is left as-is, which makes
        replayed callbacks harmless. A success whose amount differs from
        the attempt, or that arrives for a cancelled or already paid invoice,
        is escalated to DISPUTED for an admin instead of crediting.
        """
        with cls.atomic():
            attempt = (
                PaymentAttempt.objects.select_for_update().filter(pk=attempt_id).first()
            )
            if attempt is None:
                raise PaymentAttemptNotFoundError(
                    f"Payment attempt {attempt_id} not found",
                    details={"attempt_id": str(attempt_id)},
                )
            previous_status = attempt.status

            if previous_status not in ACTIVE_ATTEMPT_STATUSES:
                return GatewayUpdate(attempt, previous_status, GatewayUpdateAction.UNCHANGED)

            status = status_result.status
            if status == GatewayPaymentStatus.SUCCESS:
                invoice = FeeInvoice.objects.select_for_update().get(pk=attempt.invoice_id)
                problem = cls._success_problem(attempt, invoice, status_result.amount)
                if problem:
                    cls.run_transition(attempt, "dispute")
                    attempt.gateway_response = status_result.raw_response
                    attempt.save()
                    PaymentAuditLog.record(
                        attempt, previous_status, trigger_source, note=problem
                    )
                    logger.warning(
                        "Gateway success escalated to dispute",
                        extra={"attempt_id": str(attempt.id), "reason": problem},
                    )
                    return GatewayUpdate(
                        attempt, previous_status, GatewayUpdateAction.ESCALATED
                    )

                receipt = cls.credit_attempt(
                    attempt,
                    invoice,
                    amount=attempt.amount,
                    trigger_source=trigger_source,
                    note="Gateway confirmed payment",
                    response=status_result.raw_response,
                )
                return GatewayUpdate(
                    attempt, previous_status, GatewayUpdateAction.CREDITED, receipt
                )

            if status == GatewayPaymentStatus.FAILED:
                cls.run_transition(
                    attempt,
                    "fail",
                    reason="Gateway reported failure",
                    response=status_result.raw_response,
                )
                attempt.save()
                PaymentAuditLog.record(
                    attempt, previous_status, trigger_source, note="Gateway reported failure"
                )
                return GatewayUpdate(attempt, previous_status, GatewayUpdateAction.FAILED)

            if (
                status == GatewayPaymentStatus.PENDING
                and previous_status != PaymentAttemptStatus.PENDING
            ):
                cls.run_transition(attempt, "mark_pending", response=status_result.raw_response)
                attempt.save()
                PaymentAuditLog.record(
                    attempt, previous_status, trigger_source, note="Gateway reported pending"
                )
                return GatewayUpdate(
                    attempt, previous_status, GatewayUpdateAction.MARKED_PENDING
                )

        return GatewayUpdate(attempt, previous_status, GatewayUpdateAction.UNCHANGED)

    @staticmethod
    def _success_problem(
        attempt: PaymentAttempt,
        invoice: FeeInvoice,
        reported_amount: Decimal | None,
    ) -> str | None:
        if reported_amount is not None and reported_amount != attempt.amount:
            return (
                f"Gateway reported {reported_amount} for an attempt of {attempt.amount}"
            )
        if invoice.is_cancelled:
            return f"Payment received for cancelled invoice {invoice.invoice_number}"
        if invoice.is_paid:
            return f"Payment received for already paid invoice {invoice.invoice_number}"
        return None

    @classmethod
    def credit_attempt(
        cls,
        attempt: PaymentAttempt,
        invoice: FeeInvoice,
        amount: Decimal,
        trigger_source: str,
        note: str,
        actor=None,
        response: dict | None = None,
    ) -> Receipt:
        """
        Mark an attempt successful, credit its invoice and issue a receipt.

        The caller holds row locks on the attempt and the invoice inside
        its transaction.
        """
        previous_status = attempt.status
        cls.run_transition(attempt, "succeed", response=response)
        attempt.save()
        PaymentAuditLog.record(attempt, previous_status, trigger_source, note=note, actor=actor)

        invoice.record_payment(amount)
        invoice.save()

        issued_at = timezone.now()
        receipt = Receipt.objects.create(
            tenant_id=attempt.tenant_id,
            payment_attempt=attempt,
            invoice=invoice,
            student_id=attempt.student_id,
            receipt_number=DocumentSequence.next_number(
                attempt.tenant_id, RECEIPT_PREFIX, issued_at.year
            ),
            amount=amount,
            issued_at=issued_at,
        )

        cls.get_logger().info(
            "Payment credited",
            extra={
                "attempt_id": str(attempt.id),
                "invoice_id": str(invoice.id),
                "amount": str(amount),
                "invoice_status": invoice.status,
                "receipt_number": receipt.receipt_number,
                "trigger_source": trigger_source,
            },
        )
        return receipt

    @staticmethod
    def run_transition(attempt: PaymentAttempt, name: str, **kwargs) -> None:
        """Run an FSM transition, converting TransitionNotAllowed."""
        try:
            getattr(attempt, name)(**kwargs)
        except TransitionNotAllowed as e:
            raise InvalidStateTransitionError(
                f"Cannot {name} payment attempt {attempt.id} from {attempt.status}",
                details={"attempt_id": str(attempt.id), "current_state": attempt.status},
            ) from e
