"""
Dispute service - student submission, admin review and resolution.

Resolution runs in a single transaction with row locks on the dispute,
the invoice and the reconciling payment attempt, so an approval either
credits the invoice, succeeds the attempt, issues the receipt and closes
the dispute together, or changes nothing.

Replaying a decision is safe: resolving an already-resolved dispute with
the same action returns the stored resolution without writing anything,
while the opposite action is refused with DISPUTE_ALREADY_RESOLVED.

Usage:
    from fees.services import DisputeService

    result = DisputeService.submit_dispute(
        student=student,
        invoice_id=invoice.id,
        transaction_reference="UPI123456789",
        amount=Decimal("5000.00"),
        student_note="Money debited, invoice still unpaid",
    )

    result = DisputeService.resolve_dispute(
        admin=admin,
        dispute_id=dispute.id,
        action=DisputeAction.APPROVE,
        note="Verified against bank statement",
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from core.exceptions import BaseApplicationError, PermissionDeniedError
from core.services import BaseService, ServiceResult
from fees import feed
from fees.exceptions import (
    AmountMismatchError,
    DisputeAlreadyOpenError,
    DisputeAlreadyResolvedError,
    DisputeNotFoundError,
    InvoiceAlreadyPaidError,
    InvoiceNotPayableError,
    PaymentAlreadyCreditedError,
    PaymentAttemptNotFoundError,
)
from fees.locks import check_version
from fees.models import FeeInvoice, PaymentAttempt, PaymentAuditLog, PaymentDispute, Receipt
from fees.services.invoice_service import InvoiceService
from fees.services.payment_service import PaymentService
from fees.state_machines import (
    DisputeAction,
    DisputeStatus,
    PaymentAttemptStatus,
    TriggerSource,
)

if TYPE_CHECKING:
    from authentication.models import User


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class DisputeResolution:
    """
    Result of resolving a dispute.

    Attributes:
        dispute: The resolved dispute
        invoice: The invoice after resolution
        payment_attempt: Reconciling attempt, if one was found
        receipt: Receipt issued on approval of an attempt
        replayed: True when the dispute was already resolved with this action
    """

    dispute: PaymentDispute
    invoice: FeeInvoice
    payment_attempt: PaymentAttempt | None = None
    receipt: Receipt | None = None
    replayed: bool = False


# =============================================================================
# Dispute Service
# =============================================================================


class DisputeService(BaseService):
    """Dispute submission and resolution."""

    # =========================================================================
    # Submission
    # =========================================================================

    @classmethod
    def submit_dispute(
        cls,
        student: User,
        invoice_id,
        transaction_reference: str,
        amount: Decimal,
        student_note: str,
        payment_attempt_id=None,
        bank_reference_number: str = "",
    ) -> ServiceResult[PaymentDispute]:
        """
        File a dispute against one of the student's unpaid invoices.

        When an attempt is given it must belong to the invoice; it is frozen
        in DISPUTED until the dispute is resolved.
        """
        validation = cls.validate_required(
            transaction_reference=transaction_reference,
            student_note=student_note,
        )
        if validation is not None:
            return validation
        if amount is None or amount <= 0:
            return ServiceResult.failure(
                "Disputed amount must be positive",
                error_code="VALIDATION_ERROR",
                errors={"amount": ["Ensure this value is greater than 0."]},
            )

        try:
            with cls.atomic():
                invoice = InvoiceService.lock_invoice(
                    student.tenant_id, invoice_id, student=student
                )
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
                if invoice.disputes.active().exists():
                    raise DisputeAlreadyOpenError(
                        "This invoice already has an open dispute",
                        details={"invoice_id": str(invoice.id)},
                    )

                attempt = None
                if payment_attempt_id is not None:
                    attempt = cls._freeze_attempt(student, invoice, payment_attempt_id)

                try:
                    with transaction.atomic():
                        dispute = PaymentDispute.objects.create(
                            tenant_id=invoice.tenant_id,
                            student=student,
                            invoice=invoice,
                            payment_attempt=attempt,
                            transaction_reference=transaction_reference.strip(),
                            bank_reference_number=bank_reference_number.strip(),
                            amount=amount,
                            student_note=student_note.strip(),
                        )
                except IntegrityError as e:
                    raise DisputeAlreadyOpenError(
                        "This invoice already has an open dispute",
                        details={"invoice_id": str(invoice.id)},
                    ) from e

                transaction.on_commit(
                    lambda: cls._publish(dispute, feed.EVENT_DISPUTE_SUBMITTED), robust=True
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Dispute submission")

        cls.get_logger().info(
            "Dispute submitted",
            extra={
                "dispute_id": str(dispute.id),
                "invoice_id": str(invoice.id),
                "student_id": str(student.pk),
                "amount": str(amount),
                "payment_attempt_id": str(attempt.id) if attempt else None,
            },
        )
        return ServiceResult.success(dispute)

    @classmethod
    def _freeze_attempt(cls, student: User, invoice: FeeInvoice, attempt_id) -> PaymentAttempt:
        attempt = (
            PaymentAttempt.objects.select_for_update()
            .filter(pk=attempt_id, invoice=invoice, student=student)
            .first()
        )
        if attempt is None:
            raise PaymentAttemptNotFoundError(
                f"Payment attempt {attempt_id} not found for this invoice",
                details={"attempt_id": str(attempt_id)},
            )
        if attempt.status == PaymentAttemptStatus.SUCCESS:
            raise PaymentAlreadyCreditedError(
                "This payment has already been credited to the invoice",
                details={"attempt_id": str(attempt.id)},
            )
        if attempt.status != PaymentAttemptStatus.DISPUTED:
            previous_status = attempt.status
            PaymentService.run_transition(attempt, "dispute")
            attempt.save()
            PaymentAuditLog.record(
                attempt,
                previous_status,
                TriggerSource.STUDENT_PORTAL,
                note="Student raised a dispute",
                actor=student,
            )
        return attempt

    # =========================================================================
    # Resolution
    # =========================================================================

    @classmethod
    def resolve_dispute(
        cls,
        admin: User,
        dispute_id,
        action: str,
        note: str,
        expected_version: int | None = None,
    ) -> ServiceResult[DisputeResolution]:
        """
        Approve or reject a dispute.

        Approve credits the invoice with the claimed amount and settles the
        reconciling attempt. Reject closes the dispute and fails a linked
        attempt; the invoice is untouched.

        Args:
            admin: School admin taking the decision
            dispute_id: Dispute to resolve
            action: DisputeAction.APPROVE or DisputeAction.REJECT
            note: Mandatory admin note
            expected_version: Version the admin saw, refused if stale
        """
        validation = cls.validate_required(note=note)
        if validation is not None:
            return validation
        if action not in DisputeAction.values:
            return ServiceResult.failure(
                f"Unknown action '{action}'",
                error_code="VALIDATION_ERROR",
                errors={"action": [f"Must be one of {', '.join(DisputeAction.values)}."]},
            )

        log = cls.get_logger()
        try:
            if not admin.is_school_admin:
                raise PermissionDeniedError(
                    "Only school admins can resolve disputes",
                    error_code="ADMIN_REQUIRED",
                )

            with cls.atomic():
                dispute = cls._lock_dispute(admin.tenant_id, dispute_id)
                if expected_version is not None:
                    check_version(PaymentDispute, dispute.pk, expected_version)

                if dispute.is_resolved:
                    return cls._replay(dispute, action)

                invoice = FeeInvoice.objects.select_for_update().get(pk=dispute.invoice_id)
                if action == DisputeAction.APPROVE:
                    resolution = cls._approve(admin, dispute, invoice, note.strip())
                else:
                    resolution = cls._reject(admin, dispute, invoice, note.strip())

                transaction.on_commit(
                    lambda: cls._publish(resolution.dispute, feed.EVENT_DISPUTE_RESOLVED),
                    robust=True,
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Dispute resolution")

        log.info(
            "Dispute resolved",
            extra={
                "dispute_id": str(dispute.id),
                "action": action,
                "resolved_by": str(admin.pk),
                "invoice_id": str(invoice.id),
                "invoice_status": invoice.status,
                "paid_amount": str(invoice.paid_amount),
            },
        )
        return ServiceResult.success(resolution)

    @classmethod
    def start_review(cls, admin: User, dispute_id) -> ServiceResult[PaymentDispute]:
        """
        Mark an open dispute as picked up by an admin (OPEN -> UNDER_REVIEW).

        A dispute already under review is returned unchanged. A resolved
        dispute is refused with DISPUTE_ALREADY_RESOLVED.
        """
        try:
            if not admin.is_school_admin:
                raise PermissionDeniedError(
                    "Only school admins can review disputes",
                    error_code="ADMIN_REQUIRED",
                )

            with cls.atomic():
                dispute = cls._lock_dispute(admin.tenant_id, dispute_id)
                if dispute.is_resolved:
                    raise DisputeAlreadyResolvedError(
                        f"Dispute {dispute.id} is already resolved",
                        details={
                            "dispute_id": str(dispute.id),
                            "resolution_action": dispute.resolution_action,
                        },
                    )
                if dispute.status == DisputeStatus.UNDER_REVIEW:
                    return ServiceResult.success(dispute)

                dispute.start_review()
                dispute.save()
                transaction.on_commit(
                    lambda: cls._publish(dispute, feed.EVENT_DISPUTE_UNDER_REVIEW),
                    robust=True,
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Dispute review")

        cls.get_logger().info(
            "Dispute under review",
            extra={"dispute_id": str(dispute.id), "reviewed_by": str(admin.pk)},
        )
        return ServiceResult.success(dispute)

    @classmethod
    def _lock_dispute(cls, tenant_id, dispute_id) -> PaymentDispute:
        dispute = (
            PaymentDispute.objects.for_tenant(tenant_id)
            .select_for_update()
            .filter(pk=dispute_id)
            .first()
        )
        if dispute is None:
            raise DisputeNotFoundError(
                f"Dispute {dispute_id} not found",
                details={"dispute_id": str(dispute_id)},
            )
        return dispute

    @classmethod
    def _replay(cls, dispute: PaymentDispute, action: str) -> ServiceResult[DisputeResolution]:
        if dispute.resolution_action != action:
            raise DisputeAlreadyResolvedError(
                f"Dispute {dispute.id} was already resolved with "
                f"'{dispute.resolution_action}'",
                details={
                    "dispute_id": str(dispute.id),
                    "resolution_action": dispute.resolution_action,
                    "requested_action": action,
                },
            )

        cls.get_logger().info(
            "Dispute resolution replayed",
            extra={"dispute_id": str(dispute.id), "action": action},
        )
        attempt = cls._find_reconciling_attempt(dispute, dispute.invoice, lock=False)
        receipt = Receipt.objects.filter(payment_attempt=attempt).first() if attempt else None
        return ServiceResult.success(
            DisputeResolution(
                dispute=dispute,
                invoice=dispute.invoice,
                payment_attempt=attempt,
                receipt=receipt if action == DisputeAction.APPROVE else None,
                replayed=True,
            )
        )

    @staticmethod
    def _find_reconciling_attempt(
        dispute: PaymentDispute,
        invoice: FeeInvoice,
        lock: bool = True,
    ) -> PaymentAttempt | None:
        """
        The attempt a dispute settles: the linked one, or else the invoice's
        attempt whose gateway reference matches the quoted transaction
        reference.
        """
        queryset = PaymentAttempt.objects.all()
        if lock:
            queryset = queryset.select_for_update()
        if dispute.payment_attempt_id:
            return queryset.filter(pk=dispute.payment_attempt_id).first()
        return (
            queryset.filter(
                invoice=invoice,
                gateway_ref_id=dispute.transaction_reference,
            )
            .order_by("-created_at")
            .first()
        )

    @classmethod
    def _approve(
        cls,
        admin: User,
        dispute: PaymentDispute,
        invoice: FeeInvoice,
        note: str,
    ) -> DisputeResolution:
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

        attempt = cls._find_reconciling_attempt(dispute, invoice)
        receipt = None
        if attempt is not None:
            if attempt.status == PaymentAttemptStatus.SUCCESS:
                raise PaymentAlreadyCreditedError(
                    "The disputed payment has already been credited",
                    details={"attempt_id": str(attempt.id)},
                )
            if attempt.amount != dispute.amount:
                raise AmountMismatchError(
                    "Claimed amount does not match the payment attempt",
                    details={
                        "claimed": str(dispute.amount),
                        "attempt_amount": str(attempt.amount),
                        "attempt_id": str(attempt.id),
                    },
                )
            if attempt.status != PaymentAttemptStatus.DISPUTED:
                previous_status = attempt.status
                PaymentService.run_transition(attempt, "dispute")
                attempt.save()
                PaymentAuditLog.record(
                    attempt,
                    previous_status,
                    TriggerSource.ADMIN_MANUAL,
                    note=f"Matched to dispute {dispute.id}",
                    actor=admin,
                )
            receipt = PaymentService.credit_attempt(
                attempt,
                invoice,
                amount=dispute.amount,
                trigger_source=TriggerSource.ADMIN_MANUAL,
                note=f"Dispute {dispute.id} approved: {note}",
                actor=admin,
            )
        else:
            cls._freeze_in_flight_attempts(admin, dispute, invoice)
            invoice.record_payment(dispute.amount)
            invoice.save()

        dispute.approve(resolved_by=admin, note=note)
        dispute.save()
        return DisputeResolution(
            dispute=dispute,
            invoice=invoice,
            payment_attempt=attempt,
            receipt=receipt,
        )

    @staticmethod
    def _freeze_in_flight_attempts(
        admin: User,
        dispute: PaymentDispute,
        invoice: FeeInvoice,
    ) -> None:
        """
        Move the invoice's attempts still waiting on the gateway to DISPUTED.

        Used when an approval credits the invoice without a matching
        attempt. A DISPUTED attempt is never credited by a later gateway
        report, so the invoice is paid once.
        """
        attempts = PaymentAttempt.objects.select_for_update().filter(invoice=invoice).in_flight()
        for attempt in attempts:
            previous_status = attempt.status
            PaymentService.run_transition(attempt, "dispute")
            attempt.save()
            PaymentAuditLog.record(
                attempt,
                previous_status,
                TriggerSource.ADMIN_MANUAL,
                note=f"Invoice credited by dispute {dispute.id}",
                actor=admin,
            )

    @classmethod
    def _reject(
        cls,
        admin: User,
        dispute: PaymentDispute,
        invoice: FeeInvoice,
        note: str,
    ) -> DisputeResolution:
        attempt = None
        if dispute.payment_attempt_id:
            attempt = PaymentAttempt.objects.select_for_update().get(
                pk=dispute.payment_attempt_id
            )
            if attempt.status not in (
                PaymentAttemptStatus.SUCCESS,
                PaymentAttemptStatus.FAILED,
            ):
                previous_status = attempt.status
                PaymentService.run_transition(
                    attempt, "fail", reason=f"Dispute {dispute.id} rejected"
                )
                attempt.save()
                PaymentAuditLog.record(
                    attempt,
                    previous_status,
                    TriggerSource.ADMIN_MANUAL,
                    note=f"Dispute {dispute.id} rejected: {note}",
                    actor=admin,
                )

        dispute.reject(resolved_by=admin, note=note)
        dispute.save()
        return DisputeResolution(dispute=dispute, invoice=invoice, payment_attempt=attempt)

    @staticmethod
    def _publish(dispute: PaymentDispute, event: str) -> None:
        feed.publish_dispute_event(dispute, event)
