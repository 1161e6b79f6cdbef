"""
Reconciliation service - keeps payment attempts in step with the gateway.

A student who closes the browser after paying never sends us back to the
checkout callback, and gateways occasionally drop webhooks. The periodic
reconciliation run covers both:

1. Every PROCESSING/PENDING attempt with a gateway reference is polled and
   SUCCESS / FAILED / PENDING results are applied as if a callback arrived.
2. Attempts in flight for longer than FEES_AUTO_DISPUTE_AFTER_HOURS are
   escalated to DISPUTED without polling, so an admin settles them.
3. Attempts without a gateway reference are skipped.

An application error on one attempt is logged and counted without stopping
the run; anything else marks the run FAILED and propagates.

Usage:
    from fees.services import ReconciliationService

    result = ReconciliationService.run_reconciliation()
    if result.success:
        print(result.data.healed, result.data.escalated)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.utils import timezone

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult
from fees.exceptions import LockAcquisitionError, ReconciliationLockError
from fees.gateways import PaymentGateway
from fees.locks import DistributedLock
from fees.models import PaymentAttempt, PaymentAuditLog, ReconciliationRun
from fees.services.payment_service import GatewayUpdateAction, PaymentService
from fees.state_machines import ACTIVE_ATTEMPT_STATUSES, TriggerSource

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

RECONCILIATION_LOCK_KEY = "fees:reconciliation:run"

# Long enough to cover a slow gateway; the next beat tick is skipped meanwhile
RECONCILIATION_LOCK_TTL = 600

# Upper bound on attempts examined per run
DEFAULT_MAX_ATTEMPTS = 500


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class ReconciliationRunResult:
    """
    Summary of a reconciliation run.

    Attributes:
        run_id: ReconciliationRun row for this execution
        attempts_checked: In-flight attempts examined
        healed: Attempts moved to SUCCESS or FAILED
        escalated: Attempts moved to DISPUTED
        still_pending: Attempts the gateway still reports in progress
        skipped: Attempts without a gateway reference
        errors: Attempts that raised while being processed
    """

    run_id: uuid.UUID
    started_at: datetime
    completed_at: datetime
    attempts_checked: int = 0
    healed: int = 0
    escalated: int = 0
    still_pending: int = 0
    skipped: int = 0
    errors: int = 0


# =============================================================================
# Reconciliation Service
# =============================================================================


class ReconciliationService(BaseService):
    """
    Reconciles in-flight payment attempts against the gateway.

    Uses PaymentService's gateway unless one is injected with set_gateway().
    """

    _gateway: PaymentGateway | None = None

    @classmethod
    def get_gateway(cls) -> PaymentGateway:
        return cls._gateway or PaymentService.get_gateway()

    @classmethod
    def set_gateway(cls, gateway: PaymentGateway | None) -> None:
        """Set the gateway instance (for testing)."""
        cls._gateway = gateway

    @classmethod
    def run_reconciliation(
        cls,
        auto_dispute_after_hours: int | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> ServiceResult[ReconciliationRunResult]:
        """
        Run one reconciliation pass over every school.

        Raises:
            ReconciliationLockError: If another run is already in progress
        """
        if auto_dispute_after_hours is None:
            auto_dispute_after_hours = settings.FEES_AUTO_DISPUTE_AFTER_HOURS

        lock = DistributedLock(
            RECONCILIATION_LOCK_KEY,
            ttl=RECONCILIATION_LOCK_TTL,
            blocking=False,
        )
        try:
            lock.acquire()
        except LockAcquisitionError as e:
            cls.get_logger().warning(
                "Another reconciliation run is in progress",
                extra={"lock_key": RECONCILIATION_LOCK_KEY},
            )
            raise ReconciliationLockError(
                "Another reconciliation run is in progress",
                details={"lock_key": RECONCILIATION_LOCK_KEY},
            ) from e

        try:
            return cls._run_with_lock(auto_dispute_after_hours, max_attempts)
        finally:
            lock.release()

    @classmethod
    def _run_with_lock(
        cls,
        auto_dispute_after_hours: int,
        max_attempts: int,
    ) -> ServiceResult[ReconciliationRunResult]:
        log = cls.get_logger()
        started_at = timezone.now()
        escalate_before = started_at - timedelta(hours=auto_dispute_after_hours)
        run = ReconciliationRun.objects.create(
            started_at=started_at,
            auto_dispute_after_hours=auto_dispute_after_hours,
        )
        counters = {
            "attempts_checked": 0,
            "healed": 0,
            "escalated": 0,
            "still_pending": 0,
            "errors": 0,
        }
        skipped = 0

        try:
            attempt_ids = list(
                PaymentAttempt.objects.filter(status__in=ACTIVE_ATTEMPT_STATUSES)
                .oldest()
                .values_list("id", flat=True)[:max_attempts]
            )
            gateway = cls.get_gateway()

            for attempt_id in attempt_ids:
                counters["attempts_checked"] += 1
                try:
                    outcome = cls._reconcile_attempt(attempt_id, gateway, escalate_before)
                except BaseApplicationError as e:
                    counters["errors"] += 1
                    log.warning(
                        "Failed to reconcile payment attempt",
                        extra={
                            "run_id": str(run.id),
                            "attempt_id": str(attempt_id),
                            "error_code": e.error_code,
                            "error": e.message,
                        },
                    )
                    continue

                if outcome == "skipped":
                    skipped += 1
                elif outcome in (GatewayUpdateAction.CREDITED, GatewayUpdateAction.FAILED):
                    counters["healed"] += 1
                elif outcome == GatewayUpdateAction.ESCALATED:
                    counters["escalated"] += 1
                else:
                    counters["still_pending"] += 1

        except Exception as e:
            run.mark_failed(str(e))
            log.error(
                "Reconciliation run failed",
                extra={"run_id": str(run.id), "error": str(e)},
                exc_info=True,
            )
            raise

        run.mark_completed(**counters)
        log.info(
            "Reconciliation run completed",
            extra={
                "run_id": str(run.id),
                "skipped": skipped,
                "duration_seconds": run.duration_seconds,
                **counters,
            },
        )
        return ServiceResult.success(
            ReconciliationRunResult(
                run_id=run.id,
                started_at=started_at,
                completed_at=run.completed_at,
                skipped=skipped,
                **counters,
            )
        )

    @classmethod
    def _reconcile_attempt(
        cls,
        attempt_id,
        gateway: PaymentGateway,
        escalate_before: datetime,
    ) -> str:
        """Reconcile one attempt, returning a GatewayUpdateAction or "skipped"."""
        attempt = PaymentAttempt.objects.get(pk=attempt_id)

        if attempt.created_at < escalate_before:
            return cls._escalate(attempt_id)

        if not attempt.gateway_ref_id:
            return "skipped"

        status_result = gateway.fetch_status(attempt.gateway_ref_id)
        update = PaymentService.apply_gateway_status(
            attempt_id,
            status_result,
            trigger_source=TriggerSource.BACKGROUND_JOB,
        )
        return update.action

    @classmethod
    def _escalate(cls, attempt_id) -> str:
        with cls.atomic():
            attempt = PaymentAttempt.objects.select_for_update().get(pk=attempt_id)
            if attempt.status not in ACTIVE_ATTEMPT_STATUSES:
                return GatewayUpdateAction.UNCHANGED
            previous_status = attempt.status
            PaymentService.run_transition(attempt, "dispute")
            attempt.save()
            PaymentAuditLog.record(
                attempt,
                previous_status,
                TriggerSource.BACKGROUND_JOB,
                note="No gateway confirmation in time; escalated for manual review",
            )

        logger.info(
            "Payment attempt escalated to dispute",
            extra={"attempt_id": str(attempt_id), "previous_status": previous_status},
        )
        return GatewayUpdateAction.ESCALATED
