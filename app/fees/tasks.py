"""
Celery tasks for the fees app.

This module provides:
- run_reconciliation: Periodic reconciliation of in-flight payment attempts
  against the gateway (scheduled by celery-beat, see CELERY_BEAT_SCHEDULE)

Usage:
    from fees.tasks import run_reconciliation

    # Trigger a run outside the beat schedule
    run_reconciliation.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from fees.exceptions import ReconciliationLockError

logger = logging.getLogger(__name__)


@shared_task(bind=True, acks_late=True)
def run_reconciliation(
    self,
    auto_dispute_after_hours: int | None = None,
    max_attempts: int | None = None,
) -> dict:
    """
    Run one reconciliation pass.

    Overlapping runs are prevented by a Redis lock; a tick that finds the
    lock held is skipped rather than retried, the next tick picks up.

    Returns:
        Dict with the run status and its counters
    """
    # Import here to avoid circular imports
    from fees.services.reconciliation_service import (
        DEFAULT_MAX_ATTEMPTS,
        ReconciliationService,
    )

    logger.info("Starting reconciliation", extra={"task_id": self.request.id})

    try:
        result = ReconciliationService.run_reconciliation(
            auto_dispute_after_hours=auto_dispute_after_hours,
            max_attempts=max_attempts or DEFAULT_MAX_ATTEMPTS,
        )
    except ReconciliationLockError:
        logger.info(
            "Reconciliation skipped, previous run still in progress",
            extra={"task_id": self.request.id},
        )
        return {"status": "skipped", "reason": "locked"}

    if not result.success:
        logger.error(
            "Reconciliation failed",
            extra={"task_id": self.request.id, "error": result.error},
        )
        return {"status": "failed", "error": result.error}

    summary = result.data
    return {
        "status": "completed",
        "run_id": str(summary.run_id),
        "attempts_checked": summary.attempts_checked,
        "healed": summary.healed,
        "escalated": summary.escalated,
        "still_pending": summary.still_pending,
        "skipped": summary.skipped,
        "errors": summary.errors,
    }
