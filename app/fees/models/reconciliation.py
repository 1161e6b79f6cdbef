"""
ReconciliationRun model - history of reconciliation job executions.

Each run of the reconciliation job records what it checked and what it
changed, so operators can see whether the gateway and our attempts agree
without reading worker logs.

Usage:
    run = ReconciliationRun.objects.create(
        started_at=timezone.now(),
        auto_dispute_after_hours=24,
    )

    # ... reconciliation processing ...

    run.mark_completed(attempts_checked=12, healed=3, escalated=1, still_pending=8)
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from fees.state_machines import ReconciliationRunStatus


class ReconciliationRun(UUIDPrimaryKeyMixin, BaseModel):
    """
    One execution of the payment reconciliation job.

    Runs are platform-wide: a single run walks the in-flight attempts of
    every school.

    Counters:
        attempts_checked: In-flight attempts examined
        healed: Attempts moved to SUCCESS or FAILED from gateway data
        escalated: Attempts moved to DISPUTED for waiting too long
        still_pending: Attempts the gateway still reports as in progress
        errors: Attempts that raised while being processed
    """

    started_at = models.DateTimeField(
        help_text="When this reconciliation run started",
    )
    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When this reconciliation run completed (or failed)",
    )

    auto_dispute_after_hours = models.PositiveIntegerField(
        help_text="Age after which in-flight attempts were escalated",
    )

    attempts_checked = models.PositiveIntegerField(default=0)
    healed = models.PositiveIntegerField(default=0)
    escalated = models.PositiveIntegerField(default=0)
    still_pending = models.PositiveIntegerField(default=0)
    errors = models.PositiveIntegerField(default=0)

    status = models.CharField(
        max_length=20,
        choices=ReconciliationRunStatus.choices,
        default=ReconciliationRunStatus.RUNNING,
        db_index=True,
        help_text="Current status of this reconciliation run",
    )
    error_message = models.TextField(
        blank=True,
        help_text="Error message if the run failed",
    )

    class Meta:
        indexes = [
            models.Index(fields=["status", "started_at"], name="recon_run_status_started_idx"),
        ]
        ordering = ["-started_at"]

    def __str__(self) -> str:
        return f"ReconciliationRun({self.id}, {self.status}, {self.started_at})"

    @property
    def duration_seconds(self) -> float | None:
        """Run duration in seconds, or None while running."""
        if self.completed_at and self.started_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def mark_completed(self, **counters: int) -> None:
        for name, value in counters.items():
            setattr(self, name, value)
        self.status = ReconciliationRunStatus.COMPLETED
        self.completed_at = timezone.now()
        self.save()

    def mark_failed(self, error_message: str) -> None:
        self.status = ReconciliationRunStatus.FAILED
        self.error_message = error_message
        self.completed_at = timezone.now()
        self.save()
