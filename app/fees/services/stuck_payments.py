"""
Stuck payment detection.

A payment attempt is stuck when the gateway accepted it (PROCESSING) but
nothing has happened for longer than the threshold. The detector is a
read-only query; it is re-run on every admin poll and every feed refresh.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from django.conf import settings
from django.utils import timezone

from fees.models import PaymentAttempt


class StuckPaymentDetector:
    """Finds PROCESSING attempts older than the stuck threshold."""

    # Upper bound on threshold overrides, one year
    MAX_THRESHOLD_MINUTES = 366 * 24 * 60

    @staticmethod
    def default_threshold() -> timedelta:
        return timedelta(minutes=settings.FEES_STUCK_PAYMENT_THRESHOLD_MINUTES)

    @classmethod
    def threshold_from_minutes(cls, value) -> timedelta:
        """
        Parse a threshold override.

        Raises ValueError unless an integer between 1 and MAX_THRESHOLD_MINUTES.
        """
        minutes = int(value)
        if not 0 < minutes <= cls.MAX_THRESHOLD_MINUTES:
            raise ValueError(
                f"Threshold must be between 1 and {cls.MAX_THRESHOLD_MINUTES}, got {minutes}"
            )
        return timedelta(minutes=minutes)

    @classmethod
    def find_stuck_attempts(
        cls,
        tenant,
        threshold: timedelta | None = None,
        now: datetime | None = None,
    ):
        """
        PROCESSING attempts of a school created before now - threshold.

        The boundary is strict, so an attempt exactly threshold old is not
        yet stuck. Results are ordered oldest first.
        """
        threshold = threshold if threshold is not None else cls.default_threshold()
        cutoff = (now or timezone.now()) - threshold
        return (
            PaymentAttempt.objects.for_tenant(tenant)
            .processing_before(cutoff)
            .select_related("invoice", "student")
        )
