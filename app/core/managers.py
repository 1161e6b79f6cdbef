"""
Custom QuerySets and Managers shared by domain models.

Classes:
    BaseQuerySet: Time-window helpers for models built on BaseModel

Usage:
    from core.managers import BaseQuerySet

    class PaymentAttemptQuerySet(BaseQuerySet):
        def processing(self):
            return self.filter(status=PaymentAttemptStatus.PROCESSING)

    # Attempts older than an hour, oldest first
    PaymentAttempt.objects.created_before(cutoff).oldest()

Note:
    All methods assume the model has created_at and updated_at fields
    (provided by BaseModel).
"""

from __future__ import annotations

from datetime import datetime

from django.db import models


class BaseQuerySet(models.QuerySet):
    """
    Enhanced QuerySet with common time-based filters.

    Methods:
        created_before(moment): Filter records created strictly before moment
        oldest(): Order oldest first
        newest(): Order newest first
    """

    def created_before(self, moment: datetime) -> BaseQuerySet:
        """
        Filter records created strictly before a moment.

        The boundary is exclusive: a row created exactly at `moment` is not
        returned.
        """
        return self.filter(created_at__lt=moment)

    def oldest(self) -> BaseQuerySet:
        """Order by creation date ascending (oldest first)."""
        return self.order_by("created_at")

    def newest(self) -> BaseQuerySet:
        """Order by creation date descending (newest first)."""
        return self.order_by("-created_at")
