"""
Collection reporting.

Aggregates successful payment attempts per calendar day for a school. An
attempt counts on the day it reached SUCCESS (its last update), whether
the gateway confirmed it or an admin approved a dispute.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.db.models import Count, Sum
from django.db.models.functions import TruncDate

from fees.models import PaymentAttempt


@dataclass
class DailyCollection:
    date: date
    amount: Decimal
    count: int


@dataclass
class CollectionReport:
    """
    Daily collection totals for a date range.

    Attributes:
        days: One row per day with collections, newest first
        total_amount: Sum over all days
        total_count: Number of successful attempts over all days
    """

    start_date: date | None
    end_date: date | None
    days: list[DailyCollection] = field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")
    total_count: int = 0


class CollectionReportService:
    """Builds daily collection reports."""

    @classmethod
    def daily_collection(
        cls,
        tenant,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> CollectionReport:
        """Successful collections per day, newest day first."""
        queryset = (
            PaymentAttempt.objects.for_tenant(tenant)
            .successful()
            .annotate(day=TruncDate("updated_at"))
        )
        if start_date:
            queryset = queryset.filter(day__gte=start_date)
        if end_date:
            queryset = queryset.filter(day__lte=end_date)

        rows = (
            queryset.order_by()
            .values("day")
            .annotate(amount=Sum("amount"), count=Count("id"))
            .order_by("-day")
        )

        report = CollectionReport(start_date=start_date, end_date=end_date)
        for row in rows:
            report.days.append(
                DailyCollection(date=row["day"], amount=row["amount"], count=row["count"])
            )
            report.total_amount += row["amount"]
            report.total_count += row["count"]
        return report
