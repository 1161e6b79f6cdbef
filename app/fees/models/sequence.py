"""
DocumentSequence model - gap-free per-school counters for document numbers.

Invoice and receipt numbers are shown to parents and auditors, so they are
sequential within a school and a calendar year. The counter row is locked
with select_for_update while it is incremented, which keeps two concurrent
approvals from being handed the same receipt number.

Usage:
    from fees.models import DocumentSequence

    number = DocumentSequence.next_number(school, "RCP-STU", 2026)
    # "RCP-STU-2026-00001"
"""

from __future__ import annotations

from django.db import models, transaction
from django.db.models import F

from tenants.models import TenantOwnedModel

INVOICE_PREFIX = "INV"
RECEIPT_PREFIX = "RCP-STU"


class DocumentSequence(TenantOwnedModel):
    """
    Last number issued for one (school, prefix, year).

    Fields:
        prefix: Document prefix, e.g. INV or RCP-STU
        year: Calendar year the numbers belong to
        last_value: Last sequence number handed out
    """

    prefix = models.CharField(max_length=20)
    year = models.PositiveIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Document sequence"
        verbose_name_plural = "Document sequences"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "prefix", "year"],
                name="document_sequence_unique_per_tenant_year",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.prefix}-{self.year}: {self.last_value}"

    @classmethod
    def next_value(cls, tenant, prefix: str, year: int) -> int:
        """
        Increment and return the counter for (tenant, prefix, year).

        Accepts a Tenant instance or a tenant primary key.
        """
        with transaction.atomic():
            sequence, _ = cls.objects.select_for_update().get_or_create(
                tenant_id=getattr(tenant, "pk", tenant),
                prefix=prefix,
                year=year,
            )
            sequence.last_value = F("last_value") + 1
            sequence.save(update_fields=["last_value", "updated_at"])
            sequence.refresh_from_db(fields=["last_value"])
            return sequence.last_value

    @classmethod
    def next_number(cls, tenant, prefix: str, year: int) -> str:
        """Format the next number as {prefix}-{year}-{sequence:05d}."""
        value = cls.next_value(tenant, prefix, year)
        return f"{prefix}-{year}-{value:05d}"
