"""
Reusable abstract model mixins.

Mixins:
    UUIDPrimaryKeyMixin: UUID as primary key

Usage:
    from core.model_mixins import UUIDPrimaryKeyMixin
    from core.models import BaseModel

    class PaymentDispute(UUIDPrimaryKeyMixin, BaseModel):
        ...
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Invoice, payment and dispute ids appear in URLs shared with students
    and in gateway callbacks, so they must not reveal record counts or be
    guessable across tenants.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID4)",
    )

    class Meta:
        abstract = True
