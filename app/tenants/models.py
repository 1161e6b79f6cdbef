"""
Tenant models.

A Tenant is one school. Users, invoices, payment attempts and disputes all
carry a tenant foreign key and are only ever queried within one tenant.

Models:
    Tenant: A school sharing the deployment
    TenantOwnedModel: Abstract base for rows owned by a tenant
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from tenants.managers import TenantScopedQuerySet


class Tenant(UUIDPrimaryKeyMixin, BaseModel):
    """
    A school using the platform.

    Fields:
        name: Display name of the school
        school_code: Short unique code, also used in document numbers
        subdomain: Optional subdomain the SPA is served from
        currency: ISO 4217 code used for all of the school's invoices
        is_active: Inactive schools cannot authenticate or open feeds
    """

    name = models.CharField(
        max_length=200,
        help_text="Display name of the school",
    )
    school_code = models.CharField(
        max_length=20,
        unique=True,
        help_text="Short unique school code (e.g. GHS01)",
    )
    subdomain = models.CharField(
        max_length=63,
        unique=True,
        null=True,
        blank=True,
        help_text="Subdomain the school's portal is served from",
    )
    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code for invoices",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether the school can use the platform",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "school"
        verbose_name_plural = "schools"

    def __str__(self) -> str:
        return f"{self.name} ({self.school_code})"


class TenantOwnedModel(UUIDPrimaryKeyMixin, BaseModel):
    """
    Abstract base for models owned by a single tenant.

    Provides the tenant foreign key and a default manager whose queryset
    supports for_tenant(). Subclasses with their own QuerySet should extend
    TenantScopedQuerySet.
    """

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.PROTECT,
        related_name="+",
        db_index=True,
        help_text="School that owns this record",
    )

    objects = TenantScopedQuerySet.as_manager()

    class Meta(BaseModel.Meta):
        abstract = True
