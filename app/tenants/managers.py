"""
Tenant-scoped QuerySets.

Every fee row belongs to exactly one school. Services and views never query
these models without going through for_tenant(), so a row from another
school behaves exactly like a missing row.

Usage:
    from tenants.managers import TenantScopedQuerySet

    class FeeInvoiceQuerySet(TenantScopedQuerySet):
        def unpaid(self):
            ...

    FeeInvoice.objects.for_tenant(request.user.tenant).unpaid()
"""

from __future__ import annotations

from core.managers import BaseQuerySet


class TenantScopedQuerySet(BaseQuerySet):
    """QuerySet for models with a `tenant` foreign key."""

    def for_tenant(self, tenant) -> TenantScopedQuerySet:
        """
        Restrict to rows owned by a tenant.

        Accepts a Tenant instance or a tenant primary key. A None tenant
        (platform superuser without a school) matches nothing.
        """
        if tenant is None:
            return self.none()
        tenant_id = getattr(tenant, "pk", tenant)
        return self.filter(tenant_id=tenant_id)
