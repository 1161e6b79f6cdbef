"""
Factory Boy factories for tenant test data.

Usage:
    from tenants.tests.factories import TenantFactory

    school = TenantFactory()
    closed_school = TenantFactory(is_active=False)
"""

import factory

from tenants.models import Tenant


class TenantFactory(factory.django.DjangoModelFactory):
    """Factory for an active school billing in INR."""

    class Meta:
        model = Tenant
        django_get_or_create = ("school_code",)

    name = factory.Sequence(lambda n: f"Greenfield High School {n}")
    school_code = factory.Sequence(lambda n: f"GHS{n:03d}")
    currency = "INR"
    is_active = True
