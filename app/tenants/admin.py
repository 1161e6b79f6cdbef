"""
Django admin configuration for tenants.
"""

from django.contrib import admin

from tenants.models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    """Admin configuration for schools."""

    list_display = ("name", "school_code", "subdomain", "currency", "is_active")
    list_filter = ("is_active", "currency")
    search_fields = ("name", "school_code", "subdomain")
    readonly_fields = ("id", "created_at", "updated_at")
