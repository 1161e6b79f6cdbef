"""
Django app configuration for authentication.

Owns the custom User model (AUTH_USER_MODEL), so it must be migrated
after tenants and before fees.
"""

from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    """School users, roles and JWT login."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
    verbose_name = "Users & roles"
