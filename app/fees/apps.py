"""
Fees app configuration.

This app provides the school fee payment workflow:
- Invoices and document numbering
- Payment attempts against the gateway, with an audit trail
- Student disputes and admin resolution
- Periodic reconciliation and the live admin dispute feed
"""

from django.apps import AppConfig


class FeesConfig(AppConfig):
    """Configuration for the fees application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "fees"
    verbose_name = "School Fees"
