"""
Tenants app configuration.
"""

from django.apps import AppConfig


class TenantsConfig(AppConfig):
    """Configuration for the tenants application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "tenants"
    verbose_name = "Tenants"
