"""
Payments app configuration.

This app provides payment processing infrastructure including:
- Gateway adapters (bearer token, mutual TLS)
- Settlement ledger and balance accounts
- Reconciliation of stale pending orders
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
