"""
State enums for payment models.

PaymentOrder States:
    pending → processing → completed
    pending/processing → completed | failed | cancelled

completed, failed and cancelled are terminal: once reached, no later
callback, poll or reconciliation pass may move the order again.
"""

from django.db import models


class PaymentOrderState(models.TextChoices):
    """
    Canonical status of a payment order.

    Every gateway's status vocabulary is mapped into these values by
    payments.adapters.status_mapping.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"

    @classmethod
    def terminal_states(cls) -> frozenset[str]:
        return frozenset({cls.COMPLETED, cls.FAILED, cls.CANCELLED})

    @classmethod
    def active_states(cls) -> frozenset[str]:
        return frozenset({cls.PENDING, cls.PROCESSING})

    @classmethod
    def is_terminal(cls, value: str) -> bool:
        return value in cls.terminal_states()


class GatewayKind(models.TextChoices):
    """
    Payment gateways an order can be placed with.

    BEARER_TOKEN: REST gateway authenticated with an API key
    MUTUAL_TLS: REST gateway authenticated with a client certificate
    """

    BEARER_TOKEN = "bearer_token", "Bearer Token Gateway"
    MUTUAL_TLS = "mutual_tls", "Mutual TLS Gateway"

    @property
    def order_id_prefix(self) -> str:
        return {
            GatewayKind.BEARER_TOKEN: "BTG",
            GatewayKind.MUTUAL_TLS: "MTG",
        }[self]
