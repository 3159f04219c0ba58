"""
State machine enums for payment models.
"""

from payments.state_machines.states import GatewayKind, PaymentOrderState

__all__ = [
    "GatewayKind",
    "PaymentOrderState",
]
