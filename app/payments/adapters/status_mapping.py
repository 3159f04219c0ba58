"""
Translation of gateway status vocabularies into PaymentOrderState.

Lookups are case-insensitive and ignore surrounding whitespace. A value
that no table knows maps to PENDING, so an unexpected gateway answer can
delay an order but never complete it.

Usage:
    from payments.adapters.status_mapping import map_gateway_status

    map_gateway_status(GatewayKind.MUTUAL_TLS, " FullyPaid ")
    # PaymentOrderState.COMPLETED
"""

from __future__ import annotations

from payments.state_machines import GatewayKind, PaymentOrderState

COMMON_STATUS_MAP: dict[str, PaymentOrderState] = {
    "success": PaymentOrderState.COMPLETED,
    "succeeded": PaymentOrderState.COMPLETED,
    "completed": PaymentOrderState.COMPLETED,
    "paid": PaymentOrderState.COMPLETED,
    "approved": PaymentOrderState.COMPLETED,
    "fullypaid": PaymentOrderState.COMPLETED,
    "failed": PaymentOrderState.FAILED,
    "declined": PaymentOrderState.FAILED,
    "error": PaymentOrderState.FAILED,
    "rejected": PaymentOrderState.FAILED,
    "cancelled": PaymentOrderState.CANCELLED,
    "canceled": PaymentOrderState.CANCELLED,
    "pending": PaymentOrderState.PENDING,
    "created": PaymentOrderState.PENDING,
    "processing": PaymentOrderState.PROCESSING,
    "in_progress": PaymentOrderState.PROCESSING,
}

GATEWAY_STATUS_MAPS: dict[str, dict[str, PaymentOrderState]] = {
    GatewayKind.BEARER_TOKEN: {
        **COMMON_STATUS_MAP,
        "expired": PaymentOrderState.CANCELLED,
    },
    GatewayKind.MUTUAL_TLS: {
        **COMMON_STATUS_MAP,
        "preparing": PaymentOrderState.PENDING,
        "fully_paid": PaymentOrderState.COMPLETED,
        "refused": PaymentOrderState.FAILED,
        "closed": PaymentOrderState.CANCELLED,
    },
}


def normalize_status(raw_status) -> str:
    if raw_status is None:
        return ""
    return str(raw_status).strip().lower()


def map_gateway_status(gateway_kind: str, raw_status) -> PaymentOrderState:
    """Canonical state for a gateway's raw status string."""
    table = GATEWAY_STATUS_MAPS.get(gateway_kind, COMMON_STATUS_MAP)
    return table.get(normalize_status(raw_status), PaymentOrderState.PENDING)


def is_known_status(gateway_kind: str, raw_status) -> bool:
    """True when the gateway's table names raw_status; unknown words map to pending."""
    table = GATEWAY_STATUS_MAPS.get(gateway_kind, COMMON_STATUS_MAP)
    return normalize_status(raw_status) in table
