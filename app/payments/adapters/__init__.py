"""
Payment gateway adapters.

All gateway HTTP calls go through these adapters so that timeouts, error
translation and secret handling are consistent across gateways.

Usage:
    from payments.adapters import get_gateway_adapter, CreateOrderParams

    adapter = get_gateway_adapter(GatewayKind.MUTUAL_TLS)
    result = adapter.create_order(
        CreateOrderParams(order_id="MTG_K3J9X2QA_1700000000", amount=Decimal("25.00"), currency="GEL")
    )
"""

from __future__ import annotations

import httpx

from payments.adapters.base import (
    CreateOrderParams,
    CreateOrderResult,
    GatewayAdapter,
    OrderDetailsResult,
    build_redirect_url,
    scrub_secrets,
)
from payments.adapters.bearer_token import BearerTokenGatewayAdapter
from payments.adapters.mutual_tls import MutualTLSGatewayAdapter
from payments.adapters.status_mapping import is_known_status, map_gateway_status
from payments.exceptions import GatewayConfigurationError
from payments.state_machines import GatewayKind

ADAPTERS: dict[str, type[GatewayAdapter]] = {
    GatewayKind.BEARER_TOKEN: BearerTokenGatewayAdapter,
    GatewayKind.MUTUAL_TLS: MutualTLSGatewayAdapter,
}


def get_gateway_adapter(
    gateway_kind: str,
    transport: httpx.BaseTransport | None = None,
) -> GatewayAdapter:
    """
    Adapter for a gateway kind, configured from settings.PAYMENT_GATEWAYS.

    Raises:
        GatewayConfigurationError: Unknown gateway kind
    """
    adapter_class = ADAPTERS.get(gateway_kind)
    if adapter_class is None:
        raise GatewayConfigurationError(
            f"Unknown payment gateway '{gateway_kind}'",
            details={"gateway_kind": str(gateway_kind)},
        )
    return adapter_class.from_settings(transport=transport)


__all__ = [
    "ADAPTERS",
    "BearerTokenGatewayAdapter",
    "CreateOrderParams",
    "CreateOrderResult",
    "GatewayAdapter",
    "MutualTLSGatewayAdapter",
    "OrderDetailsResult",
    "build_redirect_url",
    "get_gateway_adapter",
    "is_known_status",
    "map_gateway_status",
    "scrub_secrets",
]
