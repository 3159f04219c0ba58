"""
Gateway adapter contract and shared HTTP plumbing.

Every payment gateway is reached through a GatewayAdapter subclass exposing
two operations:

    create_order(CreateOrderParams) -> CreateOrderResult
    get_order_details(bank_order_id, bank_order_secret) -> OrderDetailsResult

Adapters only perform network I/O. They never touch the database; the
orchestrator and status resolver persist what the adapters return.

Error translation (see payments.exceptions):
    - connection, TLS or timeout failure -> GatewayTransportError
    - non-2xx status or non-JSON body    -> GatewayProtocolError
    - JSON body missing required fields  -> GatewayInvalidResponseError
    - unusable configuration             -> GatewayConfigurationError (before any I/O)
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode, urlsplit

import httpx
from django.conf import settings

from payments.exceptions import (
    GatewayConfigurationError,
    GatewayProtocolError,
    GatewayTransportError,
)
from payments.ledger.types import quantize_amount

if TYPE_CHECKING:
    from payments.models import PaymentOrder
    from payments.state_machines import GatewayKind

# Keys whose values are credentials and must not reach logs or stored payloads
SECRET_KEYS = frozenset({"password", "secret", "bank_order_secret", "access_token", "token"})

MAX_LOGGED_BODY = 1000

DEFAULT_TIMEOUT = 30.0


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateOrderParams:
    """
    Parameters for creating an order at the gateway.

    Attributes:
        order_id: Platform order id, echoed back by callbacks
        amount: Gross amount in major units
        currency: ISO 4217 code
        description: Shown to the payer on the hosted page
        return_url: Where the hosted page sends the payer afterwards
        consumer_device: Browser details some gateways require for 3-D Secure
    """

    order_id: str
    amount: Decimal
    currency: str
    description: str = ""
    return_url: str = ""
    language: str = "en"
    consumer_device: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        self.amount = quantize_amount(self.amount)
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if len(self.currency) != 3:
            raise ValueError("currency must be a 3-letter ISO code")
        self.currency = self.currency.upper()
        if not self.order_id:
            raise ValueError("order_id is required")


@dataclass
class CreateOrderResult:
    """
    Gateway answer to order creation.

    bank_order_secret and redirect_url (which may embed the secret) are kept
    out of repr() so the result can be logged safely.
    """

    bank_order_id: str
    bank_order_secret: str | None = field(default=None, repr=False)
    payment_page_url: str | None = None
    redirect_url: str | None = field(default=None, repr=False)
    raw_response: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class OrderDetailsResult:
    """Live order status as reported by the gateway."""

    bank_order_id: str
    raw_status: str
    raw_payload: dict[str, Any] = field(default_factory=dict, repr=False)


# =============================================================================
# Helpers
# =============================================================================


def scrub_secrets(payload: Any) -> Any:
    """Copy of a JSON payload with credential values masked."""
    if isinstance(payload, dict):
        return {
            key: "***" if str(key).lower() in SECRET_KEYS else scrub_secrets(value)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [scrub_secrets(item) for item in payload]
    return payload


def build_redirect_url(
    payment_page_url: str,
    bank_order_id: str,
    bank_order_secret: str | None = None,
) -> str:
    """
    Hosted payment page URL with the order id (and secret) as query parameters.

    Example:
        build_redirect_url("https://hpp.bank.ge/flex", "123", "s3cr3t")
        # "https://hpp.bank.ge/flex?id=123&password=s3cr3t"
    """
    query = {"id": bank_order_id}
    if bank_order_secret:
        query["password"] = bank_order_secret
    separator = "&" if "?" in payment_page_url else "?"
    return f"{payment_page_url}{separator}{urlencode(query)}"


# =============================================================================
# Adapter Base
# =============================================================================


class GatewayAdapter(ABC):
    """
    Base class for payment gateway adapters.

    Args:
        config: The gateway's entry from settings.PAYMENT_GATEWAYS
        transport: Optional httpx transport (tests inject httpx.MockTransport)
    """

    kind: GatewayKind
    # Whether status queries need the secret issued at order creation
    requires_order_secret: bool = True

    def __init__(
        self,
        config: dict[str, Any],
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = dict(config)
        self.timeout = float(self.config.get("timeout") or DEFAULT_TIMEOUT)
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: httpx.BaseTransport | None = None) -> GatewayAdapter:
        return cls(settings.PAYMENT_GATEWAYS.get(cls.kind.value, {}), transport=transport)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Contract
    # =========================================================================

    @abstractmethod
    def create_order(self, params: CreateOrderParams) -> CreateOrderResult:
        """Register the order with the gateway."""

    @abstractmethod
    def get_order_details(
        self,
        bank_order_id: str,
        bank_order_secret: str | None = None,
    ) -> OrderDetailsResult:
        """Fetch the gateway's current view of an order."""

    def can_query(self, order: PaymentOrder) -> bool:
        """Whether a live status query is possible for this order."""
        if not order.bank_order_id:
            return False
        return bool(order.bank_order_secret) or not self.requires_order_secret

    # =========================================================================
    # HTTP plumbing
    # =========================================================================

    def _reject_placeholder(self, url: str) -> None:
        host = (urlsplit(url).hostname or "").lower()
        placeholders = {h.lower() for h in getattr(settings, "GATEWAY_PLACEHOLDER_HOSTS", [])}
        if host in placeholders:
            raise GatewayConfigurationError(
                f"Gateway endpoint is still set to the placeholder host '{host}'; "
                "configure the real bank endpoint",
                gateway_kind=self.kind.value,
                details={"host": host},
            )

    def _build_client(self) -> httpx.Client:
        if self._transport is not None:
            return httpx.Client(transport=self._transport, timeout=self.timeout)
        return httpx.Client(timeout=self.timeout)

    def _request_json(
        self,
        method: str,
        url: str,
        log_context: dict[str, Any],
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Send one request and return the decoded JSON object.

        log_context must not contain credentials; query parameters passed via
        `params` are never logged.
        """
        logger = self.get_logger()
        log_context = {"gateway_kind": self.kind.value, "method": method, **log_context}
        logger.info("Starting gateway request", extra=log_context)

        start_time = time.monotonic()
        try:
            with self._build_client() as client:
                response = client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.warning(
                "Gateway request timed out",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise GatewayTransportError(
                f"Gateway did not answer within {self.timeout:g}s",
                gateway_kind=self.kind.value,
                details={"endpoint": log_context.get("endpoint")},
            ) from exc
        except httpx.TransportError as exc:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.warning(
                "Gateway connection failed",
                extra={**log_context, "duration_ms": duration_ms, "error_type": type(exc).__name__},
            )
            raise GatewayTransportError(
                f"Could not connect to gateway ({type(exc).__name__})",
                gateway_kind=self.kind.value,
                details={"endpoint": log_context.get("endpoint")},
            ) from exc

        duration_ms = (time.monotonic() - start_time) * 1000
        status_code = response.status_code

        if not response.is_success:
            body = response.text[:MAX_LOGGED_BODY]
            logger.warning(
                "Gateway returned non-2xx status",
                extra={
                    **log_context,
                    "status_code": status_code,
                    "response_body": body,
                    "duration_ms": duration_ms,
                },
            )
            raise GatewayProtocolError(
                f"Gateway returned HTTP {status_code}",
                gateway_kind=self.kind.value,
                status_code=status_code,
                response_body=body,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            body = response.text[:MAX_LOGGED_BODY]
            logger.warning(
                "Gateway returned a body that is not JSON",
                extra={**log_context, "status_code": status_code, "response_body": body},
            )
            raise GatewayProtocolError(
                "Gateway returned a body that is not valid JSON",
                gateway_kind=self.kind.value,
                status_code=status_code,
                response_body=body,
            ) from exc

        if not isinstance(payload, dict):
            raise GatewayProtocolError(
                "Gateway returned JSON that is not an object",
                gateway_kind=self.kind.value,
                status_code=status_code,
                response_body=response.text[:MAX_LOGGED_BODY],
            )

        logger.info(
            "Gateway request completed",
            extra={**log_context, "status_code": status_code, "duration_ms": duration_ms},
        )
        return payload
