"""
Payment orchestrator: creates local orders and registers them with a gateway.

The orchestrator:
- Prices single and bulk card orders from the garden's country tariff
- Generates collision-free local order ids
- Creates the order as PENDING and commits it before any gateway call
- Persists the bank order id and secret and builds the payer redirect URL

A gateway failure leaves the order PENDING without a bank reference. That
is a valid, retriable state; the caller only receives the error message.

Usage:
    from payments.services import PaymentOrchestrator, InitiatePaymentParams

    result = PaymentOrchestrator.initiate_payment(
        InitiatePaymentParams(
            gateway_kind=GatewayKind.MUTUAL_TLS,
            card_id=card.id,
            amount=Decimal("25.00"),
            currency="GEL",
        )
    )

    if result.success:
        redirect_url = result.data.redirect_url
        payment_order = result.data.payment_order
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.utils import timezone

from core.services import BaseService, ServiceResult
from payments.adapters import CreateOrderParams, get_gateway_adapter
from payments.exceptions import (
    GatewayConfigurationError,
    GatewayError,
    PaymentProcessingError,
    PaymentValidationError,
)
from payments.ledger.types import quantize_amount, to_decimal
from payments.models import PaymentOrder
from payments.state_machines import GatewayKind
from tenants.services import TenantDirectory

if TYPE_CHECKING:
    from tenants.models import Garden


# =============================================================================
# Constants
# =============================================================================

ORDER_ID_ALPHABET = string.ascii_uppercase + string.digits
ORDER_ID_RANDOM_LENGTH = 8
MAX_ORDER_ID_ATTEMPTS = 20


# =============================================================================
# Parameter Types
# =============================================================================


@dataclass
class InitiatePaymentParams:
    """
    Parameters for initiating a payment.

    A single order names card_id. A bulk order names card_ids and garden_id;
    every card must belong to the garden.

    Attributes:
        gateway_kind: Gateway to use (default: settings.DEFAULT_PAYMENT_GATEWAY)
        amount: Gross amount; priced from the tariff when omitted
        unit_price: Per-card price of a bulk order; tariff when omitted
        currency: ISO 4217 code; country currency when omitted
        payer: Authenticated user placing the order, if any
        return_url: Where the hosted payment page sends the payer back
        consumer_device: Browser details forwarded to the mutual TLS gateway
    """

    gateway_kind: str = ""
    card_id: int | None = None
    card_ids: list[int] = field(default_factory=list)
    garden_id: int | None = None
    amount: Decimal | None = None
    unit_price: Decimal | None = None
    currency: str | None = None
    description: str = ""
    payer: Any = None
    return_url: str = ""
    language: str = "en"
    consumer_device: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.gateway_kind:
            self.gateway_kind = settings.DEFAULT_PAYMENT_GATEWAY
        if self.card_id is None and not self.card_ids:
            raise ValueError("card_id or card_ids is required")
        if self.card_ids and self.garden_id is None:
            raise ValueError("garden_id is required for bulk orders")
        if self.amount is not None:
            self.amount = quantize_amount(self.amount)
            if self.amount <= 0:
                raise ValueError("amount must be positive")
        if self.unit_price is not None:
            self.unit_price = quantize_amount(self.unit_price)
            if self.unit_price <= 0:
                raise ValueError("unit_price must be positive")
        if self.currency:
            self.currency = self.currency.upper()

    @property
    def is_bulk(self) -> bool:
        return bool(self.card_ids)


@dataclass
class PaymentResult:
    """
    Result of a successful payment initiation.

    redirect_url embeds the bank order secret for gateways that issue one;
    hand it to the payer only.
    """

    payment_order: PaymentOrder
    redirect_url: str | None = field(default=None, repr=False)


@dataclass
class _PricedOrder:
    garden: Garden | None
    card_id: int | None
    card_ids: list[int]
    amount: Decimal
    unit_price: Decimal | None
    currency: str


# =============================================================================
# Payment Orchestrator
# =============================================================================


class PaymentOrchestrator(BaseService):
    """
    Entry point for payment initiation and order lookups.

    All methods are class methods - no instance state is maintained.
    """

    @classmethod
    def generate_order_id(cls, gateway_kind: str) -> str:
        """
        Unused local order id: <prefix>_<8 random chars>_<unix time>.

        Raises:
            PaymentProcessingError: No free id after MAX_ORDER_ID_ATTEMPTS
        """
        prefix = GatewayKind(gateway_kind).order_id_prefix
        for _ in range(MAX_ORDER_ID_ATTEMPTS):
            random_part = "".join(secrets.choice(ORDER_ID_ALPHABET) for _ in range(ORDER_ID_RANDOM_LENGTH))
            candidate = f"{prefix}_{random_part}_{int(timezone.now().timestamp())}"
            if not PaymentOrder.objects.filter(order_id=candidate).exists():
                return candidate
        raise PaymentProcessingError(
            "Could not generate a unique order id",
            error_code="ORDER_ID_EXHAUSTED",
        )

    @classmethod
    def initiate_payment(cls, params: InitiatePaymentParams) -> ServiceResult[PaymentResult]:
        """
        Create a PENDING order and register it with the gateway.

        Returns:
            ServiceResult with PaymentResult on success. Failure codes:
            UNSUPPORTED_GATEWAY, CARD_NOT_FOUND, GARDEN_NOT_FOUND,
            CARDS_NOT_IN_GARDEN, GATEWAY_NOT_CONFIGURED and the gateway
            error codes (GATEWAY_UNAVAILABLE, GATEWAY_PROTOCOL_ERROR,
            GATEWAY_INVALID_RESPONSE).
        """
        log = cls.get_logger()

        if params.gateway_kind not in GatewayKind.values:
            return ServiceResult.failure(
                f"Unsupported payment gateway '{params.gateway_kind}'",
                error_code="UNSUPPORTED_GATEWAY",
            )

        try:
            priced = cls._price_order(params)
        except PaymentValidationError as e:
            log.warning(
                "Payment request rejected",
                extra={"error_code": e.error_code, "details": e.details},
            )
            return ServiceResult.from_exception(e)

        with cls.atomic():
            order = PaymentOrder.objects.create(
                order_id=cls.generate_order_id(params.gateway_kind),
                gateway_kind=params.gateway_kind,
                amount=priced.amount,
                currency=priced.currency,
                unit_price=priced.unit_price,
                payer=params.payer if getattr(params.payer, "pk", None) else None,
                garden=priced.garden,
                card_id=priced.card_id,
                bulk_card_ids=priced.card_ids,
                description=params.description[:255],
                metadata={
                    **params.metadata,
                    **({"cards_count": len(priced.card_ids)} if priced.card_ids else {}),
                },
            )

        log_context = {
            "local_order_id": order.order_id,
            "gateway_kind": order.gateway_kind,
            "amount": str(order.amount),
            "currency": order.currency,
        }
        log.info("Created payment order", extra=log_context)

        try:
            adapter = get_gateway_adapter(order.gateway_kind)
            result = adapter.create_order(
                CreateOrderParams(
                    order_id=order.order_id,
                    amount=order.amount,
                    currency=order.currency,
                    description=order.description,
                    return_url=params.return_url,
                    language=params.language,
                    consumer_device=params.consumer_device,
                )
            )
        except GatewayError as e:
            cls._record_gateway_error(order, e)
            level = logging.ERROR if isinstance(e, GatewayConfigurationError) else logging.WARNING
            log.log(
                level,
                "Gateway order creation failed; order stays pending",
                extra={**log_context, "error_code": e.error_code},
            )
            return ServiceResult.failure(e.message, error_code=e.error_code)

        metadata = dict(order.metadata)
        metadata["gateway_create_response"] = result.raw_response
        if result.payment_page_url:
            metadata["payment_page_url"] = result.payment_page_url
        order.bank_order_id = result.bank_order_id
        order.bank_order_secret = result.bank_order_secret
        order.metadata = metadata
        order.save(update_fields=["bank_order_id", "bank_order_secret", "metadata", "version", "updated_at"])

        log.info(
            "Gateway order created",
            extra={**log_context, "bank_order_id": order.bank_order_id},
        )
        return ServiceResult.success(PaymentResult(payment_order=order, redirect_url=result.redirect_url))

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def get_payment_order(cls, order_id: str) -> PaymentOrder | None:
        """Order by local order id; None when unknown."""
        return PaymentOrder.objects.filter(order_id=order_id).first()

    @classmethod
    def get_by_bank_order_id(cls, bank_order_id: str | None) -> PaymentOrder | None:
        """Order by gateway-assigned id; None when unknown."""
        if not bank_order_id:
            return None
        return PaymentOrder.objects.filter(bank_order_id=bank_order_id).first()

    # =========================================================================
    # Internals
    # =========================================================================

    @classmethod
    def _price_order(cls, params: InitiatePaymentParams) -> _PricedOrder:
        if params.is_bulk:
            return cls._price_bulk_order(params)

        card = TenantDirectory.get_card(params.card_id)
        if card is None:
            raise PaymentValidationError(
                "Card not found",
                error_code="CARD_NOT_FOUND",
                details={"card_id": params.card_id},
            )

        if params.garden_id is not None:
            garden = TenantDirectory.get_garden(params.garden_id)
            if garden is None:
                raise PaymentValidationError(
                    "Garden not found",
                    error_code="GARDEN_NOT_FOUND",
                    details={"garden_id": params.garden_id},
                )
        else:
            garden = TenantDirectory.garden_for_card(card)

        tariff, currency = TenantDirectory.tariff_for_garden(garden)
        return _PricedOrder(
            garden=garden,
            card_id=card.pk,
            card_ids=[],
            amount=params.amount or quantize_amount(tariff),
            unit_price=None,
            currency=params.currency or currency,
        )

    @classmethod
    def _price_bulk_order(cls, params: InitiatePaymentParams) -> _PricedOrder:
        garden = TenantDirectory.get_garden(params.garden_id)
        if garden is None:
            raise PaymentValidationError(
                "Garden not found",
                error_code="GARDEN_NOT_FOUND",
                details={"garden_id": params.garden_id},
            )

        card_ids = list(dict.fromkeys(int(card_id) for card_id in params.card_ids))
        cards, missing = TenantDirectory.cards_in_garden(garden, card_ids)
        if missing:
            raise PaymentValidationError(
                "Some cards do not belong to this garden",
                error_code="CARDS_NOT_IN_GARDEN",
                details={"card_ids": missing},
            )

        tariff, currency = TenantDirectory.tariff_for_garden(garden)
        unit_price = params.unit_price or quantize_amount(tariff)
        amount = params.amount or quantize_amount(to_decimal(unit_price) * len(cards))
        return _PricedOrder(
            garden=garden,
            card_id=None,
            card_ids=[card.pk for card in cards],
            amount=amount,
            unit_price=unit_price,
            currency=params.currency or currency,
        )

    @classmethod
    def _record_gateway_error(cls, order: PaymentOrder, error: GatewayError) -> None:
        metadata = dict(order.metadata)
        metadata["gateway_error"] = {
            "error_code": error.error_code,
            "message": error.message,
            "at": timezone.now().isoformat(),
        }
        order.metadata = metadata
        order.save(update_fields=["metadata", "version", "updated_at"])
