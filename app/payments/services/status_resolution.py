"""
Status resolution: the single place where a payment order changes state.

Callers:
    - GET /api/v1/payments/<order_id>/status/ (payer polling after redirect)
    - POST/GET /api/v1/payments/callback/ (gateway notifications)
    - payments.tasks.reconcile_pending_payments (background sweep)

Precedence while the stored state is non-terminal:
    1. Live gateway query when the order has a bank reference (and secret,
       where the gateway needs one). A terminal or processing answer is
       adopted.
    2. Otherwise, when the query was impossible or failed, a redirect-page
       hint that maps to a terminal state is adopted.
    3. Otherwise the order stays as it is.

Callbacks carry their own status and skip the live query.

Transitions happen under select_for_update. A completed transition runs
SettlementService.settle in the same transaction. Terminal states are cached
after commit under "payments:order-status:<order_id>".
"""

from __future__ import annotations

from typing import Any

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.services import BaseService
from payments.adapters import get_gateway_adapter, is_known_status, map_gateway_status, scrub_secrets
from payments.exceptions import GatewayError, GatewayTransportError, InvalidStateTransitionError
from payments.models import PaymentOrder
from payments.services.payment_orchestrator import PaymentOrchestrator
from payments.services.settlement_service import SettlementService
from payments.state_machines import PaymentOrderState

STATUS_CACHE_PREFIX = "payments:order-status"

# Callback keys, first match wins
BANK_ORDER_ID_KEYS = ("bank_order_id", "bankOrderId", "transaction_id", "id")
LOCAL_ORDER_ID_KEYS = ("order_id", "localOrderId", "external_order_id", "shopOrderId")
STATUS_KEYS = ("status", "order_status", "orderStatus")

ADOPTABLE_QUERY_STATES = PaymentOrderState.terminal_states() | {PaymentOrderState.PROCESSING}


def status_cache_key(order_id: str) -> str:
    return f"{STATUS_CACHE_PREFIX}:{order_id}"


def _first_value(payload: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, dict):
            value = value.get("key") or value.get("status")
        if value not in (None, ""):
            return str(value)
    return None


class PaymentStatusResolver(BaseService):
    """
    Merges live gateway answers, callbacks and redirect hints into one state.

    All methods are class methods - no instance state is maintained.
    """

    # =========================================================================
    # Public API
    # =========================================================================

    @classmethod
    def resolve_status(cls, order_id: str, hint_status: str | None = None) -> PaymentOrderState | None:
        """
        Current canonical state of an order, resolving it first if needed.

        Returns:
            The state, or None for an unknown order id
        """
        cached = cache.get(status_cache_key(order_id))
        if cached and PaymentOrderState.is_terminal(cached):
            return PaymentOrderState(cached)

        order = cls.resolve_order(order_id, hint_status=hint_status)
        if order is None:
            return None
        return PaymentOrderState(order.state)

    @classmethod
    def resolve_order(cls, order_id: str, hint_status: str | None = None) -> PaymentOrder | None:
        """Resolve and return the order; None when no order has this id."""
        order = PaymentOrchestrator.get_payment_order(order_id)
        if order is None:
            return None
        return cls._resolve(order, hint_status=hint_status)

    @classmethod
    def handle_callback(cls, payload: dict[str, Any]) -> bool:
        """
        Record a gateway callback and apply the status it reports.

        The order is found by bank order id first, then by local order id.
        The scrubbed payload is appended to order.metadata["callbacks"]
        before anything else happens.

        Returns:
            True when the callback matched an order, False otherwise
        """
        logger = cls.get_logger()
        bank_order_id = _first_value(payload, BANK_ORDER_ID_KEYS)
        local_order_id = _first_value(payload, LOCAL_ORDER_ID_KEYS)

        order = PaymentOrchestrator.get_by_bank_order_id(bank_order_id)
        if order is None and local_order_id:
            order = PaymentOrchestrator.get_payment_order(local_order_id)
        if order is None:
            logger.warning(
                "Callback for unknown payment order",
                extra={"bank_order_id": bank_order_id, "local_order_id": local_order_id},
            )
            return False

        cls._record_callback(order.pk, payload)

        raw_status = _first_value(payload, STATUS_KEYS)
        logger.info(
            "Received payment callback",
            extra={
                "local_order_id": order.order_id,
                "bank_order_id": order.bank_order_id,
                "gateway_kind": order.gateway_kind,
                "raw_status": raw_status,
            },
        )

        if raw_status is None:
            # Nothing to apply; ask the gateway instead
            cls._resolve(order)
            return True

        target = cls._map_status(order, raw_status)
        if target in ADOPTABLE_QUERY_STATES:
            cls._apply_transition(order.pk, target, source="callback", raw_status=raw_status)
        return True

    # =========================================================================
    # Resolution
    # =========================================================================

    @classmethod
    def _resolve(cls, order: PaymentOrder, hint_status: str | None = None) -> PaymentOrder:
        if order.is_terminal:
            return order

        logger = cls.get_logger()
        answered = False

        try:
            adapter = get_gateway_adapter(order.gateway_kind)
            if adapter.can_query(order):
                details = adapter.get_order_details(order.bank_order_id, order.bank_order_secret)
                answered = True
                target = cls._map_status(order, details.raw_status)
                logger.info(
                    "Gateway reported order status",
                    extra={
                        "local_order_id": order.order_id,
                        "bank_order_id": order.bank_order_id,
                        "raw_status": details.raw_status,
                        "mapped_status": str(target),
                    },
                )
                if target in ADOPTABLE_QUERY_STATES:
                    order = cls._apply_transition(
                        order.pk,
                        target,
                        source="gateway_query",
                        raw_status=details.raw_status,
                    )
        except GatewayTransportError:
            logger.warning(
                "Gateway unreachable during status query; order stays as is",
                extra={"local_order_id": order.order_id, "bank_order_id": order.bank_order_id},
            )
        except GatewayError as exc:
            logger.warning(
                "Gateway status query failed",
                extra={
                    "local_order_id": order.order_id,
                    "bank_order_id": order.bank_order_id,
                    "error_code": exc.error_code,
                },
            )

        if not answered and hint_status and not order.is_terminal:
            target = map_gateway_status(order.gateway_kind, hint_status)
            if PaymentOrderState.is_terminal(target):
                order = cls._apply_transition(order.pk, target, source="redirect_hint", raw_status=hint_status)

        return order

    @classmethod
    def _map_status(cls, order: PaymentOrder, raw_status: str) -> PaymentOrderState:
        if not is_known_status(order.gateway_kind, raw_status):
            cls.get_logger().warning(
                "Unrecognized gateway status; treating as pending",
                extra={
                    "local_order_id": order.order_id,
                    "gateway_kind": order.gateway_kind,
                    "raw_status": raw_status,
                },
            )
        return map_gateway_status(order.gateway_kind, raw_status)

    @classmethod
    def _record_callback(cls, order_pk, payload: dict[str, Any]) -> None:
        with transaction.atomic():
            order = PaymentOrder.objects.select_for_update().get(pk=order_pk)
            metadata = dict(order.metadata or {})
            callbacks = list(metadata.get("callbacks", []))
            callbacks.append({"received_at": timezone.now().isoformat(), "payload": scrub_secrets(payload)})
            metadata["callbacks"] = callbacks
            order.metadata = metadata
            order.save(update_fields=["metadata", "version", "updated_at"])

    @classmethod
    def _apply_transition(
        cls,
        order_pk,
        target: PaymentOrderState,
        source: str,
        raw_status: str | None = None,
    ) -> PaymentOrder:
        """
        Move a non-terminal order to target under a row lock.

        A terminal order is returned unchanged, so concurrent callers that
        race to complete the same order settle it only once.
        """
        with transaction.atomic():
            order = PaymentOrder.objects.select_for_update().get(pk=order_pk)
            previous = order.state
            if order.is_terminal or previous == target:
                return order

            try:
                if target == PaymentOrderState.PROCESSING:
                    order.start_processing()
                elif target == PaymentOrderState.COMPLETED:
                    order.complete()
                elif target == PaymentOrderState.FAILED:
                    order.fail(reason=f"Gateway reported status '{raw_status}'")
                elif target == PaymentOrderState.CANCELLED:
                    order.cancel()
                else:
                    return order
            except TransitionNotAllowed as exc:
                raise InvalidStateTransitionError(
                    f"Cannot move payment order from {previous} to {target}",
                    details={"order_id": order.order_id},
                ) from exc

            metadata = dict(order.metadata or {})
            metadata["status_source"] = source
            if raw_status is not None:
                metadata["gateway_status"] = raw_status
            order.metadata = metadata
            order.save()

            if order.state == PaymentOrderState.COMPLETED:
                SettlementService.settle(order)

            if order.is_terminal:
                key, state = status_cache_key(order.order_id), str(order.state)
                transaction.on_commit(
                    lambda: cache.set(key, state, timeout=settings.PAYMENT_STATUS_CACHE_TTL)
                )

        cls.get_logger().info(
            "Payment order state changed",
            extra={
                "local_order_id": order.order_id,
                "from_state": str(previous),
                "to_state": str(order.state),
                "source": source,
            },
        )
        return order
