"""
PaymentOrder model: one payment attempt against a gateway.

Usage:
    from payments.models import PaymentOrder
    from payments.state_machines import GatewayKind

    order = PaymentOrder.objects.create(
        order_id="MTG_K3J9X2QA_1700000000",
        gateway_kind=GatewayKind.MUTUAL_TLS,
        amount=Decimal("25.00"),
        currency="GEL",
        card=card,
    )

    # State transitions using django-fsm
    order.complete()  # pending -> completed
    order.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone
from django_fsm import FSMField, transition

from core.models import BaseModel, UUIDPrimaryKeyMixin
from payments.state_machines import GatewayKind, PaymentOrderState

ACTIVE_STATES = [PaymentOrderState.PENDING, PaymentOrderState.PROCESSING]


class PaymentOrder(UUIDPrimaryKeyMixin, BaseModel):
    """
    One payment attempt, from order creation to a terminal status.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED
        PENDING/PROCESSING -> COMPLETED | FAILED | CANCELLED

    COMPLETED, FAILED and CANCELLED are terminal. Orders are never deleted;
    they are the financial audit record of the attempt.

    A single order pays for `card`. A bulk order leaves `card` empty and
    lists the paid cards in `bulk_card_ids`, each settled at `unit_price`.

    Fields:
        order_id: Platform-generated id sent to the gateway
        bank_order_id / bank_order_secret: Issued by the gateway on creation;
            the secret is required for status queries and is never logged
        metadata: Gateway responses and callbacks (secret-free) plus the
            settlement audit
    """

    # ==========================================================================
    # Identity
    # ==========================================================================

    order_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Platform-generated order id (e.g. MTG_K3J9X2QA_1700000000)",
    )
    gateway_kind = models.CharField(
        max_length=20,
        choices=GatewayKind.choices,
        help_text="Gateway the order was placed with",
    )
    bank_order_id = models.CharField(
        max_length=128,
        null=True,
        blank=True,
        unique=True,
        help_text="Order id assigned by the gateway",
    )
    bank_order_secret = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="One-time secret required to query the gateway; never logged",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Gross amount charged to the payer",
    )
    currency = models.CharField(
        max_length=3,
        default="GEL",
        help_text="ISO 4217 currency code",
    )
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Per-card price of a bulk order",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    state = FSMField(
        default=PaymentOrderState.PENDING,
        choices=PaymentOrderState.choices,
        db_index=True,
        protected=True,
        help_text="Canonical payment status (managed by FSM)",
    )

    # ==========================================================================
    # Payer, tenant and beneficiaries
    # ==========================================================================

    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payment_orders",
    )
    garden = models.ForeignKey(
        "tenants.Garden",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payment_orders",
        help_text="Tenant collecting the payment; derived from the card when empty",
    )
    card = models.ForeignKey(
        "tenants.Card",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payment_orders",
        help_text="Card paid for by a single order",
    )
    bulk_card_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Card ids paid for by a bulk order",
    )
    description = models.CharField(max_length=255, blank=True, default="")

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented on each save",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Metadata & Error Info
    # ==========================================================================

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Gateway payloads, callbacks and settlement audit",
    )
    failure_reason = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Order"
        verbose_name_plural = "Payment Orders"
        indexes = [
            models.Index(fields=["state", "created_at"], name="pay_order_state_created_idx"),
            models.Index(fields=["garden", "state"], name="pay_order_garden_state_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_order_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentOrder({self.order_id}, {self.state}, {self.amount} {self.currency})"

    def save(self, *args, **kwargs):
        """Save, atomically incrementing version on updates."""
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return PaymentOrderState.is_terminal(self.state)

    @property
    def is_bulk(self) -> bool:
        return bool(self.bulk_card_ids) and self.unit_price is not None

    @property
    def beneficiary_card_ids(self) -> list[int]:
        """Cards this order pays for, in settlement order."""
        if self.is_bulk:
            return [int(card_id) for card_id in self.bulk_card_ids]
        if self.card_id is not None:
            return [self.card_id]
        return []

    def settlement_items(self) -> list[tuple[int, Decimal]]:
        """(card id, amount) per beneficiary item: unit price for bulk, full amount for single."""
        if self.is_bulk:
            return [(card_id, self.unit_price) for card_id in self.beneficiary_card_ids]
        return [(card_id, self.amount) for card_id in self.beneficiary_card_ids]

    def settlement_key(self, card_id) -> str:
        return f"settle:{self.order_id}:{card_id}"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=PaymentOrderState.PENDING,
        target=PaymentOrderState.PROCESSING,
    )
    def start_processing(self):
        """The bank accepted the payer's details and is processing them."""

    @transition(
        field=state,
        source=ACTIVE_STATES,
        target=PaymentOrderState.COMPLETED,
    )
    def complete(self):
        """
        Mark the payment as paid.

        Transition: PENDING/PROCESSING -> COMPLETED
        Settlement runs right after this transition, in the same transaction.
        """
        self.paid_at = timezone.now()

    @transition(
        field=state,
        source=ACTIVE_STATES,
        target=PaymentOrderState.FAILED,
    )
    def fail(self, reason: str = ""):
        self.failed_at = timezone.now()
        self.failure_reason = reason or None

    @transition(
        field=state,
        source=ACTIVE_STATES,
        target=PaymentOrderState.CANCELLED,
    )
    def cancel(self):
        self.cancelled_at = timezone.now()
