"""
Ledger models for settlement.

- BalanceAccount: Running balance of a garden, a distributor or the platform
- BalanceCredit: One delta applied to a BalanceAccount (audit row, idempotent)
- LedgerEntry: One settled beneficiary item of a payment order

Balances only move through LedgerService.credit(), which inserts the
BalanceCredit and then applies an atomic F() increment to the account.

Usage:
    from payments.ledger.models import AccountType, BalanceAccount, LedgerEntry

    account = BalanceAccount.objects.get(
        account_type=AccountType.GARDEN, owner_id=str(garden.pk), currency="GEL"
    )
    entries = LedgerEntry.objects.filter(payment_order=order)
"""

from __future__ import annotations

from django.db import models

from core.models import UUIDPrimaryKeyMixin


class AccountType(models.TextChoices):
    """
    Owners of balance accounts.

    Values:
        GARDEN: The tenant that collected the payment
        DISTRIBUTOR: A revenue-share distributor (primary or parent)
        PLATFORM: The platform settlement account configured in settings
    """

    GARDEN = "garden", "Garden"
    DISTRIBUTOR = "distributor", "Distributor"
    PLATFORM = "platform", "Platform"


class CreditRole(models.TextChoices):
    """Why a balance was credited during settlement."""

    GARDEN_GROSS = "garden_gross", "Garden Gross Amount"
    DISTRIBUTOR_SHARE = "distributor_share", "Distributor Share"
    SUB_DISTRIBUTOR_SHARE = "sub_distributor_share", "Sub-Distributor Share"
    ADMIN_SHARE = "admin_share", "Admin Share"


class BalanceAccount(UUIDPrimaryKeyMixin, models.Model):
    """
    A running balance owned by a garden, a distributor or the platform.

    owner_id is the owner's primary key as a string, or the configured
    PLATFORM_SETTLEMENT_ACCOUNT reference for the platform account.

    Constraints:
        - Unique combination of (account_type, owner_id, currency)
        - balance never negative
    """

    account_type = models.CharField(
        max_length=20,
        choices=AccountType.choices,
        help_text="Kind of owner holding this balance",
    )
    owner_id = models.CharField(
        max_length=64,
        help_text="Primary key of the owning garden/distributor, or the platform reference",
    )
    currency = models.CharField(
        max_length=3,
        default="GEL",
        help_text="ISO 4217 currency code",
    )
    balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=0,
        help_text="Current balance; changed only by atomic increments",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["account_type", "owner_id", "currency"],
                name="unique_balance_account_per_owner",
            ),
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="balance_account_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_account_type_display()} {self.owner_id} ({self.currency})"


class BalanceCredit(UUIDPrimaryKeyMixin, models.Model):
    """
    Audit row for one balance delta applied during settlement.

    The unique idempotency_key ("credit:<order_id>:<role>") makes a repeated
    credit a no-op even if settlement is re-entered.
    """

    account = models.ForeignKey(
        BalanceAccount,
        on_delete=models.PROTECT,
        related_name="credits",
    )
    payment_order = models.ForeignKey(
        "payments.PaymentOrder",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="balance_credits",
    )
    role = models.CharField(max_length=30, choices=CreditRole.choices)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    idempotency_key = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="balance_credit_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.role} +{self.amount} -> {self.account_id}"


class LedgerEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    A settled beneficiary item of a completed payment order.

    A single order yields one entry for its card; a bulk order yields one
    entry per card at the per-card price. settlement_key is derived from
    (order_id, card id) and is unique, so re-running settlement never
    duplicates an entry.
    """

    payment_order = models.ForeignKey(
        "payments.PaymentOrder",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    card = models.ForeignKey(
        "tenants.Card",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3)
    gateway_ref = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Bank order id the payment was settled against",
    )
    settlement_key = models.CharField(max_length=255, unique=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at"]
        verbose_name_plural = "ledger entries"
        indexes = [
            models.Index(fields=["payment_order", "card"], name="ledger_entry_order_card_idx"),
        ]

    def __str__(self) -> str:
        return f"LedgerEntry({self.settlement_key}, {self.amount} {self.currency})"
