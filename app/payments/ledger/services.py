"""
Ledger service layer for settlement bookkeeping.

All balance changes and ledger entries go through LedgerService. Every
write is idempotent on a unique key, so a settlement that is re-entered
after a crash or a duplicate callback cannot double-credit anyone.

Usage:
    from payments.ledger.services import ledger
    from payments.ledger.types import CreditParams

    account = ledger.get_or_create_account(AccountType.GARDEN, garden.pk, "GEL")
    ledger.credit(CreditParams(
        account_id=account.id,
        amount=Decimal("25.00"),
        role=CreditRole.GARDEN_GROSS,
        idempotency_key=f"credit:{order.order_id}:garden_gross",
    ))
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, models, transaction
from django.db.models import F, Value
from django.db.models.functions import Greatest

from .models import AccountType, BalanceAccount, BalanceCredit, LedgerEntry
from .types import CreditParams, Money, quantize_amount

if TYPE_CHECKING:
    from payments.models import PaymentOrder

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Service class for ledger operations.

    Key features:
    - Idempotency via unique keys (safe to retry)
    - Balances change by atomic increments, never read-modify-write
    - Balances are floored at zero

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def get_or_create_account(
        account_type: AccountType | str,
        owner_id,
        currency: str = "GEL",
    ) -> BalanceAccount:
        """
        Get the balance account for an owner, creating it on first use.

        Concurrent first credits to the same owner race on the unique
        constraint; the loser re-reads the winner's row.
        """
        lookup = {
            "account_type": account_type,
            "owner_id": str(owner_id),
            "currency": currency.upper(),
        }
        account = BalanceAccount.objects.filter(**lookup).first()
        if account is not None:
            return account
        try:
            with transaction.atomic():
                return BalanceAccount.objects.create(**lookup)
        except IntegrityError:
            return BalanceAccount.objects.get(**lookup)

    @staticmethod
    def get_platform_account(currency: str = "GEL") -> BalanceAccount:
        """Balance account named by settings.PLATFORM_SETTLEMENT_ACCOUNT."""
        return LedgerService.get_or_create_account(
            AccountType.PLATFORM,
            settings.PLATFORM_SETTLEMENT_ACCOUNT,
            currency,
        )

    @staticmethod
    def credit(params: CreditParams) -> tuple[BalanceCredit, bool]:
        """
        Credit a balance account once per idempotency key.

        The audit row is inserted first inside a savepoint. Only when that
        insert wins is the balance incremented, with an atomic
        `balance = GREATEST(balance + amount, 0)` update.

        Returns:
            (credit row, created) - created is False for a repeated key
        """
        existing = BalanceCredit.objects.filter(idempotency_key=params.idempotency_key).first()
        if existing is not None:
            return existing, False

        try:
            with transaction.atomic():
                credit = BalanceCredit.objects.create(
                    account_id=params.account_id,
                    payment_order_id=params.payment_order_id,
                    role=params.role,
                    amount=params.amount,
                    idempotency_key=params.idempotency_key,
                    description=params.description,
                    metadata=params.metadata,
                )
                BalanceAccount.objects.filter(pk=params.account_id).update(
                    balance=Greatest(
                        F("balance") + params.amount,
                        Value(Decimal("0.00")),
                        output_field=models.DecimalField(max_digits=14, decimal_places=2),
                    )
                )
        except IntegrityError:
            # Another worker applied the same credit between our check and insert
            return BalanceCredit.objects.get(idempotency_key=params.idempotency_key), False

        logger.info(
            "Balance credited",
            extra={
                "account_id": str(params.account_id),
                "role": params.role,
                "amount": str(params.amount),
                "idempotency_key": params.idempotency_key,
            },
        )
        return credit, True

    @staticmethod
    def record_settlement_entry(
        payment_order: PaymentOrder,
        card_id,
        amount: Decimal,
        settlement_key: str,
    ) -> tuple[LedgerEntry, bool]:
        """
        Record one settled beneficiary item, once per settlement key.

        Returns:
            (entry, created) - created is False when the key already exists
        """
        existing = LedgerEntry.objects.filter(settlement_key=settlement_key).first()
        if existing is not None:
            return existing, False

        try:
            with transaction.atomic():
                entry = LedgerEntry.objects.create(
                    payment_order=payment_order,
                    card_id=card_id,
                    amount=quantize_amount(amount),
                    currency=payment_order.currency,
                    gateway_ref=payment_order.bank_order_id or "",
                    settlement_key=settlement_key,
                )
        except IntegrityError:
            existing = LedgerEntry.objects.filter(settlement_key=settlement_key).first()
            if existing is None:
                raise
            return existing, False
        return entry, True

    @staticmethod
    def get_balance(account_type: AccountType | str, owner_id, currency: str = "GEL") -> Money:
        """Current balance; zero for an owner that was never credited."""
        account = BalanceAccount.objects.filter(
            account_type=account_type,
            owner_id=str(owner_id),
            currency=currency.upper(),
        ).first()
        amount = account.balance if account is not None else Decimal("0")
        return Money(amount, currency)

    @staticmethod
    def get_entries_for_order(payment_order: PaymentOrder):
        return LedgerEntry.objects.filter(payment_order=payment_order).order_by("created_at")

    @staticmethod
    def get_entry_by_settlement_key(settlement_key: str) -> LedgerEntry | None:
        return LedgerEntry.objects.filter(settlement_key=settlement_key).first()

    @staticmethod
    def get_entries_for_bank_order(bank_order_id: str):
        """Entries settled against a gateway order id; empty for a blank id."""
        if not bank_order_id:
            return LedgerEntry.objects.none()
        return LedgerEntry.objects.filter(gateway_ref=bank_order_id).order_by("created_at")


ledger = LedgerService()
