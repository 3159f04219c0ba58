"""
Settlement engine: books a completed payment exactly once.

Settlement runs inside the transaction that moves the order into COMPLETED,
with the order row locked. Three independent fences keep it exactly-once:

    1. the conditional FSM transition (only a non-terminal order completes)
    2. LedgerEntry.settlement_key is unique per (order, card)
    3. BalanceCredit.idempotency_key is unique per (order, role)

Steps:
    1. ledger_entries: one LedgerEntry per beneficiary item
    2. tenant_resolution: order.garden, else card -> group -> garden
    3. tenant_credit: garden credited with the full gross amount, once
    4. distributor_split: admin / distributor / sub-distributor shares
    5. distributor_credit, sub_distributor_credit, admin_credit
    6. license_renewal: each newly booked card's license set to one year
       from today

Every step runs in its own savepoint. A failing step is logged at WARNING,
recorded in the stored report's "skipped" list and the remaining steps
still run. Settlement never moves the order out of COMPLETED.

Usage:
    from payments.services.settlement_service import SettlementService

    with transaction.atomic():
        order = PaymentOrder.objects.select_for_update().get(pk=pk)
        order.complete()
        order.save()
        SettlementService.settle(order)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.utils import timezone

from core.services import BaseService
from payments.exceptions import SettlementPartialFailure
from payments.ledger import CreditParams, RevenueSplit, compute_revenue_split, ledger
from payments.ledger.models import AccountType, CreditRole
from tenants.services import TenantDirectory

if TYPE_CHECKING:
    from collections.abc import Callable

    from payments.models import PaymentOrder
    from tenants.models import Distributor, Garden


@dataclass
class SettlementReport:
    """
    What one settle() call did.

    The first run is stored as order.metadata["settlement"]; later runs are
    appended to order.metadata["settlement_runs"].

    Attributes:
        entries_created: Settlement keys inserted by this call
        entries_existing: Settlement keys that were already present
        credits: One dict per credit applied or found (role, account, amount)
        skipped: One dict per skipped step (step, reason)
        reentry: The order already had ledger entries when this call began
    """

    order_id: str
    garden_id: int | None = None
    distributor_id: int | None = None
    sub_distributor_id: int | None = None
    split: RevenueSplit | None = None
    entries_created: list[str] = field(default_factory=list)
    entries_existing: list[str] = field(default_factory=list)
    credits: list[dict[str, Any]] = field(default_factory=list)
    licenses_renewed: dict[str, str] = field(default_factory=dict)
    reentry: bool = False
    skipped: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.skipped)

    def to_dict(self) -> dict[str, Any]:
        return {
            "settled_at": timezone.now().isoformat(),
            "garden_id": self.garden_id,
            "distributor_id": self.distributor_id,
            "sub_distributor_id": self.sub_distributor_id,
            "split": self.split.to_dict() if self.split else None,
            "entries_created": self.entries_created,
            "entries_existing": self.entries_existing,
            "credits": self.credits,
            "licenses_renewed": self.licenses_renewed,
            "reentry": self.reentry,
            "skipped": self.skipped,
        }


class SettlementService(BaseService):
    """Applies ledger entries, balance credits and license renewals for a paid order."""

    @classmethod
    def settle(cls, order: PaymentOrder) -> SettlementReport:
        """
        Settle a completed order.

        Must be called inside a transaction holding the order's row lock.
        Safe to call again for the same order: already-applied items and
        credits are found by key and not repeated, and cards booked by an
        earlier run keep the license that run activated.
        """
        report = SettlementReport(order_id=order.order_id)
        logger = cls.get_logger()
        logger.info(
            "Settling payment order",
            extra={
                "local_order_id": order.order_id,
                "amount": str(order.amount),
                "currency": order.currency,
                "items": len(order.beneficiary_card_ids),
            },
        )

        # Items booked by an earlier run already had their license activated
        already_settled = set(ledger.get_entries_for_order(order).values_list("settlement_key", flat=True))
        report.reentry = bool(already_settled)

        cls._run_step(report, "ledger_entries", cls._record_entries, order, report)

        garden = cls._run_step(report, "tenant_resolution", cls._resolve_garden, order)
        if garden is not None:
            report.garden_id = garden.pk
            cls._run_step(report, "tenant_credit", cls._credit_garden, order, garden, report)
        else:
            cls._skip(report, "tenant_credit", "No garden resolved for the order")

        split = cls._run_step(report, "distributor_split", cls._compute_split, order, garden, report)
        if split is not None:
            report.split = split
            cls._credit_split(order, split, report)

        for card_id in order.beneficiary_card_ids:
            if order.settlement_key(card_id) in already_settled:
                continue
            cls._run_step(report, "license_renewal", cls._renew_license, card_id, report)

        cls._store_report(order, report)

        log = logger.warning if report.is_partial else logger.info
        log(
            "Payment order settled" + (" with skipped steps" if report.is_partial else ""),
            extra={
                "local_order_id": order.order_id,
                "entries_created": len(report.entries_created),
                "credits": len(report.credits),
                "skipped_steps": [skip["step"] for skip in report.skipped],
            },
        )
        return report

    # =========================================================================
    # Step runner
    # =========================================================================

    @classmethod
    def _run_step(cls, report: SettlementReport, step: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            with transaction.atomic():
                return func(*args)
        except SettlementPartialFailure as exc:
            cls._skip(report, exc.step, exc.message, exc.details)
        except Exception as exc:
            cls.get_logger().warning(
                "Settlement step raised",
                extra={"local_order_id": report.order_id, "step": step},
                exc_info=True,
            )
            cls._skip(report, step, f"{type(exc).__name__}: {exc}")
        return None

    @classmethod
    def _skip(
        cls,
        report: SettlementReport,
        step: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry = {"step": step, "reason": reason}
        extra_details = {k: v for k, v in (details or {}).items() if k != "step"}
        if extra_details:
            entry["details"] = extra_details
        report.skipped.append(entry)
        cls.get_logger().warning(
            "Settlement step skipped",
            extra={"local_order_id": report.order_id, "step": step, "reason": reason},
        )

    @staticmethod
    def _store_report(order: PaymentOrder, report: SettlementReport) -> None:
        metadata = dict(order.metadata or {})
        if "settlement" in metadata:
            metadata["settlement_runs"] = [*metadata.get("settlement_runs", []), report.to_dict()]
        else:
            metadata["settlement"] = report.to_dict()
        order.metadata = metadata
        order.save(update_fields=["metadata", "version", "updated_at"])

    # =========================================================================
    # Steps
    # =========================================================================

    @classmethod
    def _record_entries(cls, order: PaymentOrder, report: SettlementReport) -> None:
        items = order.settlement_items()
        if not items:
            raise SettlementPartialFailure("Order has no beneficiary cards", step="ledger_entries")

        created_keys, existing_keys = [], []
        for card_id, amount in items:
            if TenantDirectory.get_card(card_id) is None:
                cls._skip(
                    report,
                    "ledger_entries",
                    "Card not found",
                    {"card_id": card_id},
                )
                continue
            key = order.settlement_key(card_id)
            _, created = ledger.record_settlement_entry(order, card_id, amount, key)
            (created_keys if created else existing_keys).append(key)

        # Reported only after every insert succeeded
        report.entries_created.extend(created_keys)
        report.entries_existing.extend(existing_keys)

    @staticmethod
    def _resolve_garden(order: PaymentOrder) -> Garden:
        if order.garden_id is not None:
            garden = TenantDirectory.get_garden(order.garden_id)
            if garden is not None:
                return garden

        for card_id in order.beneficiary_card_ids:
            garden = TenantDirectory.garden_for_card(TenantDirectory.get_card(card_id))
            if garden is not None:
                return garden

        raise SettlementPartialFailure(
            "Garden not found for order",
            step="tenant_resolution",
            details={"card_ids": order.beneficiary_card_ids},
        )

    @classmethod
    def _credit_garden(cls, order: PaymentOrder, garden: Garden, report: SettlementReport) -> None:
        account = ledger.get_or_create_account(AccountType.GARDEN, garden.pk, order.currency)
        cls._apply_credit(order, account, order.amount, CreditRole.GARDEN_GROSS, report)

    @classmethod
    def _compute_split(
        cls,
        order: PaymentOrder,
        garden: Garden | None,
        report: SettlementReport,
    ) -> RevenueSplit:
        distributor: Distributor | None = TenantDirectory.find_distributor_for_garden(garden)
        if distributor is None:
            cls.get_logger().info(
                "No distributor for order; platform receives the full amount",
                extra={"local_order_id": order.order_id, "garden_id": report.garden_id},
            )
            return compute_revenue_split(order.amount)

        report.distributor_id = distributor.pk
        sub_percent = Decimal("0")
        if distributor.parent_id is not None:
            report.sub_distributor_id = distributor.parent_id
            sub_percent = distributor.parent.second_percent

        return compute_revenue_split(order.amount, distributor.percent, sub_percent)

    @classmethod
    def _credit_split(cls, order: PaymentOrder, split: RevenueSplit, report: SettlementReport) -> None:
        shares = [
            ("distributor_credit", CreditRole.DISTRIBUTOR_SHARE, AccountType.DISTRIBUTOR,
             report.distributor_id, split.distributor_amount),
            ("sub_distributor_credit", CreditRole.SUB_DISTRIBUTOR_SHARE, AccountType.DISTRIBUTOR,
             report.sub_distributor_id, split.sub_distributor_amount),
        ]
        for step, role, account_type, owner_id, amount in shares:
            if owner_id is None or amount <= 0:
                continue
            cls._run_step(report, step, cls._credit_owner, order, account_type, owner_id, amount, role, report)

        if split.admin_amount > 0:
            cls._run_step(report, "admin_credit", cls._credit_platform, order, split.admin_amount, report)

    @classmethod
    def _credit_owner(
        cls,
        order: PaymentOrder,
        account_type: str,
        owner_id: int,
        amount: Decimal,
        role: str,
        report: SettlementReport,
    ) -> None:
        account = ledger.get_or_create_account(account_type, owner_id, order.currency)
        cls._apply_credit(order, account, amount, role, report)

    @classmethod
    def _credit_platform(cls, order: PaymentOrder, amount: Decimal, report: SettlementReport) -> None:
        account = ledger.get_platform_account(order.currency)
        cls._apply_credit(order, account, amount, CreditRole.ADMIN_SHARE, report)

    @staticmethod
    def _apply_credit(order: PaymentOrder, account, amount: Decimal, role: str, report: SettlementReport) -> None:
        credit, created = ledger.credit(
            CreditParams(
                account_id=account.pk,
                amount=amount,
                role=role,
                idempotency_key=f"credit:{order.order_id}:{role}",
                payment_order_id=order.pk,
                description=f"{role} for {order.order_id}",
            )
        )
        report.credits.append(
            {
                "role": role,
                "account_type": account.account_type,
                "owner_id": account.owner_id,
                "amount": str(credit.amount),
                "created": created,
            }
        )

    @staticmethod
    def _renew_license(card_id: int, report: SettlementReport) -> None:
        expires_at = TenantDirectory.renew_license(card_id)
        if expires_at is None:
            raise SettlementPartialFailure(
                "Card not found for license renewal",
                step="license_renewal",
                details={"card_id": card_id},
            )
        report.licenses_renewed[str(card_id)] = expires_at.isoformat()
