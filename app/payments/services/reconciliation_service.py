"""
Reconciliation sweep for orders whose callback never arrived.

Orders that stay PENDING or PROCESSING after the payer left the hosted page
are re-resolved against the gateway. Anything the gateway reports as
terminal goes through PaymentStatusResolver, so settlement still happens
exactly once even when a late callback races the sweep.

Usage:
    from payments.services import ReconciliationService

    result = ReconciliationService.run_reconciliation()
    if result.success:
        print(f"Checked {result.data.orders_checked} orders")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from django.conf import settings
from django.utils import timezone

from core.services import BaseService, ServiceResult
from payments.exceptions import LockAcquisitionError
from payments.locks import DistributedLock
from payments.models import PaymentOrder
from payments.services.status_resolution import PaymentStatusResolver
from payments.state_machines import PaymentOrderState

# =============================================================================
# Constants
# =============================================================================

DEFAULT_MAX_RECORDS = 500

RECONCILIATION_LOCK_KEY = "payments:reconcile"
RECONCILIATION_LOCK_TTL = 600  # 10 minutes


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class ReconciliationRunResult:
    """Summary of one reconciliation sweep."""

    started_at: datetime
    completed_at: datetime | None = None
    orders_checked: int = 0
    orders_updated: int = 0
    orders_errored: int = 0
    transitions: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "orders_checked": self.orders_checked,
            "orders_updated": self.orders_updated,
            "orders_errored": self.orders_errored,
            "transitions": self.transitions,
        }


# =============================================================================
# Reconciliation Service
# =============================================================================


class ReconciliationService(BaseService):
    """
    Re-resolves stale non-terminal orders that have a bank reference.

    Concurrency Safety:
        - A non-blocking global lock keeps sweeps from overlapping
        - Each order transition still takes the order's row lock
    """

    @classmethod
    def run_reconciliation(
        cls,
        min_age_minutes: int | None = None,
        lookback_hours: int | None = None,
        max_records: int = DEFAULT_MAX_RECORDS,
    ) -> ServiceResult[ReconciliationRunResult]:
        """
        Run one sweep.

        Args:
            min_age_minutes: Skip orders younger than this, their callback
                may still arrive (default: PAYMENT_RECONCILE_MIN_AGE_MINUTES)
            lookback_hours: Ignore orders older than this
                (default: PAYMENT_RECONCILE_LOOKBACK_HOURS)
            max_records: Maximum orders examined per sweep

        Returns:
            ServiceResult with ReconciliationRunResult, or a failure with
            RECONCILIATION_IN_PROGRESS when another sweep holds the lock
        """
        if min_age_minutes is None:
            min_age_minutes = settings.PAYMENT_RECONCILE_MIN_AGE_MINUTES
        if lookback_hours is None:
            lookback_hours = settings.PAYMENT_RECONCILE_LOOKBACK_HOURS

        try:
            lock = DistributedLock(RECONCILIATION_LOCK_KEY, ttl=RECONCILIATION_LOCK_TTL, blocking=False)
            lock.acquire()
        except LockAcquisitionError:
            cls.get_logger().warning(
                "Another reconciliation run is in progress",
                extra={"lock_key": RECONCILIATION_LOCK_KEY},
            )
            return ServiceResult.failure(
                "Another reconciliation run is in progress",
                error_code="RECONCILIATION_IN_PROGRESS",
            )

        try:
            return ServiceResult.success(
                cls._run_with_lock(min_age_minutes, lookback_hours, max_records)
            )
        finally:
            lock.release()

    @classmethod
    def candidate_orders(cls, min_age_minutes: int, lookback_hours: int, max_records: int = DEFAULT_MAX_RECORDS):
        now = timezone.now()
        return (
            PaymentOrder.objects.filter(
                state__in=PaymentOrderState.active_states(),
                bank_order_id__isnull=False,
                created_at__lte=now - timedelta(minutes=min_age_minutes),
                created_at__gte=now - timedelta(hours=lookback_hours),
            )
            .order_by("created_at")[:max_records]
        )

    @classmethod
    def _run_with_lock(
        cls,
        min_age_minutes: int,
        lookback_hours: int,
        max_records: int,
    ) -> ReconciliationRunResult:
        logger = cls.get_logger()
        result = ReconciliationRunResult(started_at=timezone.now())
        logger.info(
            "Starting reconciliation run",
            extra={
                "min_age_minutes": min_age_minutes,
                "lookback_hours": lookback_hours,
                "max_records": max_records,
            },
        )

        for order in cls.candidate_orders(min_age_minutes, lookback_hours, max_records):
            result.orders_checked += 1
            previous = order.state
            try:
                resolved = PaymentStatusResolver.resolve_order(order.order_id)
            except Exception:
                result.orders_errored += 1
                logger.error(
                    "Failed to reconcile payment order",
                    extra={"local_order_id": order.order_id},
                    exc_info=True,
                )
                continue

            if resolved is not None and resolved.state != previous:
                result.orders_updated += 1
                key = f"{previous}->{resolved.state}"
                result.transitions[key] = result.transitions.get(key, 0) + 1

        result.completed_at = timezone.now()
        logger.info("Reconciliation run completed", extra=result.to_dict())
        return result
