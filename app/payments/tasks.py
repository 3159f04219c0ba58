"""
Celery tasks for payment processing.

This module provides async tasks for:
- Reconciling pending orders whose callback never arrived

Usage:
    from payments.tasks import reconcile_pending_payments

    # Typically scheduled via CELERY_BEAT_SCHEDULE every 5 minutes
    reconcile_pending_payments.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from payments.services import ReconciliationService

logger = logging.getLogger(__name__)


@shared_task
def reconcile_pending_payments(min_age_minutes: int | None = None, lookback_hours: int | None = None) -> dict:
    """
    Periodic task re-resolving stale pending orders against their gateway.

    Returns:
        Dict with the run summary, or {"skipped": True} when another sweep
        holds the reconciliation lock
    """
    result = ReconciliationService.run_reconciliation(
        min_age_minutes=min_age_minutes,
        lookback_hours=lookback_hours,
    )
    if not result.success:
        logger.info(
            "Reconciliation skipped",
            extra={"error_code": result.error_code},
        )
        return {"skipped": True, "reason": result.error}

    return result.data.to_dict()

