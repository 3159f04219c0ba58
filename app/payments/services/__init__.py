"""
Payment services.

This module provides:
- PaymentOrchestrator: Order creation and gateway registration
- PaymentStatusResolver: Status resolution for polls, callbacks and sweeps
- SettlementService: Exactly-once booking of completed orders
- ReconciliationService: Background sweep of stale pending orders

Usage:
    from payments.services import PaymentOrchestrator, InitiatePaymentParams

    result = PaymentOrchestrator.initiate_payment(
        InitiatePaymentParams(card_id=card.id, amount=Decimal("25.00"))
    )

    from payments.services import PaymentStatusResolver

    state = PaymentStatusResolver.resolve_status(order_id, hint_status="success")
"""

from payments.services.payment_orchestrator import (
    InitiatePaymentParams,
    PaymentOrchestrator,
    PaymentResult,
)
from payments.services.reconciliation_service import (
    ReconciliationRunResult,
    ReconciliationService,
)
from payments.services.settlement_service import SettlementReport, SettlementService
from payments.services.status_resolution import PaymentStatusResolver, status_cache_key

__all__ = [
    "InitiatePaymentParams",
    "PaymentOrchestrator",
    "PaymentResult",
    "PaymentStatusResolver",
    "ReconciliationRunResult",
    "ReconciliationService",
    "SettlementReport",
    "SettlementService",
    "status_cache_key",
]
