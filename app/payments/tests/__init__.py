"""
Tests for payments app.

This package contains test modules for:
- test_models.py: PaymentOrder state machine and settlement items
- test_orchestrator.py: order creation and gateway registration
- test_status_resolution.py: live queries, callbacks and redirect hints
- test_settlement_service.py: ledger entries, credits and license renewal
- test_tasks.py: pending order reconciliation
- test_views.py: API endpoint tests
- test_integration.py: full payment journeys

Usage:
    pytest payments/tests/
    pytest payments/tests/test_status_resolution.py
"""
