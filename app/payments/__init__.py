"""
Payments app: gateway orders, status resolution and settlement.

This app handles:
- Payment order creation against the bearer-token and mutual TLS gateways
- Gateway callbacks and status polling
- Exactly-once settlement into garden, distributor and platform balances
- License renewal for paid cards

Related apps:
    - tenants: Gardens, cards and distributors referenced by orders
    - core: Base models, exceptions and service result types

Usage:
    from payments.services import PaymentOrchestrator, InitiatePaymentParams

    result = PaymentOrchestrator.initiate_payment(InitiatePaymentParams(card_id=card.id))
"""
