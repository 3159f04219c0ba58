"""
Pytest fixtures for ledger tests.

Sections:
    - Account Fixtures: Balance accounts for each owner kind
    - Order Fixtures: A completed order to hang credits and entries on
"""

from decimal import Decimal

import pytest

from payments.ledger.models import AccountType
from payments.state_machines import PaymentOrderState
from payments.tests.factories import BalanceAccountFactory, PaymentOrderFactory


# ==========================================================================
# Account Fixtures
# ==========================================================================


@pytest.fixture
def garden_account(db):
    return BalanceAccountFactory(account_type=AccountType.GARDEN, owner_id="7")


@pytest.fixture
def platform_account(db, settings):
    return BalanceAccountFactory(
        account_type=AccountType.PLATFORM,
        owner_id=settings.PLATFORM_SETTLEMENT_ACCOUNT,
        balance=Decimal("100.00"),
    )


# ==========================================================================
# Order Fixtures
# ==========================================================================


@pytest.fixture
def completed_order(db):
    return PaymentOrderFactory(state=PaymentOrderState.COMPLETED)
