"""
End-to-end payment journeys through the HTTP API.

Each test creates an order, lets the gateway report the outcome (callback,
status poll or reconciliation) and checks what settlement left behind.
"""

import datetime
from decimal import Decimal

import pytest
from freezegun import freeze_time
from rest_framework.test import APIClient

from payments.ledger.models import AccountType, BalanceCredit, LedgerEntry
from payments.ledger.services import LedgerService
from payments.models import PaymentOrder
from payments.state_machines import PaymentOrderState
from payments.tasks import reconcile_pending_payments
from tenants.models import Card
from tenants.tests.factories import DistributorFactory

pytestmark = pytest.mark.django_db


@pytest.fixture
def payer_client(user):
    api_client = APIClient()
    api_client.force_authenticate(user=user)
    return api_client


def balance(account_type, owner_id):
    return LedgerService.get_balance(account_type, owner_id).amount


@freeze_time("2024-03-10 09:00:00")
class TestBearerTokenJourney:
    def test_callback_settles_order(self, payer_client, fake_gateway, card, garden, settings):
        created = payer_client.post(
            "/api/v1/payments/",
            {"gateway_kind": "bearer_token", "card_id": card.pk, "amount": "25.00", "currency": "GEL"},
            format="json",
        )
        assert created.status_code == 201
        order_id = created.data["order_id"]
        bank_order_id = PaymentOrder.objects.get(order_id=order_id).bank_order_id

        callback = APIClient().post(
            "/api/v1/payments/callback/",
            {"transaction_id": bank_order_id, "status": "success"},
            format="json",
        )
        assert callback.status_code == 200

        polled = payer_client.get(f"/api/v1/payments/{order_id}/status/")
        assert polled.data["status"] == "completed"

        order = PaymentOrder.objects.get(order_id=order_id)
        assert order.state == PaymentOrderState.COMPLETED
        assert LedgerEntry.objects.get(payment_order=order).settlement_key == f"settle:{order_id}:{card.pk}"
        assert balance(AccountType.GARDEN, garden.pk) == Decimal("25.00")
        assert balance(AccountType.PLATFORM, settings.PLATFORM_SETTLEMENT_ACCOUNT) == Decimal("25.00")
        assert Card.objects.get(pk=card.pk).license_expires_at == datetime.date(2025, 3, 10)

        # The completed state is now served without asking the gateway again
        fake_gateway.requests.clear()
        assert payer_client.get(f"/api/v1/payments/{order_id}/status/").data["status"] == "completed"
        assert fake_gateway.requests == []


@freeze_time("2024-03-10 09:00:00")
class TestMutualTLSJourney:
    def test_status_poll_settles_with_distributor_chain(self, payer_client, fake_gateway, card, garden, settings):
        parent = DistributorFactory(percent=Decimal("10.00"), second_percent=Decimal("5.00"))
        distributor = DistributorFactory(percent=Decimal("20.00"), parent=parent, gardens=[garden])

        created = payer_client.post(
            "/api/v1/payments/",
            {"gateway_kind": "mutual_tls", "card_id": card.pk, "amount": "25.00"},
            format="json",
        )
        order_id = created.data["order_id"]

        fake_gateway.status = "FullyPaid"
        polled = payer_client.get(f"/api/v1/payments/{order_id}/status/", {"hint_status": "failed"})

        assert polled.data["status"] == "completed"
        assert balance(AccountType.GARDEN, garden.pk) == Decimal("25.00")
        assert balance(AccountType.DISTRIBUTOR, distributor.pk) == Decimal("5.00")
        assert balance(AccountType.DISTRIBUTOR, parent.pk) == Decimal("1.25")
        assert balance(AccountType.PLATFORM, settings.PLATFORM_SETTLEMENT_ACCOUNT) == Decimal("18.75")

        # A late callback changes nothing
        APIClient().post(
            "/api/v1/payments/callback/",
            {"order_id": order_id, "status": "declined"},
            format="json",
        )
        assert PaymentOrder.objects.get(order_id=order_id).state == PaymentOrderState.COMPLETED
        assert BalanceCredit.objects.count() == 4

    def test_bulk_order_renews_every_card(self, payer_client, fake_gateway, garden, garden_cards, mock_redis):
        created = payer_client.post(
            "/api/v1/payments/",
            {
                "gateway_kind": "mutual_tls",
                "card_ids": [card.pk for card in garden_cards],
                "garden_id": garden.pk,
            },
            format="json",
        )
        assert created.status_code == 201
        assert created.data["amount"] == "30.00"

        fake_gateway.status = "FullyPaid"
        with freeze_time("2024-03-10 09:30:00"):
            summary = reconcile_pending_payments()

        assert summary["transitions"] == {"pending->completed": 1}
        assert LedgerEntry.objects.count() == 3
        assert {c.license_expires_at for c in Card.objects.filter(pk__in=[c.pk for c in garden_cards])} == {
            datetime.date(2025, 3, 10)
        }
        assert balance(AccountType.GARDEN, garden.pk) == Decimal("30.00")
