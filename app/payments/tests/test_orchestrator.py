"""
Tests for PaymentOrchestrator.

Tests cover:
- Local order id format and collision handling
- Single and bulk pricing from the garden's country tariff
- Bulk validation (cards must belong to the garden)
- Gateway failures leave a retriable PENDING order
- The bank order secret is persisted but never copied into metadata
"""

import json
import re
from decimal import Decimal

import pytest
from freezegun import freeze_time

from payments.exceptions import PaymentProcessingError
from payments.models import PaymentOrder
from payments.services import InitiatePaymentParams, PaymentOrchestrator
from payments.state_machines import GatewayKind, PaymentOrderState
from payments.tests.factories import PaymentOrderFactory
from tenants.tests.factories import CardFactory, CountryFactory, GardenFactory, GardenGroupFactory

pytestmark = pytest.mark.django_db


class TestGenerateOrderId:
    @pytest.mark.parametrize(
        "gateway_kind,prefix",
        [(GatewayKind.MUTUAL_TLS, "MTG"), (GatewayKind.BEARER_TOKEN, "BTG")],
    )
    def test_format(self, gateway_kind, prefix):
        order_id = PaymentOrchestrator.generate_order_id(gateway_kind)

        assert re.fullmatch(rf"{prefix}_[A-Z0-9]{{8}}_\d+", order_id)

    @freeze_time("2024-01-01 00:00:00")
    def test_skips_taken_ids(self, mocker, card):
        PaymentOrderFactory(card=card, order_id="MTG_AAAAAAAA_1704067200")
        mocker.patch(
            "payments.services.payment_orchestrator.secrets.choice",
            side_effect=["A"] * 8 + ["B"] * 8,
        )

        assert PaymentOrchestrator.generate_order_id(GatewayKind.MUTUAL_TLS) == "MTG_BBBBBBBB_1704067200"

    @freeze_time("2024-01-01 00:00:00")
    def test_gives_up_after_repeated_collisions(self, mocker, card):
        PaymentOrderFactory(card=card, order_id="MTG_AAAAAAAA_1704067200")
        mocker.patch("payments.services.payment_orchestrator.secrets.choice", return_value="A")

        with pytest.raises(PaymentProcessingError) as exc_info:
            PaymentOrchestrator.generate_order_id(GatewayKind.MUTUAL_TLS)

        assert exc_info.value.error_code == "ORDER_ID_EXHAUSTED"


class TestInitiatePaymentParams:
    def test_requires_a_card(self):
        with pytest.raises(ValueError, match="card_id or card_ids"):
            InitiatePaymentParams(gateway_kind=GatewayKind.MUTUAL_TLS)

    def test_bulk_requires_garden(self):
        with pytest.raises(ValueError, match="garden_id"):
            InitiatePaymentParams(card_ids=[1, 2])

    def test_rejects_non_positive_amount(self):
        with pytest.raises(ValueError, match="amount"):
            InitiatePaymentParams(card_id=1, amount=Decimal("0"))

    def test_defaults_gateway_and_uppercases_currency(self, settings):
        settings.DEFAULT_PAYMENT_GATEWAY = "bearer_token"

        params = InitiatePaymentParams(card_id=1, currency="gel", amount=Decimal("9.999"))

        assert params.gateway_kind == "bearer_token"
        assert params.currency == "GEL"
        assert params.amount == Decimal("10.00")


class TestInitiateSingle:
    def test_mutual_tls_order_created(self, fake_gateway, card, garden):
        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(
                gateway_kind=GatewayKind.MUTUAL_TLS,
                card_id=card.pk,
                amount=Decimal("25.00"),
                currency="GEL",
                return_url="https://platform.test/done",
            )
        )

        assert result.success
        order = PaymentOrder.objects.get(pk=result.data.payment_order.pk)
        assert order.order_id.startswith("MTG_")
        assert order.state == PaymentOrderState.PENDING
        assert order.garden_id == garden.pk
        assert order.bank_order_id == "1001"
        assert order.bank_order_secret == "s3cr3t-pass"
        assert result.data.redirect_url == "https://hpp.mtls.test/flex?id=1001&password=s3cr3t-pass"

        body = json.loads(fake_gateway.requests[0].content)
        assert body["order"]["amount"] == "25.00"
        assert body["order"]["hppRedirectUrl"] == "https://platform.test/done"

    def test_secret_not_copied_into_metadata(self, fake_gateway, card):
        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(gateway_kind=GatewayKind.MUTUAL_TLS, card_id=card.pk)
        )

        order = PaymentOrder.objects.get(pk=result.data.payment_order.pk)
        assert "s3cr3t-pass" not in json.dumps(order.metadata)
        assert "s3cr3t-pass" not in str(order)
        assert "s3cr3t-pass" not in repr(result.data)
        assert order.metadata["payment_page_url"] == "https://hpp.mtls.test/flex"

    def test_priced_from_country_tariff(self, fake_gateway):
        garden = GardenFactory(country=CountryFactory(tariff=Decimal("12.50"), currency="USD"))
        card = CardFactory(group=GardenGroupFactory(garden=garden))

        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(gateway_kind=GatewayKind.MUTUAL_TLS, card_id=card.pk)
        )

        order = result.data.payment_order
        assert order.amount == Decimal("12.50")
        assert order.currency == "USD"

    def test_default_tariff_without_country(self, fake_gateway, settings):
        settings.PAYMENT_DEFAULT_TARIFF = Decimal("7.00")
        card = CardFactory(group=GardenGroupFactory(garden=GardenFactory(country=None)))

        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(gateway_kind=GatewayKind.MUTUAL_TLS, card_id=card.pk)
        )

        assert result.data.payment_order.amount == Decimal("7.00")
        assert result.data.payment_order.currency == settings.PAYMENT_DEFAULT_CURRENCY

    def test_bearer_token_order_created(self, fake_gateway, card):
        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(gateway_kind=GatewayKind.BEARER_TOKEN, card_id=card.pk, amount=Decimal("25.00"))
        )

        order = PaymentOrder.objects.get(pk=result.data.payment_order.pk)
        assert order.order_id.startswith("BTG_")
        assert order.bank_order_id == "tx_1001"
        assert order.bank_order_secret is None
        assert result.data.redirect_url == "https://gw.test/pay/tx_1001"

        request = fake_gateway.requests[0]
        assert request.headers["Authorization"] == "Bearer test-api-key"
        assert json.loads(request.content)["amount"] == 2500

    def test_unknown_card(self, fake_gateway):
        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(gateway_kind=GatewayKind.MUTUAL_TLS, card_id=987654)
        )

        assert not result.success
        assert result.error_code == "CARD_NOT_FOUND"
        assert not PaymentOrder.objects.exists()
        assert fake_gateway.requests == []

    def test_unsupported_gateway(self, fake_gateway, card):
        result = PaymentOrchestrator.initiate_payment(InitiatePaymentParams(gateway_kind="paypal", card_id=card.pk))

        assert result.error_code == "UNSUPPORTED_GATEWAY"
        assert not PaymentOrder.objects.exists()


class TestInitiateBulk:
    def test_bulk_order_priced_per_card(self, fake_gateway, garden, garden_cards):
        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(
                gateway_kind=GatewayKind.MUTUAL_TLS,
                card_ids=[card.pk for card in garden_cards],
                garden_id=garden.pk,
            )
        )

        order = result.data.payment_order
        assert order.is_bulk
        assert order.card_id is None
        assert order.unit_price == Decimal("10.00")
        assert order.amount == Decimal("30.00")
        assert order.bulk_card_ids == [card.pk for card in garden_cards]
        assert order.metadata["cards_count"] == 3

    def test_duplicate_card_ids_counted_once(self, fake_gateway, garden, garden_cards):
        first = garden_cards[0].pk

        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(
                gateway_kind=GatewayKind.MUTUAL_TLS,
                card_ids=[first, first, garden_cards[1].pk],
                garden_id=garden.pk,
                unit_price=Decimal("5.00"),
            )
        )

        assert result.data.payment_order.amount == Decimal("10.00")
        assert result.data.payment_order.bulk_card_ids == [first, garden_cards[1].pk]

    def test_card_from_another_garden_rejected(self, fake_gateway, garden, garden_cards):
        stranger = CardFactory()

        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(
                gateway_kind=GatewayKind.MUTUAL_TLS,
                card_ids=[garden_cards[0].pk, stranger.pk],
                garden_id=garden.pk,
            )
        )

        assert result.error_code == "CARDS_NOT_IN_GARDEN"
        assert not PaymentOrder.objects.exists()
        assert fake_gateway.requests == []

    def test_unknown_garden(self, fake_gateway, garden_cards):
        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(
                gateway_kind=GatewayKind.MUTUAL_TLS,
                card_ids=[garden_cards[0].pk],
                garden_id=987654,
            )
        )

        assert result.error_code == "GARDEN_NOT_FOUND"


class TestGatewayFailures:
    def test_missing_certificate_leaves_order_pending(self, fake_gateway, gateway_settings, card):
        gateway_settings["mutual_tls"]["cert_path"] = ""

        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(gateway_kind=GatewayKind.MUTUAL_TLS, card_id=card.pk)
        )

        assert not result.success
        assert result.error_code == "GATEWAY_NOT_CONFIGURED"
        assert "client certificate" in result.error
        assert fake_gateway.requests == []

        order = PaymentOrder.objects.get()
        assert order.state == PaymentOrderState.PENDING
        assert order.bank_order_id is None
        assert order.metadata["gateway_error"]["error_code"] == "GATEWAY_NOT_CONFIGURED"

    def test_placeholder_endpoint_rejected(self, fake_gateway, gateway_settings, card):
        gateway_settings["mutual_tls"]["order_endpoint"] = "https://api.bank.com/order"

        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(gateway_kind=GatewayKind.MUTUAL_TLS, card_id=card.pk)
        )

        assert result.error_code == "GATEWAY_NOT_CONFIGURED"
        assert fake_gateway.requests == []

    def test_gateway_error_response(self, fake_gateway, card):
        fake_gateway.respond_with(500, text="internal error")

        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(gateway_kind=GatewayKind.MUTUAL_TLS, card_id=card.pk)
        )

        assert result.error_code == "GATEWAY_PROTOCOL_ERROR"
        order = PaymentOrder.objects.get()
        assert order.state == PaymentOrderState.PENDING
        assert order.bank_order_id is None

    def test_response_missing_order_object(self, fake_gateway, card):
        fake_gateway.respond_with(200, json={"unexpected": True})

        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(gateway_kind=GatewayKind.MUTUAL_TLS, card_id=card.pk)
        )

        assert result.error_code == "GATEWAY_INVALID_RESPONSE"


class TestLookups:
    def test_get_payment_order(self, pending_order):
        assert PaymentOrchestrator.get_payment_order(pending_order.order_id) == pending_order
        assert PaymentOrchestrator.get_payment_order("missing") is None

    def test_get_by_bank_order_id(self, pending_order):
        assert PaymentOrchestrator.get_by_bank_order_id(pending_order.bank_order_id) == pending_order
        assert PaymentOrchestrator.get_by_bank_order_id("") is None
