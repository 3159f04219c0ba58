"""
Pytest fixtures for payment tests.

The gateway is faked at the HTTP layer: FakeGateway is an httpx.MockTransport
handler that answers like both real gateways, and `fake_gateway` wires it
into every adapter the services build.

Usage:
    def test_callback_completes(fake_gateway, pending_order):
        fake_gateway.status = "FullyPaid"
        PaymentStatusResolver.resolve_status(pending_order.order_id)
"""

from __future__ import annotations

import httpx
import pytest

from payments.adapters import ADAPTERS
from payments.tests.factories import PaymentOrderFactory, UserFactory
from tenants.tests.factories import CardFactory, DistributorFactory, GardenFactory, GardenGroupFactory

MTLS_HOST = "mtls.test"
BEARER_HOST = "gw.test"
ORDER_SECRET = "s3cr3t-pass"


class FakeGateway:
    """
    Records requests and answers like the bearer-token and mutual TLS gateways.

    Attributes:
        status: Raw status returned by status queries
        error: Exception raised instead of answering (e.g. httpx.ConnectError)
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status = "pending"
        self.error: Exception | None = None
        self._fixed: tuple[int, dict | None, str | None] | None = None
        self._next_id = 1000

    def respond_with(self, status_code: int, json: dict | None = None, text: str | None = None) -> None:
        self._fixed = (status_code, json, text)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self._fixed is not None:
            status_code, json, text = self._fixed
            if json is not None:
                return httpx.Response(status_code, json=json)
            return httpx.Response(status_code, text=text or "")

        if request.method == "POST":
            self._next_id += 1
            if request.url.host == MTLS_HOST:
                return httpx.Response(
                    200,
                    json={
                        "order": {
                            "id": self._next_id,
                            "password": ORDER_SECRET,
                            "hppUrl": "https://hpp.mtls.test/flex",
                            "status": "Preparing",
                        }
                    },
                )
            return httpx.Response(
                201,
                json={"id": f"tx_{self._next_id}", "redirect_url": f"https://{BEARER_HOST}/pay/tx_{self._next_id}"},
            )

        if request.url.host == MTLS_HOST:
            bank_order_id = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"order": {"id": bank_order_id, "status": self.status}})
        return httpx.Response(200, json={"status": self.status})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def methods(self) -> list[str]:
        return [request.method for request in self.requests]


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def tls_files(tmp_path):
    """Client certificate, key and CA bundle files (content is never parsed in tests)."""
    paths = {}
    for name in ("client.crt", "client.key", "ca.pem"):
        path = tmp_path / name
        path.write_text("-----BEGIN TEST-----\n")
        paths[name] = str(path)
    return paths


@pytest.fixture
def gateway_settings(settings, tls_files):
    settings.PAYMENT_GATEWAYS = {
        "bearer_token": {
            "api_key": "test-api-key",
            "order_url": f"https://{BEARER_HOST}/v1/orders",
            "status_url": f"https://{BEARER_HOST}/v1/orders/{{bank_order_id}}",
            "payment_page_url": f"https://{BEARER_HOST}/pay",
            "callback_url": "https://platform.test/api/v1/payments/callback/",
            "return_url": "https://platform.test/return",
            "timeout": 5,
        },
        "mutual_tls": {
            "order_endpoint": f"https://{MTLS_HOST}/api/order",
            "cert_path": tls_files["client.crt"],
            "key_path": tls_files["client.key"],
            "ca_path": tls_files["ca.pem"],
            "verify_peer": True,
            "type_rid": "ORD1",
            "language": "en",
            "return_url": "https://platform.test/return",
            "timeout": 5,
        },
    }
    settings.GATEWAY_PLACEHOLDER_HOSTS = ["api.bank.com"]
    return settings.PAYMENT_GATEWAYS


@pytest.fixture
def fake_gateway(mocker, gateway_settings):
    """FakeGateway injected into every adapter built by the payment services."""
    fake = FakeGateway()

    def build_adapter(gateway_kind, transport=None):
        return ADAPTERS[gateway_kind].from_settings(transport=fake.transport)

    mocker.patch("payments.services.payment_orchestrator.get_gateway_adapter", side_effect=build_adapter)
    mocker.patch("payments.services.status_resolution.get_gateway_adapter", side_effect=build_adapter)
    return fake


# =============================================================================
# Tenant and Order Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def garden(db):
    return GardenFactory()


@pytest.fixture
def card(db, garden):
    return CardFactory(group=GardenGroupFactory(garden=garden))


@pytest.fixture
def garden_cards(db, garden):
    """Three cards spread over two groups of the same garden."""
    first, second = GardenGroupFactory(garden=garden), GardenGroupFactory(garden=garden)
    return [CardFactory(group=first), CardFactory(group=first), CardFactory(group=second)]


@pytest.fixture
def distributor(db, garden):
    """20% distributor attached to the garden, without a parent."""
    return DistributorFactory(gardens=[garden])


@pytest.fixture
def pending_order(db, card):
    return PaymentOrderFactory(card=card)


@pytest.fixture
def bulk_order(db, garden_cards):
    return PaymentOrderFactory.bulk(cards=garden_cards)


# =============================================================================
# Redis Fixtures
# =============================================================================


@pytest.fixture
def mock_redis(mocker):
    """
    Mock Redis client for distributed lock tests.

    Returns a MagicMock configured for basic lock operations.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.get.return_value = None
    mock_client.eval.return_value = 1

    mocker.patch("payments.locks.get_redis_connection", return_value=mock_client)

    return mock_client
