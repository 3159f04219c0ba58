"""
Fixtures for gateway adapter tests.

`recorder` is an httpx.MockTransport handler that stores every request and
answers with whatever the test queued.
"""

import httpx
import pytest


class Recorder:
    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list = []

    def queue(self, response_or_exc):
        """Queue an httpx.Response, or an exception to raise."""
        self.responses.append(response_or_exc)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    @property
    def transport(self):
        return httpx.MockTransport(self)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def tls_files(tmp_path):
    paths = {}
    for name in ("client.crt", "client.key", "ca.pem"):
        path = tmp_path / name
        path.write_text("-----BEGIN TEST-----\n")
        paths[name] = str(path)
    return paths


@pytest.fixture
def mtls_config(tls_files):
    return {
        "order_endpoint": "https://mtls.test/api/order",
        "cert_path": tls_files["client.crt"],
        "key_path": tls_files["client.key"],
        "ca_path": tls_files["ca.pem"],
        "verify_peer": True,
        "type_rid": "ORD1",
        "language": "ka",
        "return_url": "https://platform.test/return",
        "timeout": 5,
    }


@pytest.fixture
def bearer_config():
    return {
        "api_key": "test-api-key",
        "order_url": "https://gw.test/v1/orders",
        "status_url": "https://gw.test/v1/orders/{bank_order_id}",
        "payment_page_url": "https://gw.test/pay",
        "callback_url": "https://platform.test/api/v1/payments/callback/",
        "timeout": 5,
    }
