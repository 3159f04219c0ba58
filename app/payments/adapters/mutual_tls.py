"""
Adapter for the mutual-TLS REST gateway.

Every request presents a client certificate and private key and verifies
the bank against a configured CA bundle. Order creation returns a bank
order id, a one-time password and the hosted payment page URL; the password
must accompany every later status query.

Before any network call the adapter checks, in order:
    1. the order endpoint is set
    2. the endpoint is not the placeholder host from the onboarding docs
    3. certificate, key and CA files are configured, exist and are readable
Each failure raises GatewayConfigurationError.

Configuration (settings.PAYMENT_GATEWAYS["mutual_tls"]):
    order_endpoint, cert_path, key_path, ca_path, verify_peer,
    type_rid (default "ORD1"), language (default "en"), return_url, timeout
"""

from __future__ import annotations

import os
import ssl
from typing import Any
from urllib.parse import quote

import httpx

from payments.adapters.base import (
    CreateOrderParams,
    CreateOrderResult,
    GatewayAdapter,
    OrderDetailsResult,
    build_redirect_url,
    scrub_secrets,
)
from payments.exceptions import GatewayConfigurationError, GatewayInvalidResponseError
from payments.state_machines import GatewayKind

DEFAULT_CONSUMER_DEVICE = {
    "browser": {
        "javaEnabled": False,
        "jsEnabled": True,
        "acceptHeader": "application/json,application/jose;charset=utf-8",
        "ip": "127.0.0.1",
        "colorDepth": "24",
        "screenW": "1080",
        "screenH": "1920",
        "tzOffset": "-240",
        "language": "en-EN",
        "userAgent": "Mozilla/5.0 (compatible; GardenPayments/1.0)",
    },
}


class MutualTLSGatewayAdapter(GatewayAdapter):
    """Gateway authenticated with a client certificate."""

    kind = GatewayKind.MUTUAL_TLS
    requires_order_secret = True

    # =========================================================================
    # Configuration checks
    # =========================================================================

    @property
    def order_endpoint(self) -> str:
        return (self.config.get("order_endpoint") or "").rstrip("/")

    def _certificate_files(self) -> list[tuple[str, str]]:
        return [
            ("client certificate", self.config.get("cert_path") or ""),
            ("private key", self.config.get("key_path") or ""),
            ("CA bundle", self.config.get("ca_path") or ""),
        ]

    def check_configuration(self) -> None:
        """
        Raise GatewayConfigurationError unless a request could be attempted.
        """
        if not self.order_endpoint:
            raise GatewayConfigurationError(
                "Mutual TLS gateway order endpoint is not configured",
                gateway_kind=self.kind.value,
            )
        self._reject_placeholder(self.order_endpoint)

        for label, path in self._certificate_files():
            if not path:
                raise GatewayConfigurationError(
                    f"Mutual TLS gateway {label} path is not configured",
                    gateway_kind=self.kind.value,
                    details={"file": label},
                )
            if not os.path.isfile(path):
                raise GatewayConfigurationError(
                    f"Mutual TLS gateway {label} file not found: {path}",
                    gateway_kind=self.kind.value,
                    details={"file": label, "path": path},
                )
            if not os.access(path, os.R_OK):
                raise GatewayConfigurationError(
                    f"Mutual TLS gateway {label} file is not readable: {path}",
                    gateway_kind=self.kind.value,
                    details={"file": label, "path": path},
                )

    def _build_client(self) -> httpx.Client:
        if self._transport is not None:
            return httpx.Client(transport=self._transport, timeout=self.timeout)

        try:
            context = ssl.create_default_context(cafile=self.config["ca_path"])
            if not self.config.get("verify_peer", True):
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            context.load_cert_chain(self.config["cert_path"], self.config["key_path"])
        except (ssl.SSLError, OSError) as exc:
            raise GatewayConfigurationError(
                f"Mutual TLS gateway certificates could not be loaded ({type(exc).__name__})",
                gateway_kind=self.kind.value,
            ) from exc
        return httpx.Client(verify=context, timeout=self.timeout)

    # =========================================================================
    # Operations
    # =========================================================================

    def create_order(self, params: CreateOrderParams) -> CreateOrderResult:
        self.check_configuration()

        body: dict[str, Any] = {
            "order": {
                "typeRid": self.config.get("type_rid") or "ORD1",
                "amount": f"{params.amount:.2f}",
                "currency": params.currency,
                "description": params.description or "Order",
                "language": params.language or self.config.get("language") or "en",
                "hppRedirectUrl": params.return_url or self.config.get("return_url") or "",
                "initiationEnvKind": "Browser",
                "consumerDevice": params.consumer_device or DEFAULT_CONSUMER_DEVICE,
            },
        }

        payload = self._request_json(
            "POST",
            self.order_endpoint,
            log_context={"endpoint": self.order_endpoint, "local_order_id": params.order_id},
            json=body,
            headers={"Accept": "application/json"},
        )

        order = payload.get("order")
        if not isinstance(order, dict):
            raise GatewayInvalidResponseError(
                "Invalid response from gateway: 'order' object is missing",
                gateway_kind=self.kind.value,
                details={"keys": sorted(payload)},
            )
        missing = [key for key in ("id", "password", "hppUrl") if not order.get(key)]
        if missing:
            raise GatewayInvalidResponseError(
                f"Invalid response from gateway: order is missing {', '.join(missing)}",
                gateway_kind=self.kind.value,
                details={"missing": missing},
            )

        bank_order_id = str(order["id"])
        bank_order_secret = str(order["password"])
        payment_page_url = str(order["hppUrl"])

        return CreateOrderResult(
            bank_order_id=bank_order_id,
            bank_order_secret=bank_order_secret,
            payment_page_url=payment_page_url,
            redirect_url=build_redirect_url(payment_page_url, bank_order_id, bank_order_secret),
            raw_response=scrub_secrets(payload),
        )

    def get_order_details(
        self,
        bank_order_id: str,
        bank_order_secret: str | None = None,
    ) -> OrderDetailsResult:
        self.check_configuration()
        if not bank_order_secret:
            raise GatewayConfigurationError(
                "Mutual TLS gateway status queries require the order password",
                gateway_kind=self.kind.value,
                details={"bank_order_id": bank_order_id},
            )

        url = f"{self.order_endpoint}/{quote(str(bank_order_id), safe='')}"
        payload = self._request_json(
            "GET",
            url,
            log_context={"endpoint": self.order_endpoint, "bank_order_id": bank_order_id},
            params={
                "password": bank_order_secret,
                "tokenDetailLevel": 2,
                "tranDetailLevel": 1,
            },
            headers={"Accept": "application/json"},
        )

        order = payload.get("order")
        if not isinstance(order, dict) or order.get("status") in (None, ""):
            raise GatewayInvalidResponseError(
                "Invalid response from gateway: order status is missing",
                gateway_kind=self.kind.value,
                details={"bank_order_id": bank_order_id},
            )

        return OrderDetailsResult(
            bank_order_id=str(bank_order_id),
            raw_status=str(order["status"]),
            raw_payload=scrub_secrets(payload),
        )
