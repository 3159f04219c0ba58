"""
Adapter for the bearer-token REST gateway.

Requests carry `Authorization: Bearer <api_key>`; amounts travel in minor
units. Order creation answers with a transaction id and usually a redirect
URL. When the redirect is missing, the payer is sent to the configured
payment page with the transaction id, and the status is learned by polling.

Configuration (settings.PAYMENT_GATEWAYS["bearer_token"]):
    api_key: API key sent as bearer token
    order_url: POST endpoint creating orders
    status_url: GET endpoint template containing "{bank_order_id}"
    payment_page_url: Fallback hosted page when no redirect URL is returned
    callback_url: Where the gateway posts status callbacks
    timeout: Seconds per request (default 30)
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from payments.adapters.base import (
    CreateOrderParams,
    CreateOrderResult,
    GatewayAdapter,
    OrderDetailsResult,
    build_redirect_url,
    scrub_secrets,
)
from payments.exceptions import GatewayConfigurationError, GatewayInvalidResponseError
from payments.ledger.types import to_minor_units
from payments.state_machines import GatewayKind


class BearerTokenGatewayAdapter(GatewayAdapter):
    """Gateway authenticated with a static API key."""

    kind = GatewayKind.BEARER_TOKEN
    requires_order_secret = False

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config['api_key']}",
            "Accept": "application/json",
        }

    def _require(self, *keys: str) -> None:
        for key in keys:
            if not self.config.get(key):
                raise GatewayConfigurationError(
                    f"Bearer token gateway setting '{key}' is not configured",
                    gateway_kind=self.kind.value,
                    details={"setting": key},
                )

    def create_order(self, params: CreateOrderParams) -> CreateOrderResult:
        self._require("api_key", "order_url")
        order_url = self.config["order_url"]
        self._reject_placeholder(order_url)

        body: dict[str, Any] = {
            "external_order_id": params.order_id,
            "amount": to_minor_units(params.amount, params.currency),
            "currency": params.currency,
            "description": params.description or "Order",
            "locale": params.language,
        }
        if self.config.get("callback_url"):
            body["callback_url"] = self.config["callback_url"]
        return_url = params.return_url or self.config.get("return_url")
        if return_url:
            body["redirect_url"] = return_url

        payload = self._request_json(
            "POST",
            order_url,
            log_context={"endpoint": order_url, "local_order_id": params.order_id},
            json=body,
            headers=self._headers(),
        )

        bank_order_id = payload.get("id") or payload.get("order_id") or payload.get("transaction_id")
        if not bank_order_id:
            raise GatewayInvalidResponseError(
                "Gateway response is missing the transaction id",
                gateway_kind=self.kind.value,
                details={"keys": sorted(payload)},
            )
        bank_order_id = str(bank_order_id)

        redirect_url = payload.get("redirect_url")
        if not redirect_url:
            redirect_url = (
                payload.get("_links", {}).get("redirect", {}).get("href")
                if isinstance(payload.get("_links"), dict)
                else None
            )
        payment_page_url = self.config.get("payment_page_url") or None
        if not redirect_url and payment_page_url:
            redirect_url = build_redirect_url(payment_page_url, bank_order_id)

        return CreateOrderResult(
            bank_order_id=bank_order_id,
            bank_order_secret=None,
            payment_page_url=payment_page_url,
            redirect_url=redirect_url,
            raw_response=scrub_secrets(payload),
        )

    def get_order_details(
        self,
        bank_order_id: str,
        bank_order_secret: str | None = None,
    ) -> OrderDetailsResult:
        self._require("api_key", "status_url")
        status_url = self.config["status_url"].format(bank_order_id=quote(str(bank_order_id), safe=""))
        self._reject_placeholder(status_url)

        payload = self._request_json(
            "GET",
            status_url,
            log_context={"endpoint": status_url, "bank_order_id": bank_order_id},
            headers=self._headers(),
        )

        raw_status = payload.get("status")
        if raw_status is None and isinstance(payload.get("order_status"), dict):
            raw_status = payload["order_status"].get("key")
        if raw_status is None:
            raise GatewayInvalidResponseError(
                "Gateway order details are missing the status",
                gateway_kind=self.kind.value,
                details={"bank_order_id": bank_order_id},
            )

        return OrderDetailsResult(
            bank_order_id=str(bank_order_id),
            raw_status=str(raw_status),
            raw_payload=scrub_secrets(payload),
        )
