"""
Payment API views.

This module provides API views for:
- Payment creation (single card or bulk)
- Gateway callbacks
- Order status polling after the payer returns from the hosted page

Related files:
    - serializers.py: Request/response serialization
    - services/: PaymentOrchestrator and PaymentStatusResolver
    - urls.py: URL routing
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.serializers import (
    CreatePaymentSerializer,
    PaymentCreatedSerializer,
    PaymentStatusSerializer,
)
from payments.services import InitiatePaymentParams, PaymentOrchestrator, PaymentStatusResolver


# ServiceResult error codes that are not client errors
ERROR_STATUS_CODES = {
    "GATEWAY_NOT_CONFIGURED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "GATEWAY_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_ERROR": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_PROTOCOL_ERROR": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_INVALID_RESPONSE": status.HTTP_502_BAD_GATEWAY,
    "ORDER_ID_EXHAUSTED": status.HTTP_503_SERVICE_UNAVAILABLE,
}


class CreatePaymentView(APIView):
    """
    POST: Create a payment order and return the payer redirect URL

    URL: /api/v1/payments/

    Request body:
        {
            "gateway_kind": "mutual_tls",
            "card_id": 42,
            "amount": "25.00",
            "currency": "GEL"
        }

    Returns (201):
        {
            "order_id": "MTG_K3J9X2QA_1700000000",
            "status": "pending",
            "redirect_url": "https://hpp.bank.ge/flex?id=...&password=...",
            ...
        }
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CreatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PaymentOrchestrator.initiate_payment(
            InitiatePaymentParams(payer=request.user, **serializer.validated_data)
        )
        if not result.success:
            return Response(
                result.to_response(),
                status=ERROR_STATUS_CODES.get(result.error_code, status.HTTP_400_BAD_REQUEST),
            )

        data = PaymentCreatedSerializer(
            result.data.payment_order,
            context={"redirect_url": result.data.redirect_url},
        ).data
        return Response(data, status=status.HTTP_201_CREATED)


class PaymentCallbackView(APIView):
    """
    GET/POST: Gateway status notification

    URL: /api/v1/payments/callback/

    Accepts bank_order_id or order_id plus status, as query parameters or
    a JSON/form body. Returns {"success": true} when the callback matched
    an order, 404 otherwise.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return self._handle(request.query_params.dict())

    def post(self, request):
        payload = request.query_params.dict()
        if hasattr(request.data, "dict"):
            payload.update(request.data.dict())
        elif isinstance(request.data, dict):
            payload.update(request.data)
        return self._handle(payload)

    def _handle(self, payload):
        if not payload:
            return Response(
                {"success": False, "error": "Empty callback"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if PaymentStatusResolver.handle_callback(payload):
            return Response({"success": True})
        return Response(
            {"success": False, "error": "Payment order not found"},
            status=status.HTTP_404_NOT_FOUND,
        )


class PaymentStatusView(APIView):
    """
    GET: Resolve and return an order's status

    URL: /api/v1/payments/<order_id>/status/?hint_status=success

    hint_status is the status the hosted page appended to the return URL.
    It is only used when the gateway cannot be asked directly.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, order_id):
        hint_status = request.query_params.get("hint_status") or None
        order = PaymentStatusResolver.resolve_order(order_id, hint_status=hint_status)
        if order is None:
            return Response(
                {"success": False, "error": "Payment order not found", "error_code": "PAYMENT_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(PaymentStatusSerializer(order).data)
