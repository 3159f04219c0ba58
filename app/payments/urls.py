"""
URL configuration for the payments app.

Routes:
    - POST /                      - Create a payment order
    - GET|POST /callback/         - Gateway status callback
    - GET /<order_id>/status/     - Resolve an order's status

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import path

from payments.views import CreatePaymentView, PaymentCallbackView, PaymentStatusView

app_name = "payments"

urlpatterns = [
    path("", CreatePaymentView.as_view(), name="create"),
    path("callback/", PaymentCallbackView.as_view(), name="callback"),
    path("<str:order_id>/status/", PaymentStatusView.as_view(), name="status"),
]
