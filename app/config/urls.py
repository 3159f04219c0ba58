"""
URL configuration for the payment settlement backend.

URL Structure:
    /health/                                  - Health check endpoint
    /api/v1/payments/                         - Create a payment order (POST)
    /api/v1/payments/callback/                - Gateway callback (GET/POST)
    /api/v1/payments/<order_id>/status/       - Resolve order status (GET)
"""

from django.http import JsonResponse
from django.urls import include, path


def health_check(request):
    """Liveness probe for load balancers."""
    return JsonResponse({"status": "ok"})


api_v1_patterns = [
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]
