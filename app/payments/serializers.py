"""
DRF serializers for the payments API.

This module provides serializers for:
- Payment creation requests (single card or bulk)
- Payment creation responses
- Order status responses

Related files:
    - views.py: Payment API views
    - services/payment_orchestrator.py: InitiatePaymentParams

Security:
    - bank_order_id is read-only and bank_order_secret is never serialized
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from payments.models import PaymentOrder
from payments.state_machines import GatewayKind
from tenants.models import Card


class CreatePaymentSerializer(serializers.Serializer):
    """
    Request body for POST /api/v1/payments/.

    Either card_id (single order) or card_ids plus garden_id (bulk order).
    amount, unit_price and currency default to the garden's tariff.
    """

    gateway_kind = serializers.ChoiceField(choices=GatewayKind.choices, required=False)
    card_id = serializers.IntegerField(required=False, min_value=1)
    card_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        allow_empty=False,
        max_length=500,
    )
    garden_id = serializers.IntegerField(required=False, min_value=1)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
    )
    unit_price = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
    )
    currency = serializers.RegexField(r"^[A-Za-z]{3}$", required=False)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    return_url = serializers.URLField(required=False, allow_blank=True, default="")
    language = serializers.CharField(max_length=8, required=False, default="en")
    consumer_device = serializers.DictField(required=False)

    def validate(self, attrs):
        if attrs.get("card_id") is None and not attrs.get("card_ids"):
            raise serializers.ValidationError("Provide card_id or card_ids.")
        if attrs.get("card_id") is not None and attrs.get("card_ids"):
            raise serializers.ValidationError("Provide either card_id or card_ids, not both.")
        if attrs.get("card_ids") and attrs.get("garden_id") is None:
            raise serializers.ValidationError({"garden_id": ["Required for bulk payments."]})
        if attrs.get("unit_price") is not None and not attrs.get("card_ids"):
            raise serializers.ValidationError({"unit_price": ["Only valid for bulk payments."]})
        if attrs.get("currency"):
            attrs["currency"] = attrs["currency"].upper()
        return attrs


class PaymentCreatedSerializer(serializers.ModelSerializer):
    """Response body for a created payment."""

    status = serializers.CharField(source="state", read_only=True)
    redirect_url = serializers.SerializerMethodField()

    class Meta:
        model = PaymentOrder
        fields = [
            "order_id",
            "gateway_kind",
            "status",
            "amount",
            "currency",
            "redirect_url",
        ]
        read_only_fields = fields

    def get_redirect_url(self, obj):
        return self.context.get("redirect_url")


class BeneficiarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Card
        fields = ["id", "holder_name", "license_expires_at"]
        read_only_fields = fields


class PaymentStatusSerializer(serializers.ModelSerializer):
    """
    Response body for GET /api/v1/payments/<order_id>/status/.

    beneficiaries lists the single card, or every card of a bulk order.
    """

    status = serializers.CharField(source="state", read_only=True)
    is_bulk = serializers.BooleanField(read_only=True)
    beneficiaries = serializers.SerializerMethodField()

    class Meta:
        model = PaymentOrder
        fields = [
            "order_id",
            "bank_order_id",
            "gateway_kind",
            "status",
            "amount",
            "currency",
            "unit_price",
            "paid_at",
            "is_bulk",
            "beneficiaries",
        ]
        read_only_fields = fields

    def get_beneficiaries(self, obj):
        card_ids = obj.beneficiary_card_ids
        cards = {card.pk: card for card in Card.objects.filter(pk__in=card_ids)}
        return BeneficiarySerializer(
            [cards[card_id] for card_id in card_ids if card_id in cards],
            many=True,
        ).data
