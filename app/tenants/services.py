"""
Lookup and entitlement services for tenant records.

TenantDirectory is the only way the payments app reads gardens, cards and
distributors. Every lookup returns None for a missing record so that the
settlement engine can decide whether to skip a sub-step.

Usage:
    from tenants.services import TenantDirectory

    garden = TenantDirectory.garden_for_card(card)
    distributor = TenantDirectory.find_distributor_for_garden(garden)
    TenantDirectory.renew_license(card.id)
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.services import BaseService
from tenants.models import Card, Distributor, Garden

if TYPE_CHECKING:
    from collections.abc import Iterable


def one_year_from(day: datetime.date) -> datetime.date:
    """Same calendar day next year; 29 February becomes 28 February."""
    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        return day.replace(year=day.year + 1, day=28)


class TenantDirectory(BaseService):
    """Read access to tenant records plus the license renewal primitive."""

    @staticmethod
    def get_card(card_id) -> Card | None:
        if card_id is None:
            return None
        return Card.objects.select_related("group__garden__country").filter(pk=card_id).first()

    @staticmethod
    def get_garden(garden_id) -> Garden | None:
        if garden_id is None:
            return None
        return Garden.objects.select_related("country").filter(pk=garden_id).first()

    @staticmethod
    def garden_for_card(card: Card | None) -> Garden | None:
        """Follow card -> group -> garden."""
        if card is None or card.group_id is None:
            return None
        return card.group.garden

    @staticmethod
    def cards_in_garden(garden: Garden, card_ids: Iterable[int]) -> tuple[list[Card], list[int]]:
        """
        Split card ids into cards that belong to the garden and ids that don't.

        Returns:
            (cards in the garden, ordered like card_ids; ids outside the garden)
        """
        wanted = [int(card_id) for card_id in card_ids]
        found = {
            card.pk: card
            for card in Card.objects.filter(pk__in=wanted, group__garden=garden)
        }
        cards = [found[card_id] for card_id in wanted if card_id in found]
        missing = [card_id for card_id in wanted if card_id not in found]
        return cards, missing

    @classmethod
    def find_distributor_for_garden(cls, garden: Garden | None) -> Distributor | None:
        """
        Resolve the distributor that shares revenue for a garden.

        A distributor that lists the garden among its gardens wins; otherwise
        the first distributor registered for the garden's country is used.
        """
        if garden is None:
            return None

        distributor = (
            Distributor.objects.select_related("parent")
            .filter(gardens=garden)
            .order_by("id")
            .first()
        )
        if distributor is not None:
            return distributor

        if garden.country_id is None:
            return None

        distributor = (
            Distributor.objects.select_related("parent")
            .filter(country_id=garden.country_id)
            .order_by("id")
            .first()
        )
        if distributor is not None:
            cls.get_logger().info(
                "Using country distributor for garden",
                extra={"garden_id": garden.pk, "distributor_id": distributor.pk},
            )
        return distributor

    @classmethod
    def renew_license(cls, card_id, today: datetime.date | None = None) -> datetime.date | None:
        """
        Set a card's license to expire one year from today.

        The previous expiry is ignored: renewals do not stack.

        Returns:
            The new expiry date, or None when the card does not exist
        """
        expires_at = one_year_from(today or timezone.localdate())
        updated = Card.objects.filter(pk=card_id).update(
            license_expires_at=expires_at,
            updated_at=timezone.now(),
        )
        if not updated:
            return None

        cls.get_logger().info(
            "Renewed card license",
            extra={"card_id": card_id, "license_expires_at": expires_at.isoformat()},
        )
        return expires_at

    @staticmethod
    def tariff_for_garden(garden: Garden | None) -> tuple[Decimal, str]:
        """
        Price of one card license and the currency it is charged in.

        Falls back to PAYMENT_DEFAULT_TARIFF / PAYMENT_DEFAULT_CURRENCY when the
        garden has no country or the country has no tariff.
        """
        tariff = Decimal(settings.PAYMENT_DEFAULT_TARIFF)
        currency = settings.PAYMENT_DEFAULT_CURRENCY

        country = garden.country if garden is not None and garden.country_id else None
        if country is not None:
            if country.tariff is not None and country.tariff > 0:
                tariff = country.tariff
            if country.currency:
                currency = country.currency

        return tariff, currency
