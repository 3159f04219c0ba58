"""
Tests for TenantDirectory.
"""

import datetime
from decimal import Decimal

import pytest
from freezegun import freeze_time

from tenants.models import Card
from tenants.services import TenantDirectory, one_year_from
from tenants.tests.factories import (
    CardFactory,
    CountryFactory,
    DistributorFactory,
    GardenFactory,
    GardenGroupFactory,
)


class TestOneYearFrom:
    @pytest.mark.parametrize(
        "day,expected",
        [
            (datetime.date(2024, 3, 10), datetime.date(2025, 3, 10)),
            (datetime.date(2024, 2, 29), datetime.date(2025, 2, 28)),
            (datetime.date(2023, 12, 31), datetime.date(2024, 12, 31)),
        ],
    )
    def test_same_day_next_year(self, day, expected):
        assert one_year_from(day) == expected


@pytest.mark.django_db
class TestLookups:
    def test_missing_records_return_none(self):
        assert TenantDirectory.get_card(987654) is None
        assert TenantDirectory.get_card(None) is None
        assert TenantDirectory.get_garden(987654) is None
        assert TenantDirectory.garden_for_card(None) is None

    def test_garden_for_card(self):
        card = CardFactory()

        assert TenantDirectory.garden_for_card(card) == card.group.garden

    def test_card_without_group(self):
        assert TenantDirectory.garden_for_card(CardFactory(group=None)) is None

    def test_cards_in_garden(self):
        garden = GardenFactory()
        inside = [CardFactory(group=GardenGroupFactory(garden=garden)) for _ in range(2)]
        outside = CardFactory()

        cards, missing = TenantDirectory.cards_in_garden(
            garden, [inside[1].pk, outside.pk, inside[0].pk, 987654]
        )

        assert cards == [inside[1], inside[0]]
        assert missing == [outside.pk, 987654]


@pytest.mark.django_db
class TestFindDistributorForGarden:
    def test_member_distributor(self):
        garden = GardenFactory()
        DistributorFactory(country=garden.country)
        member = DistributorFactory(gardens=[garden])

        assert TenantDirectory.find_distributor_for_garden(garden) == member

    def test_country_fallback(self):
        garden = GardenFactory()
        by_country = DistributorFactory(country=garden.country)
        DistributorFactory(country=CountryFactory())

        assert TenantDirectory.find_distributor_for_garden(garden) == by_country

    def test_no_distributor(self):
        assert TenantDirectory.find_distributor_for_garden(GardenFactory()) is None
        assert TenantDirectory.find_distributor_for_garden(GardenFactory(country=None)) is None
        assert TenantDirectory.find_distributor_for_garden(None) is None

    def test_parent_loaded(self):
        garden = GardenFactory()
        parent = DistributorFactory(second_percent=Decimal("5.00"))
        DistributorFactory(parent=parent, gardens=[garden])

        distributor = TenantDirectory.find_distributor_for_garden(garden)

        assert distributor.parent == parent
        assert distributor.parent.second_percent == Decimal("5.00")


@pytest.mark.django_db
class TestRenewLicense:
    @freeze_time("2024-02-29 18:00:00")
    def test_sets_one_year_from_today(self):
        card = CardFactory()

        expires_at = TenantDirectory.renew_license(card.pk)

        assert expires_at == datetime.date(2025, 2, 28)
        assert Card.objects.get(pk=card.pk).license_expires_at == expires_at

    def test_does_not_stack(self):
        card = CardFactory(license_expires_at=datetime.date(2030, 1, 1))

        expires_at = TenantDirectory.renew_license(card.pk, today=datetime.date(2024, 5, 1))

        assert expires_at == datetime.date(2025, 5, 1)
        assert Card.objects.get(pk=card.pk).license_expires_at == datetime.date(2025, 5, 1)

    def test_missing_card(self):
        assert TenantDirectory.renew_license(987654) is None


@pytest.mark.django_db
class TestTariffForGarden:
    def test_country_tariff(self):
        garden = GardenFactory(country=CountryFactory(tariff=Decimal("15.00"), currency="USD"))

        assert TenantDirectory.tariff_for_garden(garden) == (Decimal("15.00"), "USD")

    def test_defaults(self, settings):
        settings.PAYMENT_DEFAULT_TARIFF = Decimal("10.00")
        settings.PAYMENT_DEFAULT_CURRENCY = "GEL"

        assert TenantDirectory.tariff_for_garden(None) == (Decimal("10.00"), "GEL")
        assert TenantDirectory.tariff_for_garden(GardenFactory(country=None)) == (Decimal("10.00"), "GEL")

    def test_country_without_tariff(self, settings):
        settings.PAYMENT_DEFAULT_TARIFF = Decimal("10.00")
        garden = GardenFactory(country=CountryFactory(tariff=None, currency="EUR"))

        assert TenantDirectory.tariff_for_garden(garden) == (Decimal("10.00"), "EUR")
