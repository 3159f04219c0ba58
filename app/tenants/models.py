"""
Tenant models referenced by payment orders and settlement.

Models:
    Country: Pricing defaults (tariff, currency) for gardens in a country
    Distributor: Revenue-share intermediary, optionally under a parent distributor
    Garden: The tenant that collects payments
    GardenGroup: A group within a garden
    Card: The beneficiary record whose license a payment renews
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.models import BaseModel

PERCENT_VALIDATORS = [MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))]


class Country(BaseModel):
    """Country-level defaults used when pricing an order."""

    name = models.CharField(max_length=100)
    code = models.CharField(max_length=2, unique=True)
    currency = models.CharField(
        max_length=3,
        default="GEL",
        help_text="ISO 4217 currency used by the country's payment gateway",
    )
    tariff = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Price of one card license; the global default applies when empty",
    )

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "countries"

    def __str__(self) -> str:
        return self.name


class Distributor(BaseModel):
    """
    Revenue-share intermediary for a set of gardens.

    percent is this distributor's own share of every gross payment.
    second_percent is the share this distributor takes when it acts as the
    parent of another distributor that settles a payment.
    """

    name = models.CharField(max_length=255)
    country = models.ForeignKey(
        Country,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="distributors",
        help_text="Distributors of a country act as fallback for gardens without one",
    )
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="sub_distributors",
    )
    percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0"),
        validators=PERCENT_VALIDATORS,
    )
    second_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0"),
        validators=PERCENT_VALIDATORS,
    )
    gardens = models.ManyToManyField(
        "tenants.Garden",
        blank=True,
        related_name="distributors",
    )

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return self.name


class Garden(BaseModel):
    """The tenant: collects card payments and holds a balance."""

    name = models.CharField(max_length=255)
    country = models.ForeignKey(
        Country,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="gardens",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class GardenGroup(BaseModel):
    name = models.CharField(max_length=255)
    garden = models.ForeignKey(
        Garden,
        on_delete=models.CASCADE,
        related_name="groups",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.garden.name} / {self.name}"


class Card(BaseModel):
    """
    A card holder's subscription record.

    license_expires_at is the entitlement window; a settled payment sets it
    to one year from the settlement date.
    """

    holder_name = models.CharField(max_length=255)
    group = models.ForeignKey(
        GardenGroup,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cards",
    )
    license_expires_at = models.DateField(null=True, blank=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return self.holder_name

    @property
    def garden(self) -> Garden | None:
        return self.group.garden if self.group_id else None
