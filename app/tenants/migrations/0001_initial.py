import decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def _percent_field():
    return models.DecimalField(
        decimal_places=2,
        default=decimal.Decimal("0"),
        max_digits=5,
        validators=[
            django.core.validators.MinValueValidator(decimal.Decimal("0")),
            django.core.validators.MaxValueValidator(decimal.Decimal("100")),
        ],
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Country",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                ("name", models.CharField(max_length=100)),
                ("code", models.CharField(max_length=2, unique=True)),
                (
                    "currency",
                    models.CharField(
                        default="GEL",
                        help_text="ISO 4217 currency used by the country's payment gateway",
                        max_length=3,
                    ),
                ),
                (
                    "tariff",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Price of one card license; the global default applies when empty",
                        max_digits=10,
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "countries",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Garden",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                ("name", models.CharField(max_length=255)),
                (
                    "country",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="gardens",
                        to="tenants.country",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="GardenGroup",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                ("name", models.CharField(max_length=255)),
                (
                    "garden",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="groups",
                        to="tenants.garden",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Card",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                ("holder_name", models.CharField(max_length=255)),
                ("license_expires_at", models.DateField(blank=True, null=True)),
                (
                    "group",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="cards",
                        to="tenants.gardengroup",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="Distributor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_timestamps(),
                ("name", models.CharField(max_length=255)),
                ("percent", _percent_field()),
                ("second_percent", _percent_field()),
                (
                    "country",
                    models.ForeignKey(
                        blank=True,
                        help_text="Distributors of a country act as fallback for gardens without one",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="distributors",
                        to="tenants.country",
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sub_distributors",
                        to="tenants.distributor",
                    ),
                ),
                (
                    "gardens",
                    models.ManyToManyField(
                        blank=True,
                        related_name="distributors",
                        to="tenants.garden",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
            },
        ),
    ]
