import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentOrder",
            fields=[
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
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        help_text="Platform-generated order id (e.g. MTG_K3J9X2QA_1700000000)",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "gateway_kind",
                    models.CharField(
                        choices=[
                            ("bearer_token", "Bearer Token Gateway"),
                            ("mutual_tls", "Mutual TLS Gateway"),
                        ],
                        help_text="Gateway the order was placed with",
                        max_length=20,
                    ),
                ),
                (
                    "bank_order_id",
                    models.CharField(
                        blank=True,
                        help_text="Order id assigned by the gateway",
                        max_length=128,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "bank_order_secret",
                    models.CharField(
                        blank=True,
                        help_text="One-time secret required to query the gateway; never logged",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Gross amount charged to the payer",
                        max_digits=12,
                    ),
                ),
                (
                    "currency",
                    models.CharField(default="GEL", help_text="ISO 4217 currency code", max_length=3),
                ),
                (
                    "unit_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Per-card price of a bulk order",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Canonical payment status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "bulk_card_ids",
                    models.JSONField(blank=True, default=list, help_text="Card ids paid for by a bulk order"),
                ),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("version", models.PositiveIntegerField(default=1, help_text="Incremented on each save")),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Gateway payloads, callbacks and settlement audit",
                    ),
                ),
                ("failure_reason", models.TextField(blank=True, null=True)),
                (
                    "payer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "garden",
                    models.ForeignKey(
                        blank=True,
                        help_text="Tenant collecting the payment; derived from the card when empty",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_orders",
                        to="tenants.garden",
                    ),
                ),
                (
                    "card",
                    models.ForeignKey(
                        blank=True,
                        help_text="Card paid for by a single order",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_orders",
                        to="tenants.card",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Order",
                "verbose_name_plural": "Payment Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["state", "created_at"], name="pay_order_state_created_idx"),
                    models.Index(fields=["garden", "state"], name="pay_order_garden_state_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_order_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BalanceAccount",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "account_type",
                    models.CharField(
                        choices=[
                            ("garden", "Garden"),
                            ("distributor", "Distributor"),
                            ("platform", "Platform"),
                        ],
                        help_text="Kind of owner holding this balance",
                        max_length=20,
                    ),
                ),
                (
                    "owner_id",
                    models.CharField(
                        help_text="Primary key of the owning garden/distributor, or the platform reference",
                        max_length=64,
                    ),
                ),
                ("currency", models.CharField(default="GEL", help_text="ISO 4217 currency code", max_length=3)),
                (
                    "balance",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Current balance; changed only by atomic increments",
                        max_digits=14,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("account_type", "owner_id", "currency"),
                        name="unique_balance_account_per_owner",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("balance__gte", 0)),
                        name="balance_account_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BalanceCredit",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("garden_gross", "Garden Gross Amount"),
                            ("distributor_share", "Distributor Share"),
                            ("sub_distributor_share", "Sub-Distributor Share"),
                            ("admin_share", "Admin Share"),
                        ],
                        max_length=30,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("idempotency_key", models.CharField(max_length=255, unique=True)),
                ("description", models.TextField(blank=True, default="")),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="credits",
                        to="payments.balanceaccount",
                    ),
                ),
                (
                    "payment_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balance_credits",
                        to="payments.paymentorder",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="balance_credit_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(max_length=3)),
                (
                    "gateway_ref",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Bank order id the payment was settled against",
                        max_length=255,
                    ),
                ),
                ("settlement_key", models.CharField(max_length=255, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "payment_order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="payments.paymentorder",
                    ),
                ),
                (
                    "card",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="tenants.card",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "ledger entries",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["payment_order", "card"], name="ledger_entry_order_card_idx"),
                ],
            },
        ),
    ]
