"""
Abstract models shared by the tenants and payments apps.

    BaseModel            created_at / updated_at timestamps
    UUIDPrimaryKeyMixin  random UUID primary key for financial records

Payment orders and ledger rows show up in URLs, callbacks and log lines,
so they use UUID keys; tenant records keep integer keys because gateways
and API clients refer to cards and gardens by number.

    class PaymentOrder(UUIDPrimaryKeyMixin, BaseModel):
        ...
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID v4)",
    )

    class Meta:
        abstract = True


class BaseModel(models.Model):
    """Creation and last-modification timestamps, newest rows first."""

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]
