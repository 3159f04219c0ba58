"""
Service layer building blocks.

Views, tasks and other services call class-level service methods. Expected
failures (a gateway refusing an order, a card outside the paying garden)
come back as ServiceResult.failure(...) with an error_code the caller can
branch on; programming errors raise.

    result = PaymentOrchestrator.initiate_payment(params)
    if not result.success:
        return Response(result.to_response(), status=ERROR_STATUS_CODES.get(result.error_code, 400))
    order = result.data.payment_order
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call: data on success, error and error_code otherwise.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def from_exception(cls, exc: Exception) -> ServiceResult[T]:
        """Failed result carrying an application error's message and code."""
        return cls(
            success=False,
            error=getattr(exc, "message", None) or str(exc),
            error_code=getattr(exc, "error_code", None) or type(exc).__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """Payload for a DRF Response."""
        if self.success:
            return {"success": True, "data": self.data}
        payload: dict[str, Any] = {"success": False, "error": self.error}
        if self.error_code:
            payload["error_code"] = self.error_code
        return payload


class BaseService:
    """
    Stateless service base: methods are class or static methods.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service, e.g. payments.services.x.PaymentOrchestrator."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """transaction.atomic(); a savepoint when already inside a transaction."""
        with transaction.atomic():
            yield
