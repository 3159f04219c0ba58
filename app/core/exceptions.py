"""
Application error base classes.

Services raise BaseApplicationError subclasses for failures a caller can act
on. Each one carries a stable error_code, which is what API payloads and log
records key on, and a details dict of identifiers.

Hierarchy:
    BaseApplicationError
    └── ConflictError - lost a race (lock held elsewhere, state moved on)

Domain hierarchies build on these; see payments.exceptions.

Note:
    details must only hold values that are safe to log. Gateway credentials
    (bank order secrets, API keys) never go into message or details.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable description, returned to API clients verbatim
        error_code: Machine-readable code; defaults to default_error_code
        details: Identifiers that help locate the failing record
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = dict(details or {})

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            payload["details"] = self.details
        return payload


class ConflictError(BaseApplicationError):
    """The operation conflicts with what another worker is doing or has done."""

    default_error_code: str = "CONFLICT"
