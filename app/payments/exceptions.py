"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentValidationError - Order request validation failures
    ├── PaymentProcessingError - Payment processing failures
    │   └── GatewayError - Base for all gateway errors (carries is_retryable)
    │       ├── GatewayConfigurationError - Missing endpoint/credentials/TLS files (permanent)
    │       ├── GatewayTransportError - Connection, TLS handshake or timeout (transient, retry)
    │       └── GatewayProtocolError - Non-2xx status or unparseable body (permanent)
    │           └── GatewayInvalidResponseError - Well-formed body missing required fields
    └── SettlementPartialFailure - One settlement sub-step could not run

    LockAcquisitionError - Distributed lock unavailable (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import GatewayError, GatewayConfigurationError

    try:
        adapter.create_order(params)
    except GatewayConfigurationError as e:
        # Surface verbatim, never retried automatically
        ...
    except GatewayError as e:
        if e.is_retryable:
            ...

Note:
    Messages and details never contain a bank order secret; adapters build
    them from endpoint, status code and bank order id only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for all payment operations."""

    default_error_code: str = "PAYMENT_ERROR"


class PaymentValidationError(PaymentError):
    """
    Raised when a payment request fails business validation.

    Example:
        raise PaymentValidationError(
            "Some cards do not belong to this garden",
            error_code="CARDS_NOT_IN_GARDEN",
            details={"card_ids": missing},
        )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentProcessingError(PaymentError):
    """Raised when payment processing fails."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


class SettlementPartialFailure(PaymentError):
    """
    Raised by a settlement sub-step that cannot run.

    The settlement engine catches it, records the skipped step in the
    order's audit metadata and carries on with the remaining steps. The
    order stays completed.

    Attributes:
        step: Name of the skipped sub-step (e.g. "tenant_credit")
    """

    default_error_code: str = "SETTLEMENT_PARTIAL_FAILURE"

    def __init__(
        self,
        message: str,
        step: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        details["step"] = step
        super().__init__(message, error_code=error_code, details=details)
        self.step = step


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentProcessingError):
    """
    Base exception for payment gateway failures.

    Use is_retryable to decide what the caller does next:
    - True: transient, the order stays pending and is polled again later
    - False: permanent for this attempt, surface the message
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway_kind: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway_kind:
            details["gateway_kind"] = gateway_kind
        super().__init__(message, error_code=error_code, details=details)
        self.gateway_kind = gateway_kind


class GatewayConfigurationError(GatewayError):
    """
    Gateway cannot be called with the current configuration.

    Raised before any network I/O for an unset endpoint, an endpoint still
    pointing at the placeholder host, or certificate files that are missing
    or unreadable.
    """

    default_error_code: str = "GATEWAY_NOT_CONFIGURED"
    is_retryable: bool = False


class GatewayTransportError(GatewayError):
    """
    Connection failure, TLS handshake failure or timeout.

    Callers treat this as "still pending": the bank may have accepted the
    request, so the order is re-polled rather than failed.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayProtocolError(GatewayError):
    """
    Gateway answered with a non-2xx status or a body that is not JSON.

    Attributes:
        status_code: HTTP status returned by the gateway
        response_body: Raw body, truncated, for the log
    """

    default_error_code: str = "GATEWAY_PROTOCOL_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway_kind: str | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message,
            error_code=error_code,
            gateway_kind=gateway_kind,
            details=details,
        )
        self.status_code = status_code
        self.response_body = response_body


class GatewayInvalidResponseError(GatewayProtocolError):
    """Gateway returned valid JSON that lacks a required field."""

    default_error_code: str = "GATEWAY_INVALID_RESPONSE"


# =============================================================================
# Concurrency Exceptions
# =============================================================================


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Example:
        with DistributedLock("payments:reconcile", ttl=600, blocking=False):
            ...  # raises if another worker is already reconciling
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a payment order transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed with the standard error payload.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"
