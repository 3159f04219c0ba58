"""
Money types and percentage arithmetic for settlement.

All amounts are Decimals with two fractional digits. Floats never enter the
ledger: inputs are converted through str() before quantizing.

Types:
    Money: A Decimal amount with its currency
    RevenueSplit: Admin / distributor / sub-distributor shares of a gross amount
    CreditParams: Parameters for one balance credit

Usage:
    from payments.ledger.types import compute_revenue_split, to_minor_units

    split = compute_revenue_split(Decimal("25.00"), Decimal("20"), Decimal("5"))
    split.distributor_amount      # Decimal("5.00")
    split.sub_distributor_amount  # Decimal("1.25")
    split.admin_amount            # Decimal("18.75")

    to_minor_units(Decimal("25.00"), "GEL")  # 2500
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0.00")

# ISO 4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK", "UGX"})


def to_decimal(value: Any) -> Decimal:
    """
    Convert int, str, float or Decimal into a Decimal.

    Raises:
        ValueError: For values that are not numbers
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc


def quantize_amount(value: Any, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round to whole cents."""
    return to_decimal(value).quantize(CENT, rounding=rounding)


def minor_unit_exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_minor_units(amount: Any, currency: str) -> int:
    """Decimal amount to an integer count of minor units (tetri, cents)."""
    exponent = minor_unit_exponent(currency)
    scaled = to_decimal(amount) * (Decimal(10) ** exponent)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: Any, percent: Any) -> Decimal:
    """
    percent% of amount, rounded down to the cent.

    Shares owed to third parties round down so that the platform, which
    takes the remainder, never pays out more than it received.
    """
    raw = to_decimal(amount) * to_decimal(percent) / HUNDRED
    return raw.quantize(CENT, rounding=ROUND_DOWN)


@dataclass(frozen=True)
class Money:
    """
    A monetary amount in major units with its ISO 4217 currency.

    Example:
        Money(Decimal("25.00"), "GEL") + Money(Decimal("1.50"), "GEL")
        # Money(amount=Decimal('26.50'), currency='GEL')
    """

    amount: Decimal
    currency: str = "GEL"

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", quantize_amount(self.amount))
        object.__setattr__(self, "currency", self.currency.upper())

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency}"

    def _check_currency(self, other: Money, operation: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {operation} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    @property
    def minor_units(self) -> int:
        return to_minor_units(self.amount, self.currency)


@dataclass(frozen=True)
class RevenueSplit:
    """
    How one gross payment is divided between platform and distributors.

    Invariant: admin_amount + distributor_amount + sub_distributor_amount
    equals gross_amount to the cent. The admin amount carries the rounding
    residue.
    """

    gross_amount: Decimal
    distributor_percent: Decimal
    sub_distributor_percent: Decimal
    admin_percent: Decimal
    distributor_amount: Decimal
    sub_distributor_amount: Decimal
    admin_amount: Decimal

    @property
    def total(self) -> Decimal:
        return self.admin_amount + self.distributor_amount + self.sub_distributor_amount

    def to_dict(self) -> dict[str, str]:
        """JSON-safe form stored in the order's settlement audit."""
        return {
            "gross_amount": str(self.gross_amount),
            "distributor_percent": str(self.distributor_percent),
            "sub_distributor_percent": str(self.sub_distributor_percent),
            "admin_percent": str(self.admin_percent),
            "distributor_amount": str(self.distributor_amount),
            "sub_distributor_amount": str(self.sub_distributor_amount),
            "admin_amount": str(self.admin_amount),
        }


def compute_revenue_split(
    gross_amount: Any,
    distributor_percent: Any = ZERO,
    sub_distributor_percent: Any = ZERO,
) -> RevenueSplit:
    """
    Split a gross amount into admin, distributor and sub-distributor shares.

    Negative percents count as zero. When the two distributor shares add up
    to more than the gross amount, the sub-distributor share is capped so
    the three amounts still sum to the gross.

    Args:
        gross_amount: Amount paid by the payer
        distributor_percent: Primary distributor's percent (0-100)
        sub_distributor_percent: Parent distributor's second-tier percent (0-100)
    """
    gross = quantize_amount(gross_amount)
    d_percent = max(to_decimal(distributor_percent), Decimal("0"))
    s_percent = max(to_decimal(sub_distributor_percent), Decimal("0"))
    admin_percent = max(HUNDRED - d_percent - s_percent, Decimal("0"))

    distributor_amount = min(percent_of(gross, d_percent), gross)
    sub_distributor_amount = min(percent_of(gross, s_percent), gross - distributor_amount)
    admin_amount = gross - distributor_amount - sub_distributor_amount

    return RevenueSplit(
        gross_amount=gross,
        distributor_percent=d_percent,
        sub_distributor_percent=s_percent,
        admin_percent=admin_percent,
        distributor_amount=distributor_amount,
        sub_distributor_amount=sub_distributor_amount,
        admin_amount=admin_amount,
    )


@dataclass
class CreditParams:
    """
    Parameters for crediting one balance account.

    Required Attributes:
        account_id: BalanceAccount receiving the credit
        amount: Positive Decimal amount
        role: Why the account is credited (garden, distributor, ...)
        idempotency_key: Unique key; a repeated key is a no-op
    """

    account_id: Any
    amount: Decimal
    role: str
    idempotency_key: str
    payment_order_id: Any = None
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.amount = quantize_amount(self.amount)
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
