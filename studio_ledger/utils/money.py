"""
Money arithmetic primitives.

Every helper returns a value quantized to cents with ROUND_HALF_UP so that
repeated arithmetic never accumulates sub-cent drift.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, str]


def to_decimal(value: Optional[object], *, default: str = "0") -> Decimal:
    """Convert raw input (str/int/Decimal/float) into a Decimal without rounding."""
    if value in (None, ""):
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"Invalid numeric value: {value!r}") from exc


def round_money(amount: Number) -> Decimal:
    """Round to cents using half-up rounding."""
    return to_decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_tax(amount: Number, tax_rate: Number) -> Decimal:
    """Tax due on ``amount`` at ``tax_rate`` percent."""
    return round_money(to_decimal(amount) * to_decimal(tax_rate) / HUNDRED)


def calculate_fund_contribution(
    amount_after_tax: Number,
    fund_rate: Number,
    current_fund_balance: Number,
    fund_limit: Number,
) -> Decimal:
    """
    Contribution owed to the fund, clamped to the fund's remaining headroom.

    Returns zero once the fund has reached its limit; otherwise the lesser of
    the rate-based share and ``fund_limit - current_fund_balance``.
    """
    current = to_decimal(current_fund_balance)
    limit = to_decimal(fund_limit)
    if current >= limit:
        return ZERO

    max_contribution = round_money(limit - current)
    desired = round_money(to_decimal(amount_after_tax) * to_decimal(fund_rate) / HUNDRED)
    return min(desired, max_contribution)


def to_cents(amount: Number) -> int:
    """Convert a money amount into integer minor units for storage."""
    return int(round_money(amount) * 100)


def from_cents(cents: Optional[int]) -> Decimal:
    """Convert stored integer minor units back into a Decimal amount."""
    if cents is None:
        return ZERO
    return (Decimal(int(cents)) / HUNDRED).quantize(TWO_PLACES)


def format_money(amount: Number, symbol: Optional[str] = None) -> str:
    """Format an amount with thousands separators, e.g. ``12,690.00 ₽``."""
    formatted = f"{round_money(amount):,.2f}"
    return f"{formatted} {symbol}" if symbol else formatted
