"""
Currency helpers for the commission ledger.

All amounts are Decimal values in major currency units. Rounding is
ROUND_HALF_UP at the configured number of decimal places and is applied
to the therapist share only; the platform fee is the exact remainder.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

ZERO = Decimal("0")

Number = Union[Decimal, int, str]


def to_decimal(value: Optional[Number]) -> Decimal:
    """Coerce an aggregate result (possibly None) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("Refusing to convert float to a currency amount")
    return Decimal(value)


def quantize_money(amount: Decimal, places: int = 2) -> Decimal:
    """Round an amount to the currency precision (half-up)."""
    exponent = Decimal(1).scaleb(-places)
    return amount.quantize(exponent, rounding=ROUND_HALF_UP)


def split_amount(total: Decimal, rate: Decimal, places: int = 2) -> tuple[Decimal, Decimal]:
    """
    Split ``total`` into (share, remainder) at ``rate``.

    share + remainder == total holds exactly for any rate.
    """
    share = quantize_money(total * rate, places)
    remainder = total - share
    return share, remainder


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    return sum((to_decimal(a) for a in amounts), ZERO)
