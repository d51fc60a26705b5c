"""Fixed-precision money helpers.

Amounts are ``Decimal`` end to end, never ``float``. Intermediate sums keep
full precision; ``quantize`` rounds to cents with banker's rounding and is
applied once, when a figure is stored or reported.
"""
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Iterable

from ..errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal(100)


def to_decimal(value, field: str = "amount") -> Decimal:
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}", field=field)
    if isinstance(value, Decimal):
        result = value
    else:
        # str() first so floats keep their shortest repr instead of binary noise
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"Invalid {field}: {value!r}", field=field)
    if not result.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}", field=field)
    return result


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def money_sum(values: Iterable) -> Decimal:
    total = Decimal(0)
    for value in values:
        total += to_decimal(value)
    return total


def percent_of(amount, rate) -> Decimal:
    """``amount * rate / 100``, unrounded."""
    return to_decimal(amount) * to_decimal(rate, "rate") / HUNDRED


def as_str(value) -> str:
    """Serialize an amount for JSON as a fixed two-decimal string."""
    if value is None:
        return None
    return format(quantize(value), "f")
