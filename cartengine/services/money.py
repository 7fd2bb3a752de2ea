"""
Money Utilities - Safe Decimal operations for monetary values.

Avoids float precision issues by using Decimal throughout.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

Number = Union[str, int, float, Decimal]

# Default precision for money operations (2 decimal places)
MONEY_PRECISION = Decimal("0.01")

ZERO = Decimal("0")


def to_decimal(value: Union[Number, None]) -> Decimal:
    """
    Convert any value to Decimal safely.

    Args:
        value: Value to convert (str, int, float, Decimal, or None)

    Returns:
        Decimal representation of the value, or Decimal("0") if None/invalid
    """
    if value is None:
        return Decimal("0")

    if isinstance(value, Decimal):
        return value

    if isinstance(value, bool):
        return Decimal(int(value))

    try:
        # Convert via string to avoid float precision issues
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def round_money(value: Number) -> Decimal:
    """
    Round monetary value to 2 decimal places (ROUND_HALF_UP).

    Args:
        value: Value to round

    Returns:
        Rounded Decimal value
    """
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def to_float(value: Number) -> float:
    """
    Convert Decimal to float for JSON payloads sent to rate/order backends.

    Use only at API boundaries, not for internal calculations.
    """
    return float(to_decimal(value))


def add(a: Number, b: Number) -> Decimal:
    """Safe addition of monetary values."""
    return to_decimal(a) + to_decimal(b)


def multiply(value: Number, factor: Number) -> Decimal:
    """Safe multiplication of monetary value by a factor."""
    return to_decimal(value) * to_decimal(factor)


def is_non_negative(value: Number) -> bool:
    """True when the value converts to a Decimal >= 0."""
    try:
        return to_decimal(value) >= 0
    except InvalidOperation:
        return False


def parse_price(value: Number, field_name: str = "price") -> Decimal:
    """
    Strict conversion for prices coming from a catalogue or stored cart.

    Unlike to_decimal(), bad input is an error instead of zero.

    Raises:
        ValueError: value is missing, unparsable, not finite or negative
    """
    message = f"{field_name} must be a non-negative number"
    if value is None or isinstance(value, bool):
        raise ValueError(message)
    try:
        if isinstance(value, float):
            amount = Decimal(str(value))
        else:
            amount = Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(message)
    if not amount.is_finite() or amount < 0:
        raise ValueError(message)
    return amount
