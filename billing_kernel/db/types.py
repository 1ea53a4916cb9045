"""
Module: billing_kernel.db.types
Responsibility: Rounding, coercion and display helpers for monetary values.
    Centralizes precision so that every service and selector rounds alike.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for financial
      values.  Invoice rounded totals use it with zero decimal places.
    - No floats anywhere.  All monetary amounts use Decimal.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_money(value: Decimal | int | str) -> Decimal:
    """
    Coerce an amount to Decimal.

    Floats are rejected: their binary representation would leak into
    stored totals.

    Raises:
        TypeError: If value is a float or another unsupported type.
        decimal.InvalidOperation: If a string is not numeric.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary amounts must not be {type(value).__name__}: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise TypeError(f"Unsupported monetary type: {type(value).__name__}")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places (0 rounds to whole units).
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    exponent = Decimal(1).scaleb(-decimal_places)
    return value.quantize(exponent, rounding=rounding)


def round_to_unit(value: Decimal) -> Decimal:
    """Round to the nearest whole currency unit (half away from zero)."""
    return round_money(value, 0)


def clamp_non_negative(value: Decimal) -> Decimal:
    """max(0, value) for Decimal balances."""
    return value if value > ZERO else ZERO


def format_amount(value: Decimal) -> str:
    """
    Render an amount with two decimals and Indian digit grouping.

    The last three integer digits form one group and every two digits
    above that form the next, e.g. ``Decimal("1234567.5")`` ->
    ``"12,34,567.50"``.  Negative values keep a leading minus sign.
    """
    rounded = round_money(value)
    sign = "-" if rounded < ZERO else ""
    integer_part, _, fraction = f"{abs(rounded):.2f}".partition(".")

    if len(integer_part) > 3:
        head, tail = integer_part[:-3], integer_part[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        integer_part = ",".join(groups + [tail])

    return f"{sign}{integer_part}.{fraction}"
