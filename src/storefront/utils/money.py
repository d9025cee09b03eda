"""Money arithmetic helpers.

Amounts are carried as ``Decimal`` while computing and stored as floats rounded
to two places, half-up, so every client sees the same totals.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Convert a float/int/str/Decimal to Decimal without binary float noise."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value) -> Decimal:
    """Round to cents using half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_money(value) -> float:
    """Round to cents (half-up) and return the float used for persistence."""
    return float(quantize(value))
