"""Decimal helpers shared by grading, publishing and analytics."""

from decimal import ROUND_HALF_UP, Decimal

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert to Decimal without picking up binary float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Decimal | int | float) -> Decimal:
    """Round to two decimal places, half up."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def percentage_of(obtained: Decimal, total: Decimal) -> Decimal:
    """Percentage of obtained over total, two places; 0 when total is 0."""
    if not total:
        return quantize(ZERO)
    return quantize(to_decimal(obtained) / to_decimal(total) * HUNDRED)


def clamp_percentage(value: Decimal | int | float) -> Decimal:
    """Clamp a percentage into [0, 100]."""
    value = to_decimal(value)
    if value < ZERO:
        return ZERO
    if value > HUNDRED:
        return HUNDRED
    return value


def mean(values: list[Decimal]) -> Decimal:
    if not values:
        return quantize(ZERO)
    return quantize(sum(values, ZERO) / len(values))
