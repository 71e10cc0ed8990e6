"""Decimal helpers for money and rate values."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from components.core.errors import ValidationError

TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """Convert ``value`` to Decimal without passing through binary floats."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"{field} must be a decimal number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def _quantize(value: Decimal, places: Decimal, field: str) -> Decimal:
    try:
        return value.quantize(places, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{field} is too large")


def round_money(amount: Any, field: str = "amount") -> Decimal:
    """Quantize a stored or derived amount to cents."""
    return _quantize(to_decimal(amount, field), TWO_PLACES, field)


def parse_money(amount: Any, field: str = "amount") -> Decimal:
    """Accept caller input only if it is exact to the cent."""
    value = to_decimal(amount, field)
    exact = _quantize(value, TWO_PLACES, field)
    if exact != value:
        raise ValidationError(f"{field} must not have more than 2 decimal places")
    return exact


def parse_rate(rate: Any, field: str = "rate") -> Decimal:
    value = to_decimal(rate, field)
    exact = _quantize(value, FOUR_PLACES, field)
    if exact != value:
        raise ValidationError(f"{field} must not have more than 4 decimal places")
    return exact


def check_fraction(rate: Optional[Decimal], field: str) -> None:
    """Rates are stored as fractions in [0, 1)."""
    if rate is not None and not (Decimal("0") <= rate < Decimal("1")):
        raise ValidationError(f"{field} must be a fraction in [0, 1)")
