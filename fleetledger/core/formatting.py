"""Helper functions for money values and their display."""

from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# largest magnitude a Numeric(14, 2) money column holds
MAX_MONEY = Decimal("999999999999.99")
MAX_QUANTITY = Decimal("99999999999.999")


def to_money(value: int | float | str | Decimal | None, *, field: str = "amount") -> Decimal:
    """Coerce ``value`` into a two-decimal ``Decimal``.

    ``None`` and empty strings become zero; anything unparseable raises
    ``ValidationError`` naming ``field``.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            d = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValidationError(f"{field} must be a valid number") from exc
    if not d.is_finite():
        raise ValidationError(f"{field} must be a valid number")
    if abs(d) > MAX_MONEY:
        raise ValidationError(f"{field} is too large")
    try:
        return d.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValidationError(f"{field} must be a valid number") from exc


def format_money(value: int | float | Decimal, symbol: str = "R") -> str:
    """Format ``value`` with thousands separators, e.g. ``R1,200.00``."""
    d = to_money(value)
    sign = "-" if d < 0 else ""
    return f"{sign}{symbol}{abs(d):,.2f}"


def humanize_currency(
    value: int | float | Decimal,
    symbol: str = "R",
    decimals: int = 2,
) -> str:
    """Template filter: ``symbol`` followed by the grouped amount.

    Args:
        value: The currency amount to format
        symbol: Currency symbol to use (default: R)
        decimals: Number of decimal places to show
    """
    d = Decimal(str(value or 0))
    return f"{symbol} {d:,.{decimals}f}"
