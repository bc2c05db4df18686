"""Money parsing and formatting helpers using fixed cent precision."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


_CENT_QUANT = Decimal("0.01")


def parse_amount(value: Decimal | float | int | str) -> Decimal:
    """Parse an API amount string (e.g. "-12.50") into a Decimal."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        dec = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not dec.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return dec


def round_cents(value: Decimal | float | int | str) -> Decimal:
    return parse_amount(value).quantize(_CENT_QUANT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal | float | int | str, symbol: str = "€") -> str:
    """Format an amount for display, sign before the currency symbol."""
    dec = round_cents(value)
    sign = "-" if dec < 0 else ""
    return f"{sign}{symbol}{abs(dec):,.2f}"


def format_percent(fraction: float) -> str:
    return f"{fraction * 100:.0f}%"
