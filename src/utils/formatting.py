from __future__ import annotations

from decimal import Decimal

CENTS = Decimal("0.01")


def format_quantity(value: Decimal) -> str:
    normalized = value.normalize()
    # normalize() turns 100 into 1E+2.
    if normalized == normalized.to_integral():
        return f"{normalized:.0f}"
    return format(normalized, "f")


def format_usd(value: Decimal) -> str:
    return f"${value.quantize(CENTS):,.2f}"


def format_percent(value: Decimal) -> str:
    return f"{value.quantize(CENTS):+.2f}%"


def format_rate(value: Decimal) -> str:
    return f"{value.quantize(Decimal('0.0001')):.4f}"
