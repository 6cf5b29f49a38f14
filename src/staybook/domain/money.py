"""Money helpers. Amounts are integer minor units (cents)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

HUNDRED = Decimal(100)


def to_cents(value: Decimal | int) -> int:
    """Round a (possibly fractional) cent amount half-up to whole cents."""
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, percentage: Decimal | int | float | str) -> int:
    """Return ``percentage`` % of ``amount_cents``, rounded to whole cents."""
    return to_cents(Decimal(amount_cents) * Decimal(str(percentage)) / HUNDRED)


def apply_percentage(amount: Decimal, percentage: Decimal | int | float | str) -> Decimal:
    """Scale ``amount`` by (1 + percentage/100) without rounding."""
    return amount * (1 + Decimal(str(percentage)) / HUNDRED)


def within_tolerance(a_cents: int, b_cents: int, tolerance_cents: int = 1) -> bool:
    return abs(a_cents - b_cents) <= tolerance_cents
