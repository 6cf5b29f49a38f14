"""Closed set of payment modes.

``PaymentMode`` is either ``OnlinePayment`` (gateway collects the full
amount) or ``OfflinePayment`` (collected at the hotel, optionally with an
advance). Code that branches on the mode goes through ``isinstance`` and
ends with ``assert_never`` so a new variant cannot slip through silently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NoReturn, Union

from .errors import ValidationError


@dataclass(frozen=True)
class OnlinePayment:
    name = "online"


@dataclass(frozen=True)
class OfflinePayment:
    advance_cents: int = 0
    remaining_cents: int = 0
    name = "offline"

    @property
    def has_advance(self) -> bool:
        return self.advance_cents > 0


PaymentMode = Union[OnlinePayment, OfflinePayment]


def assert_never(value: object) -> NoReturn:
    raise TypeError(f"Unhandled payment mode: {value!r}")


def build_payment_mode(
    mode_name: str,
    *,
    total_cents: int,
    advance_cents: int | None = None,
) -> PaymentMode:
    """Build the variant for a request, splitting offline totals.

    Raises:
        ValidationError: Unknown mode, advance on an online booking, or an
            advance outside ``[0, total]``.
    """
    if mode_name == "online":
        if advance_cents:
            raise ValidationError("Advance amount is only allowed for offline payment")
        return OnlinePayment()

    if mode_name == "offline":
        advance = advance_cents or 0
        if advance < 0 or advance > total_cents:
            raise ValidationError(
                "Advance amount must be between 0 and the total amount",
                details={"advance_cents": advance, "total_cents": total_cents},
            )
        return OfflinePayment(advance_cents=advance, remaining_cents=total_cents - advance)

    raise ValidationError(f"Unknown payment mode: {mode_name!r}")


def initial_statuses(mode: PaymentMode) -> tuple[str, str]:
    """(booking status, payment status) right after creation."""
    if isinstance(mode, OfflinePayment):
        return "confirmed", "pending"
    if isinstance(mode, OnlinePayment):
        return "pending", "pending"
    assert_never(mode)


def payment_rows(mode: PaymentMode, total_cents: int) -> list[tuple[str, int]]:
    """(payment_type, amount_cents) rows to write for a new booking."""
    if isinstance(mode, OnlinePayment):
        return [("full", total_cents)]
    if isinstance(mode, OfflinePayment):
        if mode.has_advance and mode.remaining_cents > 0:
            return [("advance", mode.advance_cents), ("remaining", mode.remaining_cents)]
        return [("full", total_cents)]
    assert_never(mode)
