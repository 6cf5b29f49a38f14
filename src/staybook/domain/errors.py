"""Error taxonomy of the booking engine.

Every failure raised by the domain belongs to exactly one category. The
category tells the caller what to do next:

- ValidationError / ConflictError: retry with different input.
- ExternalGatewayError: retry later, same input.
- NotFoundError / AuthorizationError: nothing to retry.
- InsufficientFundsError: top up the wallet or pay another way.
"""

from __future__ import annotations

from typing import Any


class BookingEngineError(Exception):
    """Base class for all typed engine failures."""

    code = "engine_error"
    retryable = False

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(BookingEngineError):
    """Malformed or inconsistent input."""

    code = "validation_error"


class ConflictError(BookingEngineError):
    """The request collides with current state (dates taken, coupon used...)."""

    code = "conflict"


class NotFoundError(BookingEngineError):
    """Unknown room, hotel, coupon, booking, payment or refund id."""

    code = "not_found"


class InsufficientFundsError(BookingEngineError):
    """Wallet debit larger than the current balance."""

    code = "insufficient_funds"

    def __init__(self, *, balance_cents: int, requested_cents: int) -> None:
        self.balance_cents = balance_cents
        self.requested_cents = requested_cents
        super().__init__(
            f"Insufficient wallet balance: {balance_cents} < {requested_cents}",
            details={"balance_cents": balance_cents, "requested_cents": requested_cents},
        )


class ExternalGatewayError(BookingEngineError):
    """Payment gateway call failed or timed out."""

    code = "gateway_error"
    retryable = True


class AuthorizationError(BookingEngineError):
    """Actor lacks rights over the target booking or refund."""

    code = "forbidden"


class PriceMismatchError(ValidationError):
    """Client quoted a price that differs from the server price."""

    code = "price_mismatch"

    def __init__(self, *, server_cents: int, client_cents: int) -> None:
        self.server_cents = server_cents
        self.client_cents = client_cents
        super().__init__(
            f"Quoted price {client_cents} does not match server price {server_cents}",
            details={"server_cents": server_cents, "client_cents": client_cents},
        )


class RoomUnavailableError(ConflictError):
    """Room cannot be booked for the requested range."""

    code = "room_unavailable"

    def __init__(self, room_id: str, reason: str) -> None:
        self.room_id = room_id
        self.reason = reason
        super().__init__(reason, details={"room_id": room_id})


class CouponError(BookingEngineError):
    """Coupon rejected; ``reason_code`` names the failed check.

    Concrete subclasses also derive from the category they belong to, so
    callers can catch either the coupon family or the category.
    """

    code = "coupon_rejected"

    def __init__(self, reason_code: str, message: str, *, coupon_code: str | None = None) -> None:
        self.reason_code = reason_code
        super().__init__(message, details={"reason_code": reason_code, "coupon_code": coupon_code})


class CouponNotFoundError(CouponError, NotFoundError):
    code = "coupon_not_found"


class CouponInvalidError(CouponError, ValidationError):
    code = "coupon_invalid"


class CouponConflictError(CouponError, ConflictError):
    code = "coupon_conflict"
