"""Coupon validation and discount computation.

Checks run in a fixed order and the first failure wins:

1. coupon exists                      -> CouponNotFoundError
2. status is active                   -> CouponInvalidError
3. guest has not used it before       -> CouponConflictError
4. now within [valid_from, valid_to]  -> CouponInvalidError
5. usage limit not reached            -> CouponConflictError
6. order reaches the minimum          -> CouponInvalidError
7. booking type is covered            -> CouponInvalidError
8. mapping matches hotel/room type/city (no mappings = everywhere)
                                      -> CouponInvalidError

Validation is read-only. The usage slot itself is claimed later, inside
the booking transaction (see ``claim_coupon``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor
from psycopg2.errors import UniqueViolation

from staybook.infra.hotel_settings import get_hotel_settings
from staybook.infra.repositories.coupons_repository import (
    claim_coupon_slot,
    get_coupon_by_code,
    has_user_used_coupon,
    insert_coupon_usage,
    list_coupon_mappings,
)
from staybook.infra.time import ensure_aware, utc_now

from .errors import CouponConflictError, CouponInvalidError, CouponNotFoundError, NotFoundError
from .money import HUNDRED, percent_of, to_cents

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CouponQuote:
    coupon: dict[str, Any]
    discount_cents: int
    final_amount_cents: int

    @property
    def coupon_id(self) -> str:
        return self.coupon["id"]


def compute_discount(coupon: dict[str, Any], order_amount_cents: int) -> int:
    """Discount for an order, never more than the order itself.

    Percentage coupons take ``value`` % of the order, capped by
    ``max_discount_cents`` when set. Fixed coupons take ``value`` currency
    units.
    """
    value = Decimal(str(coupon["discount_value"]))
    if coupon["discount_type"] == "percentage":
        discount = percent_of(order_amount_cents, value)
        cap = coupon.get("max_discount_cents")
        if cap is not None:
            discount = min(discount, cap)
    elif coupon["discount_type"] == "fixed":
        discount = to_cents(value * HUNDRED)
    else:
        raise ValueError(f"Unknown discount type: {coupon['discount_type']}")
    return max(0, min(discount, order_amount_cents))


def _mapping_matches(
    mappings: list[dict[str, str | None]],
    *,
    hotel_id: str,
    room_type_id: str | None,
    city_id: str | None,
) -> bool:
    if not mappings:
        return True
    for m in mappings:
        if m["hotel_id"] is not None and m["hotel_id"] == hotel_id:
            return True
        if m["room_type_id"] is not None and m["room_type_id"] == room_type_id:
            return True
        if m["city_id"] is not None and m["city_id"] == city_id:
            return True
    return False


def _reject(exc_class: type, reason_code: str, message: str, code: str) -> None:
    logger.info(
        "coupon rejected",
        extra={"extra_fields": {"coupon_code": code, "reason_code": reason_code}},
    )
    raise exc_class(reason_code, message, coupon_code=code)


def validate_coupon(
    cur: PgCursor,
    code: str,
    hotel_id: str,
    room_type_id: str | None,
    order_amount_cents: int,
    user_id: str,
    booking_type: str,
    *,
    now: datetime | None = None,
) -> CouponQuote:
    """Validate a coupon for an order and compute its discount.

    Args:
        cur: Database cursor.
        code: Coupon code as typed by the guest.
        hotel_id: Hotel being booked.
        room_type_id: Room type being booked.
        order_amount_cents: Order amount before the discount.
        user_id: Guest applying the coupon.
        booking_type: ``daily`` or ``hourly``.
        now: Evaluation instant (defaults to current UTC time).

    Returns:
        CouponQuote with the coupon row, discount and final amount.

    Raises:
        CouponNotFoundError, CouponInvalidError, CouponConflictError.
        NotFoundError: Unknown hotel.
    """
    now = ensure_aware(now) if now is not None else utc_now()

    coupon = get_coupon_by_code(cur, code)
    if coupon is None:
        _reject(CouponNotFoundError, "not_found", f'Coupon with code "{code}" not found', code)

    if coupon["status"] != "active":
        _reject(CouponInvalidError, "inactive", "Coupon is not active", code)

    if has_user_used_coupon(cur, coupon_id=coupon["id"], user_id=user_id):
        _reject(CouponConflictError, "already_used", "You have already used this coupon", code)

    if not (ensure_aware(coupon["valid_from"]) <= now <= ensure_aware(coupon["valid_to"])):
        _reject(CouponInvalidError, "outside_validity", "Coupon is not valid for current date", code)

    limit = coupon["usage_limit"]
    if limit is not None and coupon["used_count"] >= limit:
        _reject(CouponConflictError, "usage_limit_reached", "Coupon usage limit exceeded", code)

    if order_amount_cents < coupon["min_order_cents"]:
        _reject(
            CouponInvalidError,
            "below_min_order",
            f"Minimum order amount of {coupon['min_order_cents']} required",
            code,
        )

    applicable = coupon["applicable_booking_types"]
    if applicable != "both" and applicable != booking_type:
        _reject(
            CouponInvalidError,
            "booking_type_not_applicable",
            f"Coupon is only valid for {applicable} bookings",
            code,
        )

    hotel = get_hotel_settings(cur, hotel_id)
    if hotel is None:
        raise NotFoundError(f"Hotel {hotel_id} not found", details={"hotel_id": hotel_id})
    mappings = list_coupon_mappings(cur, coupon["id"])
    if not _mapping_matches(
        mappings, hotel_id=hotel_id, room_type_id=room_type_id, city_id=hotel.city_id
    ):
        _reject(
            CouponInvalidError,
            "not_applicable",
            "Coupon is not valid for this hotel or room type",
            code,
        )

    discount = compute_discount(coupon, order_amount_cents)
    return CouponQuote(
        coupon=coupon,
        discount_cents=discount,
        final_amount_cents=order_amount_cents - discount,
    )


def claim_coupon(
    cur: PgCursor,
    *,
    quote: CouponQuote,
    user_id: str,
    booking_id: str,
) -> None:
    """Consume one usage slot and record the usage, inside the caller's txn.

    Raises:
        CouponConflictError: Limit reached by a concurrent booking, or the
            guest used the coupon concurrently.
    """
    code = quote.coupon["code"]
    if not claim_coupon_slot(cur, coupon_id=quote.coupon_id):
        _reject(CouponConflictError, "usage_limit_reached", "Coupon usage limit exceeded", code)

    try:
        insert_coupon_usage(
            cur,
            coupon_id=quote.coupon_id,
            user_id=user_id,
            booking_id=booking_id,
            discount_cents=quote.discount_cents,
        )
    except UniqueViolation as exc:
        raise CouponConflictError(
            "already_used", "You have already used this coupon", coupon_code=code
        ) from exc
