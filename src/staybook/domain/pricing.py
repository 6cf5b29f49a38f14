"""Authoritative stay pricing.

Price of a stay:

1. units = ceil(duration / 1 day) for daily bookings, ceil(duration / 1 h)
   for hourly ones; base = rate x units.
2. Active price adjustments matching the room's hotel, city or room type
   are applied oldest first on the running price: percentage adjustments
   compound, fixed ones add a flat amount. Each step is rounded to whole
   cents and floored at 0.
3. The coupon discount (if any) comes off the adjusted subtotal.

The server amount is the one charged. A client-quoted amount is accepted
only within ``price_tolerance_cents`` of it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor

from staybook.infra.config import get_settings
from staybook.infra.hotel_settings import get_hotel_settings
from staybook.infra.repositories.price_adjustments_repository import list_active_adjustments
from staybook.infra.repositories.rooms_repository import get_room
from staybook.infra.time import utc_now

from .availability import validate_stay_range
from .coupons import CouponQuote, validate_coupon
from .errors import NotFoundError, PriceMismatchError, ValidationError
from .money import HUNDRED, apply_percentage, to_cents, within_tolerance

logger = logging.getLogger(__name__)

BOOKING_TYPES = ("daily", "hourly")
_UNIT = {"daily": timedelta(days=1), "hourly": timedelta(hours=1)}


@dataclass(frozen=True)
class PriceBreakdown:
    room_id: str
    hotel_id: str
    room_type_id: str | None
    booking_type: str
    units: int
    unit_rate_cents: int
    base_cents: int
    adjusted_cents: int
    discount_cents: int
    total_cents: int
    currency: str
    coupon: CouponQuote | None = None
    adjustment_ids: list[str] = field(default_factory=list)


def billable_units(check_in: datetime, check_out: datetime, booking_type: str) -> int:
    """Nights (daily) or hours (hourly), partial units rounded up."""
    if booking_type not in _UNIT:
        raise ValidationError(f"Unknown booking type: {booking_type!r}")
    return math.ceil((check_out - check_in) / _UNIT[booking_type])


def apply_adjustments(amount_cents: int, adjustments: list[dict]) -> int:
    """Apply adjustments in order on the running price, floor at 0."""
    running = amount_cents
    for adj in adjustments:
        value = Decimal(str(adj["value"]))
        if adj["adjustment_type"] == "percentage":
            running = to_cents(apply_percentage(Decimal(running), value))
        elif adj["adjustment_type"] == "fixed":
            running = running + to_cents(value * HUNDRED)
        else:
            raise ValueError(f"Unknown adjustment type: {adj['adjustment_type']}")
        running = max(0, running)
    return running


def quote_stay(
    cur: PgCursor,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    *,
    booking_type: str = "daily",
    coupon_code: str | None = None,
    user_id: str | None = None,
    now: datetime | None = None,
) -> PriceBreakdown:
    """Compute the server-side price of a stay.

    Raises:
        ValidationError: Bad range, unknown booking type, hourly booking on
            a room without an hourly rate, or coupon without a user.
        NotFoundError: Unknown room or hotel.
        CouponError: Coupon rejected (see ``validate_coupon``).
    """
    check_in, check_out = validate_stay_range(check_in, check_out)
    now = now or utc_now()

    room = get_room(cur, room_id)
    if room is None:
        raise NotFoundError(f"Room {room_id} not found", details={"room_id": room_id})

    hotel = get_hotel_settings(cur, room["hotel_id"])
    if hotel is None:
        raise NotFoundError(
            f"Hotel {room['hotel_id']} not found", details={"hotel_id": room["hotel_id"]}
        )

    units = billable_units(check_in, check_out, booking_type)
    if booking_type == "hourly":
        rate = room["price_per_hour_cents"]
        if rate is None:
            raise ValidationError("Room does not support hourly booking", details={"room_id": room_id})
    else:
        rate = room["price_per_night_cents"]
    base = rate * units

    adjustments = list_active_adjustments(
        cur,
        hotel_id=room["hotel_id"],
        city_id=hotel.city_id,
        room_type_id=room["room_type_id"],
        at=now,
    )
    adjusted = apply_adjustments(base, adjustments)

    coupon_quote = None
    discount = 0
    if coupon_code:
        if not user_id:
            raise ValidationError("A user is required to apply a coupon")
        coupon_quote = validate_coupon(
            cur,
            coupon_code,
            room["hotel_id"],
            room["room_type_id"],
            adjusted,
            user_id,
            booking_type,
            now=now,
        )
        discount = coupon_quote.discount_cents

    return PriceBreakdown(
        room_id=room_id,
        hotel_id=room["hotel_id"],
        room_type_id=room["room_type_id"],
        booking_type=booking_type,
        units=units,
        unit_rate_cents=rate,
        base_cents=base,
        adjusted_cents=adjusted,
        discount_cents=discount,
        total_cents=adjusted - discount,
        currency=hotel.currency,
        coupon=coupon_quote,
        adjustment_ids=[a["id"] for a in adjustments],
    )


def price_stay(
    cur: PgCursor,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    *,
    client_quoted_cents: int,
    booking_type: str = "daily",
    coupon_code: str | None = None,
    user_id: str | None = None,
    now: datetime | None = None,
) -> PriceBreakdown:
    """Price a stay and check the client's quoted amount against it.

    Raises:
        PriceMismatchError: Client amount off by more than the tolerance.
        Anything ``quote_stay`` raises.
    """
    breakdown = quote_stay(
        cur,
        room_id,
        check_in,
        check_out,
        booking_type=booking_type,
        coupon_code=coupon_code,
        user_id=user_id,
        now=now,
    )

    tolerance = get_settings().price_tolerance_cents
    if not within_tolerance(breakdown.total_cents, client_quoted_cents, tolerance):
        logger.warning(
            "client price mismatch",
            extra={
                "extra_fields": {
                    "room_id": room_id,
                    "server_cents": breakdown.total_cents,
                    "client_cents": client_quoted_cents,
                }
            },
        )
        raise PriceMismatchError(
            server_cents=breakdown.total_cents, client_cents=client_quoted_cents
        )
    return breakdown
