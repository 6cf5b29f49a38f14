"""Bookings repository - persistence for bookings.

Uses raw SQL with psycopg2 (no ORM).
"""

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

VALID_STATUSES = {"pending", "confirmed", "cancelled", "completed"}
VALID_PAYMENT_STATUSES = {"pending", "completed", "refunded"}

_BOOKING_COLUMNS = (
    "id",
    "user_id",
    "hotel_id",
    "room_id",
    "check_in",
    "check_out",
    "booking_type",
    "guest_count",
    "guest_name",
    "guest_email",
    "guest_phone",
    "special_requests",
    "total_amount_cents",
    "discount_cents",
    "coupon_id",
    "payment_mode",
    "advance_amount_cents",
    "remaining_amount_cents",
    "wallet_amount_cents",
    "status",
    "payment_status",
    "cancelled_at",
    "cancelled_by",
    "cancellation_reason",
    "payment_due_at",
    "created_at",
    "updated_at",
)
_ID_COLUMNS = {"id", "user_id", "hotel_id", "room_id", "coupon_id", "cancelled_by"}


def _booking_from_row(row: tuple) -> dict[str, Any]:
    booking = dict(zip(_BOOKING_COLUMNS, row))
    for key in _ID_COLUMNS:
        if booking[key] is not None:
            booking[key] = str(booking[key])
    return booking


def insert_booking(
    cur: PgCursor,
    *,
    user_id: str,
    hotel_id: str,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    booking_type: str,
    guest_count: int,
    total_amount_cents: int,
    discount_cents: int,
    payment_mode: str,
    status: str,
    payment_status: str,
    coupon_id: str | None = None,
    advance_amount_cents: int | None = None,
    remaining_amount_cents: int | None = None,
    wallet_amount_cents: int = 0,
    guest_name: str | None = None,
    guest_email: str | None = None,
    guest_phone: str | None = None,
    special_requests: str | None = None,
    payment_due_at: datetime | None = None,
) -> str:
    """Insert a booking row.

    The bookings_no_room_overlap exclusion constraint rejects a second
    non-cancelled booking on an overlapping range (ExclusionViolation).

    Returns:
        UUID string of the new booking.
    """
    cur.execute(
        """
        INSERT INTO bookings (
            user_id, hotel_id, room_id, check_in, check_out, booking_type,
            guest_count, guest_name, guest_email, guest_phone, special_requests,
            total_amount_cents, discount_cents, coupon_id, payment_mode,
            advance_amount_cents, remaining_amount_cents, wallet_amount_cents,
            status, payment_status, payment_due_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            user_id,
            hotel_id,
            room_id,
            check_in,
            check_out,
            booking_type,
            guest_count,
            guest_name,
            guest_email,
            guest_phone,
            special_requests,
            total_amount_cents,
            discount_cents,
            coupon_id,
            payment_mode,
            advance_amount_cents,
            remaining_amount_cents,
            wallet_amount_cents,
            status,
            payment_status,
            payment_due_at,
        ),
    )
    return str(cur.fetchone()[0])


def get_booking(cur: PgCursor, booking_id: str, *, lock: bool = False) -> dict[str, Any] | None:
    """Fetch a booking by id, optionally with FOR UPDATE."""
    query = f"SELECT {', '.join(_BOOKING_COLUMNS)} FROM bookings WHERE id = %s"
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (booking_id,))
    row = cur.fetchone()
    if row is None:
        return None
    return _booking_from_row(row)


def update_booking_status(
    cur: PgCursor,
    *,
    booking_id: str,
    status: str | None = None,
    payment_status: str | None = None,
) -> None:
    """Set status and/or payment_status; None leaves a column untouched."""
    if status is not None and status not in VALID_STATUSES:
        raise ValueError(f"Invalid booking status: {status}")
    if payment_status is not None and payment_status not in VALID_PAYMENT_STATUSES:
        raise ValueError(f"Invalid payment status: {payment_status}")

    cur.execute(
        """
        UPDATE bookings
        SET status = COALESCE(%s, status),
            payment_status = COALESCE(%s, payment_status),
            updated_at = now()
        WHERE id = %s
        """,
        (status, payment_status, booking_id),
    )


def mark_booking_cancelled(
    cur: PgCursor,
    *,
    booking_id: str,
    cancelled_by: str,
    reason: str | None,
    cancelled_at: datetime,
) -> bool:
    """Flip a booking to cancelled.

    Returns:
        True if updated, False if the booking was already cancelled.
    """
    cur.execute(
        """
        UPDATE bookings
        SET status = 'cancelled',
            cancelled_at = %s,
            cancelled_by = %s,
            cancellation_reason = %s,
            updated_at = now()
        WHERE id = %s AND status <> 'cancelled'
        """,
        (cancelled_at, cancelled_by, reason, booking_id),
    )
    return cur.rowcount > 0


def revert_booking_cancellation(cur: PgCursor, *, booking_id: str) -> bool:
    """Undo a cancellation: back to confirmed, cancellation metadata cleared.

    Re-activating the range can violate bookings_no_room_overlap if the
    room was rebooked meanwhile (ExclusionViolation).
    """
    cur.execute(
        """
        UPDATE bookings
        SET status = 'confirmed',
            cancelled_at = NULL,
            cancelled_by = NULL,
            cancellation_reason = NULL,
            updated_at = now()
        WHERE id = %s AND status = 'cancelled'
        """,
        (booking_id,),
    )
    return cur.rowcount > 0
