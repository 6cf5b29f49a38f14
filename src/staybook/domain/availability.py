"""Room availability.

A room is bookable for ``[check_in, check_out)`` when its status is
``available``, it holds the requested number of guests, and no
non-cancelled booking overlaps the range:

    existing.check_in < new.check_out AND existing.check_out > new.check_in

Stays that only touch (one ends exactly when the next starts) do not
overlap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from psycopg2.extensions import cursor as PgCursor

from staybook.infra.repositories.rooms_repository import find_overlapping_booking, get_room
from staybook.infra.time import ensure_aware

from .errors import NotFoundError, RoomUnavailableError, ValidationError

logger = logging.getLogger(__name__)

BOOKABLE_ROOM_STATUS = "available"


@dataclass(frozen=True)
class Availability:
    available: bool
    reason: str | None = None
    conflicting_booking_id: str | None = None


def validate_stay_range(check_in: datetime, check_out: datetime) -> tuple[datetime, datetime]:
    """Normalize to aware datetimes and require ``check_in < check_out``."""
    check_in = ensure_aware(check_in)
    check_out = ensure_aware(check_out)
    if check_in >= check_out:
        raise ValidationError(
            "check_in must be before check_out",
            details={"check_in": check_in.isoformat(), "check_out": check_out.isoformat()},
        )
    return check_in, check_out


def is_available(
    cur: PgCursor,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    guest_count: int,
    *,
    exclude_booking_id: str | None = None,
    lock: bool = False,
) -> Availability:
    """Decide whether a room can be booked for the given stay.

    Args:
        cur: Database cursor.
        room_id: Room to check.
        check_in: Start of the stay (inclusive).
        check_out: End of the stay (exclusive).
        guest_count: Number of guests, at least 1.
        exclude_booking_id: Booking to ignore in the overlap search.
        lock: Lock the room row (FOR UPDATE) before checking. Use inside
            the booking transaction so concurrent bookers of the same room
            run one after the other.

    Returns:
        Availability with ``available`` and, when False, a reason.

    Raises:
        ValidationError: Empty/inverted range or guest_count < 1.
        NotFoundError: Unknown room.
    """
    check_in, check_out = validate_stay_range(check_in, check_out)
    if guest_count < 1:
        raise ValidationError("guest_count must be at least 1", details={"guest_count": guest_count})

    room = get_room(cur, room_id, lock=lock)
    if room is None:
        raise NotFoundError(f"Room {room_id} not found", details={"room_id": room_id})

    if room["status"] != BOOKABLE_ROOM_STATUS:
        return Availability(False, f"Room is {room['status']}")

    if guest_count > room["capacity"]:
        return Availability(
            False,
            f"Room capacity is {room['capacity']} guests, requested {guest_count}",
        )

    conflicting_id = find_overlapping_booking(
        cur,
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        exclude_booking_id=exclude_booking_id,
    )
    if conflicting_id is not None:
        logger.info(
            "room already booked for range",
            extra={
                "extra_fields": {
                    "room_id": room_id,
                    "check_in": check_in.isoformat(),
                    "check_out": check_out.isoformat(),
                    "conflicting_booking_id": conflicting_id,
                }
            },
        )
        return Availability(False, "Room is already booked for the selected dates", conflicting_id)

    return Availability(True)


def assert_available(
    cur: PgCursor,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    guest_count: int,
    *,
    exclude_booking_id: str | None = None,
    lock: bool = False,
) -> None:
    """Raise RoomUnavailableError unless ``is_available`` says yes.

    All arguments are forwarded to is_available.
    """
    result = is_available(
        cur,
        room_id,
        check_in,
        check_out,
        guest_count,
        exclude_booking_id=exclude_booking_id,
        lock=lock,
    )
    if not result.available:
        raise RoomUnavailableError(room_id, result.reason or "Room is not available")
