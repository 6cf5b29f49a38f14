"""Rooms repository - read access to rooms and their booked ranges.

Uses raw SQL with psycopg2 (no ORM).
"""

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

_ROOM_COLUMNS = """
    r.id, r.hotel_id, r.room_type_id, r.price_per_night_cents,
    r.price_per_hour_cents, r.capacity, r.status
"""


def _room_from_row(row: tuple) -> dict[str, Any]:
    return {
        "id": str(row[0]),
        "hotel_id": str(row[1]),
        "room_type_id": str(row[2]) if row[2] is not None else None,
        "price_per_night_cents": row[3],
        "price_per_hour_cents": row[4],
        "capacity": row[5],
        "status": row[6],
    }


def get_room(cur: PgCursor, room_id: str, *, lock: bool = False) -> dict[str, Any] | None:
    """Fetch a room, optionally locking its row.

    The lock serializes availability check + insert for the same room
    across concurrent transactions.

    Returns:
        Dict with room fields or None if the room does not exist.
    """
    query = f"SELECT {_ROOM_COLUMNS} FROM rooms r WHERE r.id = %s"
    if lock:
        query += " FOR UPDATE OF r"
    cur.execute(query, (room_id,))
    row = cur.fetchone()
    if row is None:
        return None
    return _room_from_row(row)


def find_overlapping_booking(
    cur: PgCursor,
    *,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    exclude_booking_id: str | None = None,
) -> str | None:
    """Return the id of a non-cancelled booking overlapping the range.

    Ranges are half-open: a stay ending at T does not collide with one
    starting at T.
    """
    cur.execute(
        """
        SELECT id
        FROM bookings
        WHERE room_id = %s
          AND status <> 'cancelled'
          AND check_in < %s
          AND check_out > %s
          AND (%s::uuid IS NULL OR id <> %s::uuid)
        ORDER BY check_in
        LIMIT 1
        """,
        (room_id, check_out, check_in, exclude_booking_id, exclude_booking_id),
    )
    row = cur.fetchone()
    return str(row[0]) if row else None
