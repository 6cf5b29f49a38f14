"""Price adjustments repository (read-only).

Uses raw SQL with psycopg2 (no ORM).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor


def list_active_adjustments(
    cur: PgCursor,
    *,
    hotel_id: str,
    city_id: str | None,
    room_type_id: str | None,
    at: datetime,
) -> list[dict[str, Any]]:
    """Active adjustments whose scope matches the room, oldest first.

    An adjustment matches when the hotel, the hotel's city or the room
    type appears in its scope lists.
    """
    cur.execute(
        """
        SELECT id, adjustment_type, value
        FROM price_adjustments
        WHERE status = 'active'
          AND effective_from <= %s
          AND (expires_at IS NULL OR expires_at > %s)
          AND (
                %s::uuid = ANY(hotel_ids)
             OR (%s::uuid IS NOT NULL AND %s::uuid = ANY(city_ids))
             OR (%s::uuid IS NOT NULL AND %s::uuid = ANY(room_type_ids))
          )
        ORDER BY created_at, id
        """,
        (at, at, hotel_id, city_id, city_id, room_type_id, room_type_id),
    )
    return [
        {"id": str(r[0]), "adjustment_type": r[1], "value": Decimal(str(r[2]))}
        for r in cur.fetchall()
    ]
