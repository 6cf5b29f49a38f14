"""Coupons repository - coupons, their mappings and usages.

Uses raw SQL with psycopg2 (no ORM).
"""

from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor


def get_coupon_by_code(cur: PgCursor, code: str) -> dict[str, Any] | None:
    """Fetch a coupon by its (case-insensitive) code."""
    cur.execute(
        """
        SELECT id, code, discount_type, discount_value, max_discount_cents,
               min_order_cents, valid_from, valid_to, usage_limit, used_count,
               applicable_booking_types, status
        FROM coupons
        WHERE upper(code) = upper(%s)
        """,
        (code,),
    )
    row = cur.fetchone()
    if row is None:
        return None

    return {
        "id": str(row[0]),
        "code": row[1],
        "discount_type": row[2],
        "discount_value": Decimal(str(row[3])),
        "max_discount_cents": row[4],
        "min_order_cents": row[5] or 0,
        "valid_from": row[6],
        "valid_to": row[7],
        "usage_limit": row[8],
        "used_count": row[9],
        "applicable_booking_types": row[10],
        "status": row[11],
    }


def list_coupon_mappings(cur: PgCursor, coupon_id: str) -> list[dict[str, str | None]]:
    cur.execute(
        """
        SELECT city_id, hotel_id, room_type_id
        FROM coupon_mappings
        WHERE coupon_id = %s
        """,
        (coupon_id,),
    )
    return [
        {
            "city_id": str(r[0]) if r[0] is not None else None,
            "hotel_id": str(r[1]) if r[1] is not None else None,
            "room_type_id": str(r[2]) if r[2] is not None else None,
        }
        for r in cur.fetchall()
    ]


def has_user_used_coupon(cur: PgCursor, *, coupon_id: str, user_id: str) -> bool:
    cur.execute(
        "SELECT 1 FROM coupon_usages WHERE coupon_id = %s AND user_id = %s",
        (coupon_id, user_id),
    )
    return cur.fetchone() is not None


def claim_coupon_slot(cur: PgCursor, *, coupon_id: str) -> bool:
    """Atomically take one usage slot.

    Single conditional UPDATE: concurrent claimers on the last slot are
    serialized by the row lock and only one sees a row returned.

    Returns:
        True if a slot was claimed, False if the coupon is exhausted.
    """
    cur.execute(
        """
        UPDATE coupons
        SET used_count = used_count + 1
        WHERE id = %s
          AND (usage_limit IS NULL OR used_count < usage_limit)
        RETURNING used_count
        """,
        (coupon_id,),
    )
    return cur.fetchone() is not None


def insert_coupon_usage(
    cur: PgCursor,
    *,
    coupon_id: str,
    user_id: str,
    booking_id: str,
    discount_cents: int,
) -> str:
    """Record a coupon usage.

    uq_coupon_usages_coupon_user enforces one use per guest
    (UniqueViolation on a concurrent second use).
    """
    cur.execute(
        """
        INSERT INTO coupon_usages (coupon_id, user_id, booking_id, discount_cents)
        VALUES (%s, %s, %s, %s)
        RETURNING id
        """,
        (coupon_id, user_id, booking_id, discount_cents),
    )
    return str(cur.fetchone()[0])
