"""Payments repository - payment rows attached to bookings.

Uses raw SQL with psycopg2 (no ORM).
"""

from typing import Any

from psycopg2.extensions import cursor as PgCursor

VALID_STATUSES = {"pending", "completed", "failed"}
VALID_TYPES = {"advance", "remaining", "full", "wallet"}

_PAYMENT_COLUMNS = """
    id, booking_id, amount_cents, currency, payment_mode, payment_type,
    status, provider, gateway_order_id, gateway_payment_id,
    settled_by, settled_at, created_at
"""


def _payment_from_row(row: tuple) -> dict[str, Any]:
    return {
        "id": str(row[0]),
        "booking_id": str(row[1]),
        "amount_cents": row[2],
        "currency": row[3],
        "payment_mode": row[4],
        "payment_type": row[5],
        "status": row[6],
        "provider": row[7],
        "gateway_order_id": row[8],
        "gateway_payment_id": row[9],
        "settled_by": str(row[10]) if row[10] is not None else None,
        "settled_at": row[11],
        "created_at": row[12],
    }


def insert_payment(
    cur: PgCursor,
    *,
    booking_id: str,
    amount_cents: int,
    currency: str,
    payment_mode: str,
    payment_type: str,
    status: str = "pending",
    provider: str | None = None,
) -> str:
    """Insert a payment row, pending unless told otherwise.

    A row inserted as completed gets ``settled_at`` set to now.

    Returns:
        UUID string of the payment.
    """
    if payment_type not in VALID_TYPES:
        raise ValueError(f"Invalid payment type: {payment_type}")
    if status not in VALID_STATUSES:
        raise ValueError(f"Invalid payment status: {status}")

    cur.execute(
        """
        INSERT INTO payments (
            booking_id, amount_cents, currency, payment_mode, payment_type,
            status, provider, settled_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s,
                CASE WHEN %s = 'completed' THEN now() END)
        RETURNING id
        """,
        (booking_id, amount_cents, currency, payment_mode, payment_type, status, provider, status),
    )
    return str(cur.fetchone()[0])


def list_booking_payments(cur: PgCursor, booking_id: str) -> list[dict[str, Any]]:
    cur.execute(
        f"""
        SELECT {_PAYMENT_COLUMNS}
        FROM payments
        WHERE booking_id = %s
        ORDER BY created_at, payment_type
        """,
        (booking_id,),
    )
    return [_payment_from_row(r) for r in cur.fetchall()]


def get_payment(cur: PgCursor, payment_id: str, *, lock: bool = False) -> dict[str, Any] | None:
    query = f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE id = %s"
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (payment_id,))
    row = cur.fetchone()
    return _payment_from_row(row) if row else None


def get_payment_by_order(
    cur: PgCursor,
    gateway_order_id: str,
    *,
    lock: bool = False,
) -> dict[str, Any] | None:
    """Find the payment a gateway order was created for."""
    query = f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE gateway_order_id = %s"
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (gateway_order_id,))
    row = cur.fetchone()
    return _payment_from_row(row) if row else None


def set_gateway_order(
    cur: PgCursor,
    *,
    payment_id: str,
    gateway_order_id: str,
    provider: str,
) -> bool:
    """Attach a gateway order to a pending payment without one.

    Returns:
        True if recorded, False if the row already had an order or is
        no longer pending.
    """
    cur.execute(
        """
        UPDATE payments
        SET gateway_order_id = %s, provider = %s, updated_at = now()
        WHERE id = %s AND status = 'pending' AND gateway_order_id IS NULL
        """,
        (gateway_order_id, provider, payment_id),
    )
    return cur.rowcount > 0


def mark_payment_completed(
    cur: PgCursor,
    *,
    payment_id: str,
    gateway_payment_id: str | None = None,
    settled_by: str | None = None,
) -> bool:
    """Transition a payment to completed.

    Returns:
        True if updated, False if it was already completed.
    """
    cur.execute(
        """
        UPDATE payments
        SET status = 'completed',
            gateway_payment_id = COALESCE(%s, gateway_payment_id),
            settled_by = %s,
            settled_at = now(),
            updated_at = now()
        WHERE id = %s AND status <> 'completed'
        """,
        (gateway_payment_id, settled_by, payment_id),
    )
    return cur.rowcount > 0


def mark_payment_failed(cur: PgCursor, *, payment_id: str) -> bool:
    """Pending -> failed. Completed payments are never downgraded."""
    cur.execute(
        """
        UPDATE payments
        SET status = 'failed', updated_at = now()
        WHERE id = %s AND status = 'pending'
        """,
        (payment_id,),
    )
    return cur.rowcount > 0


def sum_completed_payments(cur: PgCursor, booking_id: str) -> int:
    cur.execute(
        """
        SELECT COALESCE(SUM(amount_cents), 0)
        FROM payments
        WHERE booking_id = %s AND status = 'completed'
        """,
        (booking_id,),
    )
    return int(cur.fetchone()[0])


def find_completed_online_payment(cur: PgCursor, booking_id: str) -> dict[str, Any] | None:
    """Latest completed online payment with a gateway payment id."""
    cur.execute(
        f"""
        SELECT {_PAYMENT_COLUMNS}
        FROM payments
        WHERE booking_id = %s
          AND payment_mode = 'online'
          AND status = 'completed'
          AND gateway_payment_id IS NOT NULL
        ORDER BY settled_at DESC NULLS LAST
        LIMIT 1
        """,
        (booking_id,),
    )
    row = cur.fetchone()
    return _payment_from_row(row) if row else None


def sum_wallet_payments(cur: PgCursor, booking_id: str) -> int:
    """Completed amount a booking took from the guest's wallet."""
    cur.execute(
        """
        SELECT COALESCE(SUM(amount_cents), 0)
        FROM payments
        WHERE booking_id = %s AND status = 'completed' AND payment_type = 'wallet'
        """,
        (booking_id,),
    )
    return int(cur.fetchone()[0])
