"""Refund requests repository.

Uses raw SQL with psycopg2 (no ORM).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor

_REFUND_COLUMNS = (
    "id",
    "booking_id",
    "user_id",
    "original_amount_cents",
    "cancellation_fee_cents",
    "refund_amount_cents",
    "cancellation_fee_percentage",
    "refund_type",
    "reason",
    "refund_method",
    "status",
    "requested_by",
    "processed_by",
    "processed_at",
    "rejection_reason",
    "gateway_refund_id",
    "expected_processing_days",
    "created_at",
)
_ID_COLUMNS = ("id", "booking_id", "user_id", "requested_by", "processed_by")


def _refund_from_row(row: tuple) -> dict[str, Any]:
    refund = dict(zip(_REFUND_COLUMNS, row))
    for key in _ID_COLUMNS:
        if refund[key] is not None:
            refund[key] = str(refund[key])
    refund["cancellation_fee_percentage"] = Decimal(str(refund["cancellation_fee_percentage"]))
    return refund


def insert_refund_request(
    cur: PgCursor,
    *,
    booking_id: str,
    user_id: str,
    original_amount_cents: int,
    cancellation_fee_cents: int,
    refund_amount_cents: int,
    cancellation_fee_percentage: Decimal,
    refund_type: str,
    reason: str | None,
    refund_method: str,
    requested_by: str,
    expected_processing_days: int,
) -> dict[str, Any]:
    """Insert a pending refund request.

    uq_refund_requests_booking allows one request per booking
    (UniqueViolation otherwise).
    """
    cur.execute(
        f"""
        INSERT INTO refund_requests (
            booking_id, user_id, original_amount_cents, cancellation_fee_cents,
            refund_amount_cents, cancellation_fee_percentage, refund_type,
            reason, refund_method, requested_by, expected_processing_days
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING {', '.join(_REFUND_COLUMNS)}
        """,
        (
            booking_id,
            user_id,
            original_amount_cents,
            cancellation_fee_cents,
            refund_amount_cents,
            cancellation_fee_percentage,
            refund_type,
            reason,
            refund_method,
            requested_by,
            expected_processing_days,
        ),
    )
    return _refund_from_row(cur.fetchone())


def get_refund_request(cur: PgCursor, refund_id: str, *, lock: bool = False) -> dict[str, Any] | None:
    query = f"SELECT {', '.join(_REFUND_COLUMNS)} FROM refund_requests WHERE id = %s"
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (refund_id,))
    row = cur.fetchone()
    return _refund_from_row(row) if row else None


def get_refund_for_booking(cur: PgCursor, booking_id: str) -> dict[str, Any] | None:
    cur.execute(
        f"SELECT {', '.join(_REFUND_COLUMNS)} FROM refund_requests WHERE booking_id = %s",
        (booking_id,),
    )
    row = cur.fetchone()
    return _refund_from_row(row) if row else None


def mark_refund_processed(
    cur: PgCursor,
    *,
    refund_id: str,
    processed_by: str,
    processed_at: datetime,
    refund_method: str,
    gateway_refund_id: str | None = None,
) -> dict[str, Any] | None:
    """pending -> processed. Returns the updated row, None if not pending."""
    cur.execute(
        f"""
        UPDATE refund_requests
        SET status = 'processed',
            processed_by = %s,
            processed_at = %s,
            refund_method = %s,
            gateway_refund_id = %s,
            updated_at = now()
        WHERE id = %s AND status = 'pending'
        RETURNING {', '.join(_REFUND_COLUMNS)}
        """,
        (processed_by, processed_at, refund_method, gateway_refund_id, refund_id),
    )
    row = cur.fetchone()
    return _refund_from_row(row) if row else None


def mark_refund_rejected(
    cur: PgCursor,
    *,
    refund_id: str,
    processed_by: str,
    processed_at: datetime,
    rejection_reason: str,
) -> dict[str, Any] | None:
    """pending -> rejected. Returns the updated row, None if not pending."""
    cur.execute(
        f"""
        UPDATE refund_requests
        SET status = 'rejected',
            processed_by = %s,
            processed_at = %s,
            rejection_reason = %s,
            updated_at = now()
        WHERE id = %s AND status = 'pending'
        RETURNING {', '.join(_REFUND_COLUMNS)}
        """,
        (processed_by, processed_at, rejection_reason, refund_id),
    )
    row = cur.fetchone()
    return _refund_from_row(row) if row else None
