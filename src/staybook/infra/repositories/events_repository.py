"""Processed events repository - webhook receipt dedupe.

Uses raw SQL with psycopg2 (no ORM).
"""

from psycopg2.extensions import cursor as PgCursor


def record_event(cur: PgCursor, *, source: str, external_id: str) -> bool:
    """Record an external event id.

    Returns:
        True on first receipt, False if it was already recorded.
    """
    cur.execute(
        """
        INSERT INTO processed_events (source, external_id)
        VALUES (%s, %s)
        ON CONFLICT (source, external_id) DO NOTHING
        """,
        (source, external_id),
    )
    return cur.rowcount > 0
