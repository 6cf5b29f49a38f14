"""Wallets repository - wallet accounts and their append-only ledger.

Uses raw SQL with psycopg2 (no ORM). Ledger rows are only ever inserted.
"""

import json
from typing import Any

from psycopg2.extensions import cursor as PgCursor

_WALLET_COLUMNS = """
    id, user_id, balance_cents, total_earned_cents, total_spent_cents,
    status, created_at, updated_at
"""


def _wallet_from_row(row: tuple) -> dict[str, Any]:
    return {
        "id": str(row[0]),
        "user_id": str(row[1]),
        "balance_cents": int(row[2]),
        "total_earned_cents": int(row[3]),
        "total_spent_cents": int(row[4]),
        "status": row[5],
        "created_at": row[6],
        "updated_at": row[7],
    }


def get_wallet(cur: PgCursor, user_id: str) -> dict[str, Any] | None:
    cur.execute(f"SELECT {_WALLET_COLUMNS} FROM wallets WHERE user_id = %s", (user_id,))
    row = cur.fetchone()
    return _wallet_from_row(row) if row else None


def lock_or_create_wallet(cur: PgCursor, user_id: str) -> dict[str, Any]:
    """Get-or-create the user's wallet and lock its row.

    The insert is a no-op when the wallet exists, so two first-time
    writers converge on the same row and then serialize on FOR UPDATE.
    """
    cur.execute(
        """
        INSERT INTO wallets (user_id)
        VALUES (%s)
        ON CONFLICT (user_id) DO NOTHING
        """,
        (user_id,),
    )
    cur.execute(
        f"SELECT {_WALLET_COLUMNS} FROM wallets WHERE user_id = %s FOR UPDATE",
        (user_id,),
    )
    return _wallet_from_row(cur.fetchone())


def update_wallet_totals(
    cur: PgCursor,
    *,
    wallet_id: str,
    balance_cents: int,
    total_earned_cents: int,
    total_spent_cents: int,
) -> None:
    cur.execute(
        """
        UPDATE wallets
        SET balance_cents = %s,
            total_earned_cents = %s,
            total_spent_cents = %s,
            updated_at = now()
        WHERE id = %s
        """,
        (balance_cents, total_earned_cents, total_spent_cents, wallet_id),
    )


def insert_wallet_transaction(
    cur: PgCursor,
    *,
    wallet_id: str,
    user_id: str,
    txn_type: str,
    amount_cents: int,
    balance_after_cents: int,
    source: str,
    description: str | None = None,
    reference_id: str | None = None,
    reference_type: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> str:
    """Append a ledger row.

    Returns:
        UUID string of the transaction.
    """
    cur.execute(
        """
        INSERT INTO wallet_transactions (
            wallet_id, user_id, type, amount_cents, balance_after_cents,
            source, description, reference_id, reference_type, metadata
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb)
        RETURNING id
        """,
        (
            wallet_id,
            user_id,
            txn_type,
            amount_cents,
            balance_after_cents,
            source,
            description,
            reference_id,
            reference_type,
            json.dumps(metadata or {}),
        ),
    )
    return str(cur.fetchone()[0])


def list_wallet_transactions(
    cur: PgCursor,
    *,
    wallet_id: str,
    limit: int = 50,
    offset: int = 0,
) -> list[dict[str, Any]]:
    """Newest first."""
    cur.execute(
        """
        SELECT id, type, amount_cents, balance_after_cents, source,
               description, reference_id, reference_type, metadata, created_at
        FROM wallet_transactions
        WHERE wallet_id = %s
        ORDER BY seq DESC
        LIMIT %s OFFSET %s
        """,
        (wallet_id, limit, offset),
    )
    return [
        {
            "id": str(r[0]),
            "type": r[1],
            "amount_cents": int(r[2]),
            "balance_after_cents": int(r[3]),
            "source": r[4],
            "description": r[5],
            "reference_id": r[6],
            "reference_type": r[7],
            "metadata": r[8] or {},
            "created_at": r[9],
        }
        for r in cur.fetchall()
    ]


def ledger_summary(cur: PgCursor, *, wallet_id: str) -> dict[str, int | None]:
    """Credit and debit sums plus the balance snapshot of the newest row."""
    cur.execute(
        """
        SELECT
            COALESCE(SUM(amount_cents) FILTER (WHERE type = 'credit'), 0),
            COALESCE(SUM(amount_cents) FILTER (WHERE type = 'debit'), 0),
            (SELECT balance_after_cents FROM wallet_transactions
             WHERE wallet_id = %s ORDER BY seq DESC LIMIT 1)
        FROM wallet_transactions
        WHERE wallet_id = %s
        """,
        (wallet_id, wallet_id),
    )
    row = cur.fetchone()
    return {
        "credits_cents": int(row[0]),
        "debits_cents": int(row[1]),
        "last_balance_after_cents": int(row[2]) if row[2] is not None else None,
    }
