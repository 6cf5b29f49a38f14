"""Wallet ledger.

Each user has one wallet row holding ``balance``, ``total_earned`` and
``total_spent`` plus an append-only list of transactions. Every credit or
debit locks the wallet row, updates the totals and appends a transaction
carrying the resulting balance, all in one transaction. Hence at every
commit:

    balance = total_earned - total_spent = sum(credits) - sum(debits) >= 0

and the newest transaction's ``balance_after`` equals the balance.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from psycopg2.extensions import cursor as PgCursor

from staybook.infra.db import txn
from staybook.infra.repositories.wallets_repository import (
    get_wallet as _get_wallet_row,
    insert_wallet_transaction,
    ledger_summary,
    list_wallet_transactions,
    lock_or_create_wallet,
    update_wallet_totals,
)

from .errors import InsufficientFundsError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEntry:
    transaction_id: str
    new_balance_cents: int
    amount_cents: int


@dataclass(frozen=True)
class Reconciliation:
    user_id: str
    balance_cents: int
    ledger_balance_cents: int
    last_balance_after_cents: int | None

    @property
    def consistent(self) -> bool:
        if self.balance_cents != self.ledger_balance_cents:
            return False
        if self.last_balance_after_cents is None:
            return self.balance_cents == 0
        return self.last_balance_after_cents == self.balance_cents


@contextmanager
def _cursor(cur: PgCursor | None) -> Iterator[PgCursor]:
    if cur is not None:
        yield cur
    else:
        with txn() as own:
            yield own


def _check_amount(amount_cents: int) -> None:
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise ValidationError(
            "Amount must be a positive number of cents", details={"amount_cents": amount_cents}
        )


def _post(
    cur: PgCursor,
    *,
    user_id: str,
    txn_type: str,
    amount_cents: int,
    source: str,
    description: str | None,
    reference_id: str | None,
    reference_type: str | None,
    metadata: dict[str, Any] | None,
) -> LedgerEntry:
    wallet = lock_or_create_wallet(cur, user_id)
    balance = wallet["balance_cents"]
    earned = wallet["total_earned_cents"]
    spent = wallet["total_spent_cents"]

    if txn_type == "credit":
        balance += amount_cents
        earned += amount_cents
    else:
        if amount_cents > balance:
            logger.info(
                "wallet debit refused",
                extra={
                    "extra_fields": {
                        "user_id": user_id,
                        "balance_cents": balance,
                        "requested_cents": amount_cents,
                    }
                },
            )
            raise InsufficientFundsError(balance_cents=balance, requested_cents=amount_cents)
        balance -= amount_cents
        spent += amount_cents

    update_wallet_totals(
        cur,
        wallet_id=wallet["id"],
        balance_cents=balance,
        total_earned_cents=earned,
        total_spent_cents=spent,
    )
    transaction_id = insert_wallet_transaction(
        cur,
        wallet_id=wallet["id"],
        user_id=user_id,
        txn_type=txn_type,
        amount_cents=amount_cents,
        balance_after_cents=balance,
        source=source,
        description=description,
        reference_id=reference_id,
        reference_type=reference_type,
        metadata=metadata,
    )

    logger.info(
        "wallet %s",
        txn_type,
        extra={
            "extra_fields": {
                "user_id": user_id,
                "transaction_id": transaction_id,
                "amount_cents": amount_cents,
                "balance_after_cents": balance,
                "source": source,
            }
        },
    )
    return LedgerEntry(transaction_id, balance, amount_cents)


def credit(
    user_id: str,
    amount_cents: int,
    *,
    source: str,
    description: str | None = None,
    reference_id: str | None = None,
    reference_type: str | None = None,
    metadata: dict[str, Any] | None = None,
    cur: PgCursor | None = None,
) -> LedgerEntry:
    """Add money to a user's wallet, creating the wallet if needed.

    Args:
        user_id: Wallet owner.
        amount_cents: Positive amount.
        source: Origin of the money (``refund``, ``admin``, ``promotion``...).
        description: Human readable text stored on the transaction.
        reference_id: Id of the related record (booking, refund...).
        reference_type: Kind of the related record.
        metadata: Free-form JSON stored on the transaction.
        cur: Join this cursor's transaction instead of opening one.

    Returns:
        LedgerEntry with the new transaction id and balance.

    Raises:
        ValidationError: amount_cents <= 0.
    """
    _check_amount(amount_cents)
    with _cursor(cur) as c:
        return _post(
            c,
            user_id=user_id,
            txn_type="credit",
            amount_cents=amount_cents,
            source=source,
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
            metadata=metadata,
        )


def debit(
    user_id: str,
    amount_cents: int,
    *,
    source: str,
    description: str | None = None,
    reference_id: str | None = None,
    reference_type: str | None = None,
    metadata: dict[str, Any] | None = None,
    cur: PgCursor | None = None,
) -> LedgerEntry:
    """Take money out of a user's wallet.

    Same arguments as ``credit``. Nothing is written when the balance is
    too low.

    Raises:
        ValidationError: amount_cents <= 0.
        InsufficientFundsError: amount_cents > current balance.
    """
    _check_amount(amount_cents)
    with _cursor(cur) as c:
        return _post(
            c,
            user_id=user_id,
            txn_type="debit",
            amount_cents=amount_cents,
            source=source,
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
            metadata=metadata,
        )


def get_wallet(user_id: str, *, cur: PgCursor | None = None) -> dict[str, Any]:
    """Current wallet state; a user without a wallet reads as an empty one."""
    with _cursor(cur) as c:
        wallet = _get_wallet_row(c, user_id)
    if wallet is None:
        return {
            "id": None,
            "user_id": user_id,
            "balance_cents": 0,
            "total_earned_cents": 0,
            "total_spent_cents": 0,
            "status": "active",
        }
    return wallet


def list_transactions(
    user_id: str,
    *,
    limit: int = 50,
    offset: int = 0,
    cur: PgCursor | None = None,
) -> list[dict[str, Any]]:
    with _cursor(cur) as c:
        wallet = _get_wallet_row(c, user_id)
        if wallet is None:
            return []
        return list_wallet_transactions(c, wallet_id=wallet["id"], limit=limit, offset=offset)


def reconcile(user_id: str, *, cur: PgCursor | None = None) -> Reconciliation:
    """Replay the ledger and compare it with the stored balance."""
    with _cursor(cur) as c:
        wallet = _get_wallet_row(c, user_id)
        if wallet is None:
            return Reconciliation(user_id, 0, 0, None)
        summary = ledger_summary(c, wallet_id=wallet["id"])

    result = Reconciliation(
        user_id=user_id,
        balance_cents=wallet["balance_cents"],
        ledger_balance_cents=summary["credits_cents"] - summary["debits_cents"],
        last_balance_after_cents=summary["last_balance_after_cents"],
    )
    if not result.consistent:
        logger.error(
            "wallet ledger drift",
            extra={
                "extra_fields": {
                    "user_id": user_id,
                    "balance_cents": result.balance_cents,
                    "ledger_balance_cents": result.ledger_balance_cents,
                    "last_balance_after_cents": result.last_balance_after_cents,
                }
            },
        )
    return result
