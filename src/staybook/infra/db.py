"""Database access layer using psycopg2.

Provides:
- get_conn(): Get a database connection from DATABASE_URL
- txn(): Context manager for short, safe transactions
- UnitOfWork / unit_of_work(): one explicit commit boundary shared by
  every write of a multi-record operation, with post-commit hooks
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Callable, Iterator
from urllib.parse import urlparse

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

logger = logging.getLogger(__name__)


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return urlparse(dsn).password is not None
    return any(part.startswith("password=") for part in dsn.split())


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    DB_PASSWORD is used only when the DSN itself carries no password.

    Returns:
        psycopg2 connection object.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    password = os.environ.get("DB_PASSWORD")
    if password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=password)
    return psycopg2.connect(dsn)


@contextmanager
def txn(conn: PgConnection | None = None) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on exception.

    Args:
        conn: Optional existing connection. If None, creates new one.

    Yields:
        Cursor for executing queries within the transaction.

    Example:
        with txn() as cur:
            cur.execute("INSERT INTO t (x) VALUES (%s)", (1,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


class UnitOfWork:
    """A single transaction shared by every sub-operation of one use case.

    Sub-operations receive the unit (or its ``cur``) explicitly and never
    commit on their own. Callbacks registered with ``after_commit`` run
    only once the transaction has committed; a failing callback is logged
    and never undoes the commit.
    """

    def __init__(self, cur: PgCursor) -> None:
        self.cur = cur
        self._after_commit: list[tuple[str, Callable[[], Any]]] = []

    def after_commit(self, label: str, callback: Callable[[], Any]) -> None:
        """Register a side effect to run after a successful commit."""
        self._after_commit.append((label, callback))

    def run_after_commit(self) -> None:
        hooks, self._after_commit = self._after_commit, []
        for label, callback in hooks:
            try:
                callback()
            except Exception:
                logger.exception(
                    "post-commit hook failed",
                    extra={"extra_fields": {"hook": label}},
                )

    def discard(self) -> None:
        self._after_commit.clear()


@contextmanager
def unit_of_work(
    conn: PgConnection | None = None,
    *,
    cur: PgCursor | None = None,
) -> Iterator[UnitOfWork]:
    """Open a UnitOfWork.

    With ``cur`` the unit joins the caller's transaction: nothing is
    committed here and post-commit hooks run when this block exits
    cleanly (the caller owns the real commit). Otherwise a new
    transaction is opened via ``txn`` and hooks run after its commit.
    """
    if cur is not None:
        uow = UnitOfWork(cur)
        try:
            yield uow
        except Exception:
            uow.discard()
            raise
        uow.run_after_commit()
        return

    with txn(conn) as own_cur:
        uow = UnitOfWork(own_cur)
        try:
            yield uow
        except Exception:
            uow.discard()
            raise
    uow.run_after_commit()
