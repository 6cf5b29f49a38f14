"""Tests for database layer."""

import os
from unittest.mock import MagicMock, patch

import pytest

from staybook.infra.db import UnitOfWork, get_conn, txn, unit_of_work


class TestGetConnPasswordFallback:
    """Tests for DB_PASSWORD fallback in get_conn() - no real DB needed."""

    def test_db_password_fallback_dsn_without_password(self):
        env = {"DATABASE_URL": "dbname=db user=u host=h port=5432", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("staybook.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with(
                "dbname=db user=u host=h port=5432",
                password="from-env",
            )

    def test_db_password_not_used_when_dsn_has_password(self):
        env = {"DATABASE_URL": "dbname=db user=u password=from-dsn host=h", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("staybook.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("dbname=db user=u password=from-dsn host=h")

    def test_db_password_fallback_url_without_password(self):
        env = {"DATABASE_URL": "postgres://u@h/db", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("staybook.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("postgres://u@h/db", password="from-env")

    def test_db_password_not_used_when_url_has_password(self):
        env = {"DATABASE_URL": "postgres://u:p@h/db", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("staybook.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("postgres://u:p@h/db")

    def test_raises_without_database_url(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="DATABASE_URL"):
                get_conn()


class TestTxnWithMockConnection:
    def test_commits_on_success(self):
        conn = MagicMock()
        with txn(conn):
            pass
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_not_called()

    def test_rolls_back_on_error(self):
        conn = MagicMock()
        with pytest.raises(ValueError):
            with txn(conn):
                raise ValueError("boom")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_closes_owned_connection(self):
        conn = MagicMock()
        with patch("staybook.infra.db.get_conn", return_value=conn):
            with txn():
                pass
        conn.close.assert_called_once()


class TestUnitOfWork:
    def test_hooks_run_after_commit(self):
        conn = MagicMock()
        order = []
        conn.commit.side_effect = lambda: order.append("commit")
        with unit_of_work(conn) as uow:
            uow.after_commit("first", lambda: order.append("hook"))
            assert order == []
        assert order == ["commit", "hook"]

    def test_hooks_dropped_on_rollback(self):
        conn = MagicMock()
        hook = MagicMock()
        with pytest.raises(RuntimeError):
            with unit_of_work(conn) as uow:
                uow.after_commit("never", hook)
                raise RuntimeError("abort")
        hook.assert_not_called()
        conn.rollback.assert_called_once()

    def test_failing_hook_is_logged_not_raised(self, caplog):
        conn = MagicMock()
        second = MagicMock()

        def broken():
            raise RuntimeError("push down")

        with unit_of_work(conn) as uow:
            uow.after_commit("broken", broken)
            uow.after_commit("second", second)

        second.assert_called_once()
        assert "post-commit hook failed" in caplog.text

    def test_joins_given_cursor(self):
        cur = MagicMock()
        hook = MagicMock()
        with patch("staybook.infra.db.txn") as mock_txn:
            with unit_of_work(cur=cur) as uow:
                assert uow.cur is cur
                uow.after_commit("hook", hook)
        mock_txn.assert_not_called()
        hook.assert_called_once()

    def test_run_after_commit_is_once(self):
        hook = MagicMock()
        uow = UnitOfWork(MagicMock())
        uow.after_commit("hook", hook)
        uow.run_after_commit()
        uow.run_after_commit()
        hook.assert_called_once()


_skip_no_db = pytest.mark.skipif(
    not os.environ.get("DATABASE_URL"),
    reason="DATABASE_URL not set - skipping DB integration tests",
)


@_skip_no_db
class TestTxn:
    """Tests for txn() against a real database."""

    def test_rollback_on_exception(self):
        conn = get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("CREATE TEMP TABLE test_rollback (id serial, val text)")
            conn.commit()

            with pytest.raises(ValueError):
                with txn(conn) as cur:
                    cur.execute("INSERT INTO test_rollback (val) VALUES (%s)", ("bad",))
                    raise ValueError("rollback test")

            with conn.cursor() as cur:
                cur.execute("SELECT count(*) FROM test_rollback")
                assert cur.fetchone()[0] == 0
        finally:
            conn.close()

    def test_creates_conn_if_none(self):
        with txn() as cur:
            cur.execute("SELECT 1")
            assert cur.fetchone()[0] == 1
