"""Tests for the migrations DSN-to-URL helpers."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from migrations.env_helpers import database_url, keyword_dsn_to_url, parse_keyword_dsn


class TestParseKeywordDsn:
    def test_plain_pairs(self):
        assert parse_keyword_dsn("dbname=db user=u host=h") == {"dbname": "db", "user": "u", "host": "h"}

    def test_quoted_value_with_spaces(self):
        assert parse_keyword_dsn("password='p@ss w0rd' host=h")["password"] == "p@ss w0rd"

    def test_escaped_quote(self):
        assert parse_keyword_dsn(r"password='it\'s'")["password"] == "it's"


class TestKeywordDsnToUrl:
    def test_unix_socket(self):
        dsn = "dbname=staybook user=staybook-sa password=s3cret host=/cloudsql/proj:us-central1:inst"
        assert keyword_dsn_to_url(dsn) == (
            "postgresql+psycopg2://staybook-sa:s3cret@/staybook"
            "?host=%2Fcloudsql%2Fproj%3Aus-central1%3Ainst"
        )

    def test_tcp_host(self):
        dsn = "dbname=staybook user=admin password=pw host=localhost port=5433"
        assert keyword_dsn_to_url(dsn) == "postgresql+psycopg2://admin:pw@localhost:5433/staybook"

    def test_default_port(self):
        assert keyword_dsn_to_url("dbname=db user=u password=p host=myhost") == (
            "postgresql+psycopg2://u:p@myhost:5432/db"
        )

    def test_special_chars_encoded(self):
        result = keyword_dsn_to_url("dbname=db user=u@domain password=p@ss=word host=h")
        assert "u%40domain" in result
        assert "p%40ss%3Dword" in result

    def test_db_password_env_fallback(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        assert "from-env" in keyword_dsn_to_url("dbname=db user=u host=h")

    def test_db_password_env_not_used_when_dsn_has_password(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        result = keyword_dsn_to_url("dbname=db user=u password=from-dsn host=h")
        assert "from-dsn" in result
        assert "from-env" not in result


class TestDatabaseUrl:
    def test_url_passthrough(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgresql+psycopg2://u:p@h/db"}, clear=True):
            assert database_url() == "postgresql+psycopg2://u:p@h/db"

    def test_keyword_dsn_converted(self):
        with patch.dict(os.environ, {"DATABASE_URL": "dbname=db user=sa password=pw host=h"}, clear=True):
            assert database_url() == "postgresql+psycopg2://sa:pw@h:5432/db"

    def test_missing_raises(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="DATABASE_URL is required"):
                database_url()

    @pytest.mark.parametrize("url", ["postgres://u:p@h/db", "postgresql://u:p@h/db"])
    def test_scheme_normalized(self, url):
        with patch.dict(os.environ, {"DATABASE_URL": url}, clear=True):
            assert database_url() == "postgresql+psycopg2://u:p@h/db"

    def test_url_db_password_fallback(self):
        env = {"DATABASE_URL": "postgresql://u@h:5432/db", "DB_PASSWORD": "secret"}
        with patch.dict(os.environ, env, clear=True):
            assert database_url() == "postgresql+psycopg2://u:secret@h:5432/db"
