"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be imported without an alembic context.
"""

from __future__ import annotations

import os
import shlex
from urllib.parse import quote_plus, urlparse, urlunparse

_DRIVER_PREFIX = "postgresql+psycopg2://"


def parse_keyword_dsn(dsn: str) -> dict[str, str]:
    """Parse a libpq ``key=value`` DSN (single-quoted values allowed)."""
    lexer = shlex.shlex(dsn, posix=True)
    lexer.whitespace_split = True
    lexer.quotes = "'"
    lexer.escape = "\\"
    lexer.escapedquotes = "'"
    params: dict[str, str] = {}
    for token in lexer:
        key, sep, value = token.partition("=")
        if sep:
            params[key] = value
    return params


def keyword_dsn_to_url(dsn: str) -> str:
    """Convert a keyword DSN to a SQLAlchemy URL.

    A host starting with ``/`` is a unix socket directory and is passed as
    the ``host`` query parameter.
    """
    params = parse_keyword_dsn(dsn)
    password = params.get("password") or os.environ.get("DB_PASSWORD", "")

    user = quote_plus(params.get("user", ""))
    dbname = quote_plus(params.get("dbname", ""))
    host = params.get("host", "localhost")
    port = params.get("port", "5432")
    auth = f"{user}:{quote_plus(password)}"

    if host.startswith("/"):
        return f"{_DRIVER_PREFIX}{auth}@/{dbname}?host={quote_plus(host)}"
    return f"{_DRIVER_PREFIX}{auth}@{host}:{port}/{dbname}"


def _with_password(url: str, password: str) -> str:
    parsed = urlparse(url)
    if parsed.password:
        return url
    netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(password)}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def database_url() -> str:
    """SQLAlchemy URL for DATABASE_URL (URL or keyword form)."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" not in url:
        return keyword_dsn_to_url(url)

    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            url = _DRIVER_PREFIX + url[len(scheme):]
            break
    password = os.environ.get("DB_PASSWORD", "")
    return _with_password(url, password) if password else url
