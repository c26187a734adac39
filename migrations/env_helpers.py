"""Database URL helpers for Alembic migrations.

DATABASE_URL may be a URL (postgres://, postgresql://) or a libpq key=value
DSN; SQLAlchemy needs a postgresql+psycopg2:// URL either way. Kept apart
from env.py so it can be tested without an alembic context.
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus, urlparse, urlunparse

SQLALCHEMY_SCHEME = "postgresql+psycopg2://"


def parse_libpq_dsn(dsn: str) -> dict[str, str]:
    """Split a libpq DSN into a dict. Single-quoted values may hold spaces and \\' escapes."""
    tokens: dict[str, str] = {}
    pos, end = 0, len(dsn)

    while pos < end:
        while pos < end and dsn[pos] == " ":
            pos += 1
        eq = dsn.find("=", pos)
        if pos >= end or eq == -1:
            break
        key = dsn[pos:eq].strip()
        pos = eq + 1

        if pos < end and dsn[pos] == "'":
            pos += 1
            chars: list[str] = []
            while pos < end and dsn[pos] != "'":
                if dsn[pos] == "\\" and pos + 1 < end:
                    pos += 1
                chars.append(dsn[pos])
                pos += 1
            pos += 1  # closing quote
            tokens[key] = "".join(chars)
        else:
            space = dsn.find(" ", pos)
            space = end if space == -1 else space
            tokens[key] = dsn[pos:space]
            pos = space

    return tokens


def libpq_dsn_to_url(dsn: str) -> str:
    """Convert a libpq DSN to a SQLAlchemy URL.

    host=/some/dir (unix socket) becomes ...@/DB?host=/some/dir,
    anything else ...@HOST:PORT/DB. DB_PASSWORD fills a missing password.
    """
    tokens = parse_libpq_dsn(dsn)
    password = tokens.get("password") or os.environ.get("DB_PASSWORD", "")

    creds = f"{quote_plus(tokens.get('user', ''))}:{quote_plus(password)}"
    dbname = quote_plus(tokens.get("dbname", ""))
    host = tokens.get("host", "localhost")

    if host.startswith("/"):
        return f"{SQLALCHEMY_SCHEME}{creds}@/{dbname}?host={quote_plus(host)}"
    return f"{SQLALCHEMY_SCHEME}{creds}@{host}:{tokens.get('port', '5432')}/{dbname}"


def _normalize_url(url: str) -> str:
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            url = SQLALCHEMY_SCHEME + url[len(prefix):]
            break

    db_password = os.environ.get("DB_PASSWORD", "")
    parsed = urlparse(url)
    if db_password and not parsed.password:
        netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(db_password)}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        url = urlunparse(parsed._replace(netloc=netloc))
    return url


def database_url_from_env() -> str:
    """SQLAlchemy URL for DATABASE_URL.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" in url:
        return _normalize_url(url)
    return libpq_dsn_to_url(url)
