"""Database access layer using psycopg2.

Provides:
- get_conn(): new connection from DATABASE_URL
- txn(): one short transaction; commit on success, rollback on error
- for_update(): SELECT ... FOR UPDATE helper
- is_transient_concurrency_error(): the single place that knows which
  driver errors mean "abort, try again"
"""

import os
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

import psycopg2
import psycopg2.errors
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

from bunkhouse.domain.errors import ConcurrencyTransientError

SQLSTATE_SERIALIZATION_FAILURE = "40001"
SQLSTATE_DEADLOCK_DETECTED = "40P01"
SQLSTATE_LOCK_NOT_AVAILABLE = "55P03"  # lock_timeout expired, or NOWAIT

TRANSIENT_SQLSTATES = frozenset(
    {
        SQLSTATE_SERIALIZATION_FAILURE,
        SQLSTATE_DEADLOCK_DETECTED,
        SQLSTATE_LOCK_NOT_AVAILABLE,
    }
)

_TRANSIENT_ERROR_CLASSES = (
    psycopg2.errors.SerializationFailure,
    psycopg2.errors.DeadlockDetected,
    psycopg2.errors.LockNotAvailable,
)


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def get_conn() -> PgConnection:
    """Open a connection to DATABASE_URL (URL or libpq key=value form).

    DB_PASSWORD is used only when the DSN itself carries no password.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    db_password = os.environ.get("DB_PASSWORD", "")
    if db_password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=db_password)
    return psycopg2.connect(dsn)


def is_transient_concurrency_error(err: BaseException) -> bool:
    """True for deadlocks, serialization failures and lock-wait timeouts.

    Everything else (constraint violations, syntax errors, lost
    connections) is permanent as far as retrying is concerned.
    """
    if isinstance(err, _TRANSIENT_ERROR_CLASSES):
        return True
    return getattr(err, "pgcode", None) in TRANSIENT_SQLSTATES


@contextmanager
def txn(
    conn: PgConnection | None = None,
    *,
    lock_timeout_ms: int | None = None,
) -> Iterator[PgCursor]:
    """Run one transaction and yield its cursor.

    Without conn a private connection is opened and closed on exit. Row
    locks taken inside live until the block ends.

    Args:
        conn: Existing connection to use instead of opening one.
        lock_timeout_ms: SET LOCAL lock_timeout; a row-lock wait longer
            than this aborts with SQLSTATE 55P03.

    Raises:
        ConcurrencyTransientError: The database aborted the transaction in
            a way that may succeed on a fresh attempt (already rolled back).

    Example:
        with txn(lock_timeout_ms=5000) as cur:
            cur.execute("SELECT id FROM rooms WHERE id = %s FOR UPDATE", (1,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            if lock_timeout_ms is not None:
                cur.execute("SET LOCAL lock_timeout = %s", (f"{int(lock_timeout_ms)}ms",))
            yield cur
        conn.commit()
    except psycopg2.Error as exc:
        conn.rollback()
        if is_transient_concurrency_error(exc):
            sqlstate = getattr(exc, "pgcode", None)
            raise ConcurrencyTransientError(
                f"transient database failure ({sqlstate or 'unknown'})",
                sqlstate=sqlstate,
            ) from exc
        raise
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


def for_update(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
    *,
    nowait: bool = False,
    skip_locked: bool = False,
) -> tuple[Any, ...] | None:
    """Run query with FOR UPDATE appended and return the first row.

    With nowait the statement fails at once (55P03) instead of waiting;
    with skip_locked a locked row is treated as absent.

    Raises:
        ValueError: If both nowait and skip_locked are set.
    """
    if nowait and skip_locked:
        raise ValueError("Cannot use both nowait and skip_locked")

    suffix = " FOR UPDATE"
    if nowait:
        suffix += " NOWAIT"
    elif skip_locked:
        suffix += " SKIP LOCKED"

    cur.execute(query.rstrip().rstrip(";") + suffix, params)
    return cur.fetchone()
