"""Availability query: does an active booking collide with a candidate stay.

Only active bookings block a room: status pending or confirmed AND
deleted_at IS NULL. A cancelled (soft-deleted) booking frees its nights the
moment its transaction commits.

These functions must run inside the booking write transaction while the
room row is locked (see domain.bookings). Outside that lock the answer is
stale before the caller can act on it.
"""

from __future__ import annotations

from datetime import date

from psycopg2.extensions import cursor as PgCursor

from bunkhouse.domain.errors import ConflictError
from bunkhouse.domain.intervals import overlaps
from bunkhouse.domain.models import ACTIVE_BOOKING_STATUSES
from bunkhouse.observability.logging import get_logger
from bunkhouse.observability.redaction import safe_log_context

logger = get_logger(__name__)


def find_conflict(
    cur: PgCursor,
    *,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: int | None = None,
) -> tuple[int, date, date] | None:
    """Return the first active booking overlapping [check_in, check_out).

    The WHERE clause narrows candidates with the same half-open predicate so
    the (room_id, status, check_in, check_out) index is used; each candidate
    is then confirmed with overlaps().

    Args:
        cur: Database cursor inside the booking transaction.
        room_id: Room to check.
        check_in: Desired check-in date (inclusive).
        check_out: Desired check-out date (exclusive).
        exclude_booking_id: Booking to ignore (date edits of that booking).

    Returns:
        (booking_id, check_in, check_out) of the first conflict, or None.
    """
    conditions = [
        "room_id = %s",
        "status = ANY(%s)",
        "deleted_at IS NULL",
        "check_in < %s",   # existing check_in < new check_out
        "check_out > %s",  # existing check_out > new check_in
    ]
    params: list = [room_id, list(ACTIVE_BOOKING_STATUSES), check_out, check_in]

    if exclude_booking_id is not None:
        conditions.append("id <> %s")
        params.append(exclude_booking_id)

    where = " AND ".join(conditions)

    cur.execute(
        f"""
        SELECT id, check_in, check_out
        FROM bookings
        WHERE {where}
        ORDER BY check_in
        """,
        params,
    )

    for row in cur.fetchall():
        if overlaps(check_in, check_out, row[1], row[2]):
            logger.warning(
                "booking conflict detected",
                extra={
                    "extra_fields": safe_log_context(
                        room_id=room_id,
                        requested_check_in=check_in,
                        requested_check_out=check_out,
                        conflicting_booking_id=row[0],
                        existing_check_in=row[1],
                        existing_check_out=row[2],
                    )
                },
            )
            return (row[0], row[1], row[2])

    return None


def has_conflict(
    cur: PgCursor,
    *,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: int | None = None,
) -> bool:
    """True if any active booking of room_id overlaps [check_in, check_out)."""
    return (
        find_conflict(
            cur,
            room_id=room_id,
            check_in=check_in,
            check_out=check_out,
            exclude_booking_id=exclude_booking_id,
        )
        is not None
    )


def assert_no_conflict(
    cur: PgCursor,
    *,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: int | None = None,
) -> None:
    """Raise ConflictError if the stay collides with an active booking.

    All arguments are forwarded to find_conflict.
    """
    conflict = find_conflict(
        cur,
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        exclude_booking_id=exclude_booking_id,
    )
    if conflict is not None:
        raise ConflictError(
            room_id=room_id,
            conflicting_booking_id=conflict[0],
            existing_check_in=conflict[1],
            existing_check_out=conflict[2],
        )
