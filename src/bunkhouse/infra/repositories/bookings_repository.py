"""Bookings repository - persistence for booking records.

Uses raw SQL with psycopg2 (no ORM).
"""

from __future__ import annotations

from datetime import date, datetime

from psycopg2.extensions import cursor as PgCursor

from bunkhouse.domain.models import Booking, GuestInfo

BOOKING_COLUMNS = (
    "id, room_id, user_id, guest_name, guest_email, check_in, check_out, "
    "status, deleted_at, deleted_by, created_at, updated_at"
)


def get_booking(cur: PgCursor, booking_id: int, *, lock: bool = False) -> Booking | None:
    """Fetch a booking, soft-deleted or not.

    Args:
        cur: Database cursor.
        booking_id: Booking ID.
        lock: If True, appends FOR UPDATE to lock the row.
    """
    suffix = " FOR UPDATE" if lock else ""
    cur.execute(
        f"SELECT {BOOKING_COLUMNS} FROM bookings WHERE id = %s{suffix}",
        (booking_id,),
    )
    row = cur.fetchone()
    return Booking.from_row(row) if row is not None else None


def insert_booking(
    cur: PgCursor,
    *,
    room_id: int,
    guest: GuestInfo,
    check_in: date,
    check_out: date,
) -> Booking:
    """Insert a new pending booking.

    Only called by the booking write transaction, after the room lock is held
    and the availability check passed.
    """
    cur.execute(
        f"""
        INSERT INTO bookings (
            room_id, user_id, guest_name, guest_email,
            check_in, check_out, status
        )
        VALUES (%s, %s, %s, %s, %s, %s, 'pending')
        RETURNING {BOOKING_COLUMNS}
        """,
        (room_id, guest.user_id, guest.name, guest.email, check_in, check_out),
    )
    return Booking.from_row(cur.fetchone())


def update_booking_stay(
    cur: PgCursor,
    booking_id: int,
    *,
    room_id: int,
    guest: GuestInfo,
    check_in: date,
    check_out: date,
) -> Booking:
    """Move a booking to new dates (and possibly another room)."""
    cur.execute(
        f"""
        UPDATE bookings
        SET room_id = %s,
            user_id = %s,
            guest_name = %s,
            guest_email = %s,
            check_in = %s,
            check_out = %s,
            updated_at = now()
        WHERE id = %s
        RETURNING {BOOKING_COLUMNS}
        """,
        (
            room_id,
            guest.user_id,
            guest.name,
            guest.email,
            check_in,
            check_out,
            booking_id,
        ),
    )
    return Booking.from_row(cur.fetchone())


def soft_delete_booking(cur: PgCursor, booking_id: int, *, deleted_by: int | None) -> Booking:
    """Cancel a booking: status cancelled, deleted_at/deleted_by stamped."""
    cur.execute(
        f"""
        UPDATE bookings
        SET status = 'cancelled',
            deleted_at = now(),
            deleted_by = %s,
            updated_at = now()
        WHERE id = %s
        RETURNING {BOOKING_COLUMNS}
        """,
        (deleted_by, booking_id),
    )
    return Booking.from_row(cur.fetchone())


def restore_booking_row(cur: PgCursor, booking_id: int) -> Booking:
    """Undo a soft delete: back to pending, audit columns cleared."""
    cur.execute(
        f"""
        UPDATE bookings
        SET status = 'pending',
            deleted_at = NULL,
            deleted_by = NULL,
            updated_at = now()
        WHERE id = %s
        RETURNING {BOOKING_COLUMNS}
        """,
        (booking_id,),
    )
    return Booking.from_row(cur.fetchone())


def list_soft_deleted_before(cur: PgCursor, cutoff: datetime) -> list[tuple[int, int, datetime]]:
    """List (id, room_id, deleted_at) of bookings soft-deleted before cutoff."""
    cur.execute(
        """
        SELECT id, room_id, deleted_at
        FROM bookings
        WHERE deleted_at IS NOT NULL AND deleted_at < %s
        ORDER BY deleted_at
        """,
        (cutoff,),
    )
    return [(row[0], row[1], row[2]) for row in cur.fetchall()]


def purge_soft_deleted_before(cur: PgCursor, cutoff: datetime) -> int:
    """Permanently delete bookings soft-deleted before cutoff.

    Returns:
        Number of rows removed.
    """
    cur.execute(
        "DELETE FROM bookings WHERE deleted_at IS NOT NULL AND deleted_at < %s",
        (cutoff,),
    )
    return cur.rowcount
