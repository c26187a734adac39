"""Rooms repository - persistence for room records.

Uses raw SQL with psycopg2 (no ORM). lock_version is managed here only:
callers never set it directly.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from bunkhouse.domain.models import Room
from bunkhouse.infra.db import for_update

ROOM_COLUMNS = "id, name, price, max_guests, status, lock_version, created_at, updated_at"

# Columns a caller may change through update_room_versioned
UPDATABLE_ROOM_COLUMNS = ("name", "price", "max_guests", "status")


def get_room(cur: PgCursor, room_id: int) -> Room | None:
    """Read a room without locking it."""
    cur.execute(
        f"SELECT {ROOM_COLUMNS} FROM rooms WHERE id = %s",
        (room_id,),
    )
    row = cur.fetchone()
    return Room.from_row(row) if row is not None else None


def lock_room(cur: PgCursor, room_id: int) -> Room | None:
    """Take an exclusive row lock on the room until the transaction ends.

    This lock is what serializes booking writes for one room. It must be
    the first lock a booking transaction takes.
    """
    row = for_update(
        cur,
        f"SELECT {ROOM_COLUMNS} FROM rooms WHERE id = %s",
        (room_id,),
    )
    return Room.from_row(row) if row is not None else None


def insert_room(
    cur: PgCursor,
    *,
    name: str,
    price: Decimal,
    max_guests: int,
    status: str,
) -> Room:
    """Insert a room. New rooms start at lock_version 1."""
    cur.execute(
        f"""
        INSERT INTO rooms (name, price, max_guests, status, lock_version)
        VALUES (%s, %s, %s, %s, 1)
        RETURNING {ROOM_COLUMNS}
        """,
        (name, price, max_guests, status),
    )
    return Room.from_row(cur.fetchone())


def update_room_versioned(
    cur: PgCursor,
    room_id: int,
    *,
    expected_version: int,
    changes: dict[str, Any],
) -> Room | None:
    """Apply changes only if lock_version still equals expected_version.

    A single conditional UPDATE: no row lock is taken before it, so it never
    waits on a reader. It does wait for a booking transaction holding the
    room FOR UPDATE, up to the transaction's lock_timeout.

    Returns:
        The updated room (lock_version incremented by one), or None when no
        row matched (missing room or version mismatch).

    Raises:
        ValueError: If changes names a column outside UPDATABLE_ROOM_COLUMNS.
    """
    unknown = set(changes) - set(UPDATABLE_ROOM_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot update room columns: {sorted(unknown)}")

    sets: list[str] = []
    params: list = []
    for column in UPDATABLE_ROOM_COLUMNS:
        if column in changes:
            sets.append(f"{column} = %s")
            params.append(changes[column])
    sets.append("lock_version = lock_version + 1")
    sets.append("updated_at = now()")

    params.extend([room_id, expected_version])

    cur.execute(
        f"""
        UPDATE rooms
        SET {", ".join(sets)}
        WHERE id = %s AND lock_version = %s
        RETURNING {ROOM_COLUMNS}
        """,  # noqa: S608 - SET clause built from whitelisted column names only
        params,
    )
    row = cur.fetchone()
    return Room.from_row(row) if row is not None else None


def delete_room_versioned(cur: PgCursor, room_id: int, *, expected_version: int) -> bool:
    """Delete the room only if lock_version still equals expected_version.

    Returns:
        True if a row was deleted.
    """
    cur.execute(
        "DELETE FROM rooms WHERE id = %s AND lock_version = %s RETURNING id",
        (room_id, expected_version),
    )
    return cur.fetchone() is not None
