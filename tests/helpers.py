"""Shared test helper functions for Bunkhouse tests.

Regular functions and classes (not fixtures) importable from any test module.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from bunkhouse.domain.models import Booking, Room


class MockTxnContext:
    """Stands in for infra.db.txn(): yields the given cursor, never swallows errors."""

    def __init__(self, cursor):
        self._cursor = cursor
        self.entered = 0

    def __enter__(self):
        self.entered += 1
        return self._cursor

    def __exit__(self, *args):
        return False


def make_room(
    room_id: int = 1,
    *,
    name: str = "Dorm A",
    price: str = "25.00",
    max_guests: int = 6,
    status: str = "available",
    lock_version: int = 1,
) -> Room:
    return Room(
        id=room_id,
        name=name,
        price=Decimal(price),
        max_guests=max_guests,
        status=status,
        lock_version=lock_version,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def make_booking(
    booking_id: int = 10,
    *,
    room_id: int = 1,
    check_in: date = date(2026, 1, 5),
    check_out: date = date(2026, 1, 8),
    status: str = "pending",
    deleted_at: datetime | None = None,
    deleted_by: int | None = None,
    user_id: int | None = None,
) -> Booking:
    return Booking(
        id=booking_id,
        room_id=room_id,
        user_id=user_id,
        guest_name="Ana Souza",
        guest_email="ana@example.com",
        check_in=check_in,
        check_out=check_out,
        status=status,
        deleted_at=deleted_at,
        deleted_by=deleted_by,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
