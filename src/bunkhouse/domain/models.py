"""Booking and room records as read from storage.

These are snapshots, never authoritative copies: every write decision is
made against a freshly locked row inside a transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

BookingStatus = Literal["pending", "confirmed", "cancelled"]
RoomStatus = Literal["available", "occupied", "maintenance"]

BOOKING_STATUSES: tuple[str, ...] = ("pending", "confirmed", "cancelled")
ACTIVE_BOOKING_STATUSES: tuple[str, ...] = ("pending", "confirmed")
ROOM_STATUSES: tuple[str, ...] = ("available", "occupied", "maintenance")


@dataclass(frozen=True)
class GuestInfo:
    """Who the booking is for. user_id is None for guest checkouts."""

    name: str
    email: str
    user_id: int | None = None


@dataclass(frozen=True)
class Booking:
    id: int
    room_id: int
    user_id: int | None
    guest_name: str
    guest_email: str
    check_in: date
    check_out: date
    status: str
    deleted_at: datetime | None = None
    deleted_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None and self.status in ACTIVE_BOOKING_STATUSES

    @classmethod
    def from_row(cls, row: tuple) -> "Booking":
        """Build from a row selected with BOOKING_COLUMNS."""
        return cls(
            id=row[0],
            room_id=row[1],
            user_id=row[2],
            guest_name=row[3],
            guest_email=row[4],
            check_in=row[5],
            check_out=row[6],
            status=row[7],
            deleted_at=row[8],
            deleted_by=row[9],
            created_at=row[10],
            updated_at=row[11],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        return {
            "id": self.id,
            "room_id": self.room_id,
            "user_id": self.user_id,
            "guest_name": self.guest_name,
            "guest_email": self.guest_email,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "nights": self.nights,
            "status": self.status,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "deleted_by": self.deleted_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class Room:
    id: int
    name: str
    price: Decimal
    max_guests: int
    status: str
    lock_version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: tuple) -> "Room":
        """Build from a row selected with ROOM_COLUMNS."""
        return cls(
            id=row[0],
            name=row[1],
            price=Decimal(row[2]),
            max_guests=row[3],
            status=row[4],
            # Rows written before lock_version existed count as version 1
            lock_version=row[5] if row[5] is not None else 1,
            created_at=row[6],
            updated_at=row[7],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict. lock_version is exposed on purpose."""
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "max_guests": self.max_guests,
            "status": self.status,
            "lock_version": self.lock_version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
