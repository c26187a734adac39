"""Room writes - optimistic concurrency on lock_version.

Room edits are rare and short, so they never take a row lock up front.
Each write is one conditional statement (WHERE lock_version = expected);
zero matched rows means someone else got there first and the caller gets
StaleVersionError. Stale writes are never retried automatically.

The conditional statement still queues behind a booking transaction that
holds the room row FOR UPDATE. That wait is capped by the same lock_timeout
as booking writes; when it expires the caller gets ConcurrencyTransientError.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import psycopg2.errors
from psycopg2.extensions import connection as PgConnection

from bunkhouse.domain.errors import (
    RoomInUseError,
    RoomNotFoundError,
    StaleVersionError,
    ValidationError,
)
from bunkhouse.domain.models import ROOM_STATUSES, Room
from bunkhouse.infra.db import txn
from bunkhouse.infra.repositories import rooms_repository
from bunkhouse.infra.settings import BookingSettings, get_booking_settings
from bunkhouse.observability.logging import get_logger
from bunkhouse.observability.redaction import safe_log_context

logger = get_logger(__name__)

MAX_ROOM_NAME_LENGTH = 100


def _validate_room_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Validate and normalize room attributes. Returns the cleaned dict."""
    errors: dict[str, str] = {}
    cleaned: dict[str, Any] = {}

    unknown = set(fields) - set(rooms_repository.UPDATABLE_ROOM_COLUMNS)
    for key in sorted(unknown):
        errors[key] = "field cannot be changed"

    if "name" in fields:
        name = (fields["name"] or "").strip() if isinstance(fields["name"], str) else ""
        if not name:
            errors["name"] = "name is required"
        elif len(name) > MAX_ROOM_NAME_LENGTH:
            errors["name"] = f"name must be at most {MAX_ROOM_NAME_LENGTH} characters"
        else:
            cleaned["name"] = name

    if "price" in fields:
        try:
            price = Decimal(str(fields["price"]))
        except (InvalidOperation, ValueError):
            errors["price"] = "price must be a number"
        else:
            if not price.is_finite() or price < 0:
                errors["price"] = "price must be >= 0"
            else:
                cleaned["price"] = price

    if "max_guests" in fields:
        max_guests = fields["max_guests"]
        if isinstance(max_guests, bool) or not isinstance(max_guests, int) or max_guests < 1:
            errors["max_guests"] = "max_guests must be an integer >= 1"
        else:
            cleaned["max_guests"] = max_guests

    if "status" in fields:
        if fields["status"] not in ROOM_STATUSES:
            errors["status"] = f"status must be one of {', '.join(ROOM_STATUSES)}"
        else:
            cleaned["status"] = fields["status"]

    if errors:
        raise ValidationError(errors)
    return cleaned


def _validate_lock_version(expected_lock_version: Any) -> None:
    if (
        isinstance(expected_lock_version, bool)
        or not isinstance(expected_lock_version, int)
        or expected_lock_version < 1
    ):
        raise ValidationError({"lock_version": "lock_version must be an integer >= 1"})


def create_room(
    *,
    name: str,
    price: Decimal | str | int,
    max_guests: int,
    status: str = "available",
    conn: PgConnection | None = None,
) -> Room:
    """Create a room at lock_version 1.

    Raises:
        ValidationError: If any attribute is invalid.
    """
    cleaned = _validate_room_fields(
        {"name": name, "price": price, "max_guests": max_guests, "status": status}
    )

    with txn(conn) as cur:
        room = rooms_repository.insert_room(cur, **cleaned)

    logger.info(
        "room created",
        extra={"extra_fields": safe_log_context(room_id=room.id, status=room.status)},
    )
    return room


def get_room(room_id: int, *, conn: PgConnection | None = None) -> Room:
    """Read a room (no lock). The returned lock_version is what update_room expects.

    Raises:
        RoomNotFoundError: If the room does not exist.
    """
    with txn(conn) as cur:
        room = rooms_repository.get_room(cur, room_id)
    if room is None:
        raise RoomNotFoundError(f"Room {room_id} not found")
    return room


def update_room(
    *,
    room_id: int,
    changes: dict[str, Any],
    expected_lock_version: int,
    settings: BookingSettings | None = None,
    conn: PgConnection | None = None,
) -> Room:
    """Apply changes to a room if nobody modified it since expected_lock_version.

    Args:
        room_id: Room to change.
        changes: Subset of name, price, max_guests, status.
        expected_lock_version: lock_version the caller read.
        settings: Supplies lock_timeout_ms (default: from environment).

    Returns:
        The updated room; its lock_version is expected_lock_version + 1.

    Raises:
        ValidationError: Bad or empty changes, or a bad lock_version.
        RoomNotFoundError: Room does not exist.
        StaleVersionError: lock_version moved on; re-fetch and resubmit.
        ConcurrencyTransientError: A booking transaction held the room longer
            than lock_timeout_ms.
    """
    _validate_lock_version(expected_lock_version)
    if not changes:
        raise ValidationError({"changes": "at least one field must be provided"})
    cleaned = _validate_room_fields(changes)
    settings = settings or get_booking_settings()

    with txn(conn, lock_timeout_ms=settings.lock_timeout_ms) as cur:
        current = rooms_repository.get_room(cur, room_id)
        if current is None:
            raise RoomNotFoundError(f"Room {room_id} not found")

        updated = rooms_repository.update_room_versioned(
            cur,
            room_id,
            expected_version=expected_lock_version,
            changes=cleaned,
        )

        if updated is None:
            # Re-read: a concurrent writer may have committed after the first read
            latest = rooms_repository.get_room(cur, room_id)
            if latest is None:
                raise RoomNotFoundError(f"Room {room_id} not found")
            logger.warning(
                "stale room version",
                extra={
                    "extra_fields": safe_log_context(
                        room_id=room_id,
                        expected_version=expected_lock_version,
                        actual_version=latest.lock_version,
                    )
                },
            )
            raise StaleVersionError(
                room_id=room_id,
                expected_version=expected_lock_version,
                actual_version=latest.lock_version,
            )

    logger.info(
        "room updated",
        extra={
            "extra_fields": safe_log_context(
                room_id=room_id,
                fields=",".join(sorted(cleaned)),
                lock_version=updated.lock_version,
            )
        },
    )
    return updated


def delete_room(
    *,
    room_id: int,
    expected_lock_version: int,
    settings: BookingSettings | None = None,
    conn: PgConnection | None = None,
) -> None:
    """Delete a room under the same version check as update_room.

    Raises:
        ValidationError: Bad lock_version.
        RoomNotFoundError: Room does not exist.
        StaleVersionError: lock_version moved on.
        RoomInUseError: Bookings (including soft-deleted ones) still reference it.
        ConcurrencyTransientError: A booking transaction held the room longer
            than lock_timeout_ms.
    """
    _validate_lock_version(expected_lock_version)
    settings = settings or get_booking_settings()

    try:
        with txn(conn, lock_timeout_ms=settings.lock_timeout_ms) as cur:
            current = rooms_repository.get_room(cur, room_id)
            if current is None:
                raise RoomNotFoundError(f"Room {room_id} not found")

            deleted = rooms_repository.delete_room_versioned(
                cur, room_id, expected_version=expected_lock_version
            )
            if not deleted:
                latest = rooms_repository.get_room(cur, room_id)
                raise StaleVersionError(
                    room_id=room_id,
                    expected_version=expected_lock_version,
                    actual_version=latest.lock_version if latest else None,
                )
    except psycopg2.errors.ForeignKeyViolation as exc:
        raise RoomInUseError(f"Room {room_id} still has bookings") from exc

    logger.info(
        "room deleted",
        extra={"extra_fields": safe_log_context(room_id=room_id)},
    )
