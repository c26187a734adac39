"""Booking write path - pessimistic, per-room serialized transactions.

Every booking write runs inside one transaction:
lock room (FOR UPDATE) → lock booking row (edits only) → re-check
availability against the locked view → insert/update → commit.

The room row lock is the only mutual exclusion: two writers for the same
room are strictly ordered, writers for different rooms never wait on each
other. Locks are always taken room first, booking second, so the write
paths cannot deadlock each other by ordering alone; any deadlock or lock
timeout the database still reports is retried by with_retry from scratch.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, timedelta
from typing import Callable, Iterator, TypeVar

import psycopg2.errors
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

from bunkhouse.domain.availability import assert_no_conflict
from bunkhouse.domain.errors import (
    BookingNotFoundError,
    ConcurrencyTransientError,
    RoomNotFoundError,
    ValidationError,
)
from bunkhouse.domain.intervals import validate_stay
from bunkhouse.domain.models import Booking, GuestInfo
from bunkhouse.domain.retry import with_retry
from bunkhouse.infra.db import txn
from bunkhouse.infra.repositories.bookings_repository import (
    get_booking,
    insert_booking,
    list_soft_deleted_before,
    purge_soft_deleted_before,
    restore_booking_row,
    soft_delete_booking,
    update_booking_stay,
)
from bunkhouse.infra.repositories.rooms_repository import lock_room
from bunkhouse.infra.settings import BookingSettings, get_booking_settings
from bunkhouse.infra.time import today, utc_now
from bunkhouse.observability.logging import get_logger
from bunkhouse.observability.redaction import safe_log_context

logger = get_logger(__name__)

T = TypeVar("T")

MAX_GUEST_NAME_LENGTH = 200
SQLSTATE_EXCLUSION_VIOLATION = "23P01"


def _validate_request(check_in: date, check_out: date, guest: GuestInfo) -> None:
    """Validate stay and guest fields together so the caller sees every problem."""
    errors: dict[str, str] = {}
    try:
        validate_stay(check_in, check_out, today())
    except ValidationError as exc:
        errors.update(exc.errors)

    name = (guest.name or "").strip()
    if not name:
        errors["guest_name"] = "guest_name is required"
    elif len(name) > MAX_GUEST_NAME_LENGTH:
        errors["guest_name"] = f"guest_name must be at most {MAX_GUEST_NAME_LENGTH} characters"

    email = (guest.email or "").strip()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        errors["guest_email"] = "guest_email must be a valid e-mail address"

    if errors:
        raise ValidationError(errors)


@contextmanager
def _booking_txn(conn: PgConnection | None, settings: BookingSettings) -> Iterator[PgCursor]:
    """txn() for booking writes.

    A no_active_booking_overlap violation means an overlapping booking was
    committed by a writer outside the room lock; it is turned into a
    transient error so the next attempt re-runs the availability check and
    reports a proper ConflictError.
    """
    try:
        with txn(conn, lock_timeout_ms=settings.lock_timeout_ms) as cur:
            yield cur
    except psycopg2.errors.ExclusionViolation as exc:
        raise ConcurrencyTransientError(
            "overlapping booking committed concurrently",
            sqlstate=SQLSTATE_EXCLUSION_VIOLATION,
        ) from exc


def _run(fn: Callable[[], T], operation: str, settings: BookingSettings) -> tuple[T, int]:
    """Run fn under with_retry. Returns (result, attempts used)."""
    attempts = 0

    def _counted() -> T:
        nonlocal attempts
        attempts += 1
        return fn()

    result = with_retry(
        _counted,
        max_attempts=settings.max_attempts,
        base_delay_ms=settings.base_delay_ms,
        jitter_ms=settings.jitter_ms,
        operation=operation,
    )
    return result, attempts


def create_booking(
    *,
    room_id: int,
    check_in: date,
    check_out: date,
    guest: GuestInfo,
    settings: BookingSettings | None = None,
    conn: PgConnection | None = None,
) -> Booking:
    """Create a pending booking if the room is free for [check_in, check_out).

    Args:
        room_id: Room to book.
        check_in: First night (inclusive).
        check_out: Departure day (exclusive).
        guest: Guest name/e-mail and optional user_id.
        settings: Retry/lock tunables (default: from environment).
        conn: Connection to run on; by default each attempt opens its own.

    Returns:
        The new booking, status pending.

    Raises:
        ValidationError: Bad dates or guest fields (raised before any lock).
        RoomNotFoundError: Room does not exist.
        ConflictError: An active booking overlaps the stay.
        ConcurrencyExhaustedError: Transient database failures outlasted retries.
    """
    settings = settings or get_booking_settings()

    def _attempt() -> Booking:
        _validate_request(check_in, check_out, guest)

        with _booking_txn(conn, settings) as cur:
            room = lock_room(cur, room_id)
            if room is None:
                raise RoomNotFoundError(f"Room {room_id} not found")

            assert_no_conflict(
                cur,
                room_id=room_id,
                check_in=check_in,
                check_out=check_out,
            )

            return insert_booking(
                cur,
                room_id=room_id,
                guest=guest,
                check_in=check_in,
                check_out=check_out,
            )

    booking, attempts = _run(_attempt, "create_booking", settings)

    logger.info(
        "booking created",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking.id,
                room_id=room_id,
                check_in=check_in,
                check_out=check_out,
                guest_email=guest.email,
                attempts=attempts,
            )
        },
    )
    return booking


def update_booking(
    *,
    booking_id: int,
    room_id: int,
    check_in: date,
    check_out: date,
    guest: GuestInfo,
    settings: BookingSettings | None = None,
    conn: PgConnection | None = None,
) -> Booking:
    """Change dates, room or guest details of an active booking.

    Locks the target room first, then the booking row, and checks
    availability excluding the booking itself.

    Raises:
        ValidationError: Bad dates/guest fields, or the booking is cancelled.
        RoomNotFoundError: Target room does not exist.
        BookingNotFoundError: Booking does not exist or was soft-deleted.
        ConflictError: Another active booking overlaps the new stay.
        ConcurrencyExhaustedError: Transient database failures outlasted retries.
    """
    settings = settings or get_booking_settings()

    def _attempt() -> Booking:
        _validate_request(check_in, check_out, guest)

        with _booking_txn(conn, settings) as cur:
            room = lock_room(cur, room_id)
            if room is None:
                raise RoomNotFoundError(f"Room {room_id} not found")

            booking = get_booking(cur, booking_id, lock=True)
            if booking is None or booking.deleted_at is not None:
                raise BookingNotFoundError(f"Booking {booking_id} not found")
            if booking.status == "cancelled":
                raise ValidationError({"status": "cancelled bookings cannot be changed"})

            assert_no_conflict(
                cur,
                room_id=room_id,
                check_in=check_in,
                check_out=check_out,
                exclude_booking_id=booking_id,
            )

            return update_booking_stay(
                cur,
                booking_id,
                room_id=room_id,
                guest=guest,
                check_in=check_in,
                check_out=check_out,
            )

    booking, attempts = _run(_attempt, "update_booking", settings)

    logger.info(
        "booking updated",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking_id,
                room_id=room_id,
                check_in=check_in,
                check_out=check_out,
                attempts=attempts,
            )
        },
    )
    return booking


def cancel_booking(
    *,
    booking_id: int,
    actor_id: int | None,
    settings: BookingSettings | None = None,
    conn: PgConnection | None = None,
) -> dict:
    """Soft-delete a booking, freeing its nights immediately.

    Idempotent: cancelling an already soft-deleted booking changes nothing.

    Returns:
        {"status": "cancelled", "booking_id": int} or
        {"status": "already_cancelled", "booking_id": int}

    Raises:
        BookingNotFoundError: Booking does not exist.
    """
    settings = settings or get_booking_settings()

    def _attempt() -> dict:
        with _booking_txn(conn, settings) as cur:
            booking = get_booking(cur, booking_id, lock=True)
            if booking is None:
                raise BookingNotFoundError(f"Booking {booking_id} not found")

            if booking.deleted_at is not None:
                return {"status": "already_cancelled", "booking_id": booking_id}

            soft_delete_booking(cur, booking_id, deleted_by=actor_id)
            return {"status": "cancelled", "booking_id": booking_id}

    result, attempts = _run(_attempt, "cancel_booking", settings)

    logger.info(
        "booking cancelled" if result["status"] == "cancelled" else "booking already cancelled",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking_id,
                actor_id=actor_id,
                attempts=attempts,
            )
        },
    )
    return result


def restore_booking(
    *,
    booking_id: int,
    settings: BookingSettings | None = None,
    conn: PgConnection | None = None,
) -> Booking:
    """Undo a soft delete, provided the nights are still free.

    Runs the same protocol as create_booking: room lock, availability check
    (excluding the booking itself), write. The restored booking is pending.

    Raises:
        BookingNotFoundError: Booking does not exist.
        ConflictError: The nights were taken since the cancellation.
        ConcurrencyExhaustedError: Transient database failures outlasted retries.
    """
    settings = settings or get_booking_settings()

    def _attempt() -> Booking:
        with _booking_txn(conn, settings) as cur:
            peek = get_booking(cur, booking_id)
            if peek is None:
                raise BookingNotFoundError(f"Booking {booking_id} not found")

            lock_room(cur, peek.room_id)

            booking = get_booking(cur, booking_id, lock=True)
            if booking is None:
                raise BookingNotFoundError(f"Booking {booking_id} not found")
            if booking.room_id != peek.room_id:
                # Moved between the peek and the row lock; the locked room is the wrong one
                raise ConcurrencyTransientError(
                    f"booking {booking_id} moved to room {booking.room_id} while locking"
                )
            if booking.deleted_at is None:
                return booking

            assert_no_conflict(
                cur,
                room_id=booking.room_id,
                check_in=booking.check_in,
                check_out=booking.check_out,
                exclude_booking_id=booking_id,
            )
            return restore_booking_row(cur, booking_id)

    booking, attempts = _run(_attempt, "restore_booking", settings)

    logger.info(
        "booking restored",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking_id,
                room_id=booking.room_id,
                attempts=attempts,
            )
        },
    )
    return booking


def prune_soft_deleted_bookings(
    *,
    older_than_days: int | None = None,
    dry_run: bool = False,
    conn: PgConnection | None = None,
) -> dict:
    """Permanently delete bookings soft-deleted longer ago than the retention.

    Args:
        older_than_days: Retention in days (default: BOOKING_SOFT_DELETE_RETENTION_DAYS).
        dry_run: If True, only report what would be deleted.

    Returns:
        {"cutoff": datetime, "count": int, "booking_ids": list[int], "dry_run": bool}
    """
    if older_than_days is None:
        older_than_days = get_booking_settings().retention_days
    if older_than_days < 1:
        raise ValueError("older_than_days must be >= 1")

    cutoff = utc_now() - timedelta(days=older_than_days)

    with txn(conn) as cur:
        candidates = list_soft_deleted_before(cur, cutoff)
        booking_ids = [c[0] for c in candidates]
        count = len(booking_ids)
        if not dry_run and booking_ids:
            count = purge_soft_deleted_before(cur, cutoff)

    logger.info(
        "soft-deleted bookings pruned" if not dry_run else "soft-deleted bookings prune preview",
        extra={
            "extra_fields": safe_log_context(
                cutoff=cutoff,
                count=count,
                dry_run=dry_run,
            )
        },
    )
    return {"cutoff": cutoff, "count": count, "booking_ids": booking_ids, "dry_run": dry_run}
