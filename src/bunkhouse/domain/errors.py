"""Error taxonomy for the booking engine.

Only ConcurrencyTransientError is ever retried (by domain.retry.with_retry).
Everything else propagates to the caller unchanged on first occurrence.
"""

from __future__ import annotations

from datetime import date


class BookingEngineError(Exception):
    """Base class for all booking engine errors."""

    pass


class ValidationError(BookingEngineError):
    """Raised when input is malformed. Carries field-level detail."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class ConflictError(BookingEngineError):
    """Raised when an active booking already occupies part of the range."""

    def __init__(
        self,
        room_id: int,
        conflicting_booking_id: int,
        existing_check_in: date,
        existing_check_out: date,
    ) -> None:
        self.room_id = room_id
        self.conflicting_booking_id = conflicting_booking_id
        self.existing_check_in = existing_check_in
        self.existing_check_out = existing_check_out
        super().__init__(
            f"Room {room_id} is already booked "
            f"({existing_check_in} to {existing_check_out})"
        )


class NotFoundError(BookingEngineError):
    """Raised when a referenced record does not exist."""

    pass


class BookingNotFoundError(NotFoundError):
    pass


class RoomNotFoundError(NotFoundError):
    pass


class RoomInUseError(BookingEngineError):
    """Raised when a room cannot be deleted because bookings reference it."""

    pass


class StaleVersionError(BookingEngineError):
    """Raised when a room was modified since the caller last read it.

    Never retried: the caller must re-fetch the room and resubmit.
    """

    def __init__(
        self,
        room_id: int,
        expected_version: int,
        actual_version: int | None = None,
    ) -> None:
        self.room_id = room_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            "The room has been modified by another user. "
            "Please refresh and try again."
        )


class ConcurrencyTransientError(BookingEngineError):
    """Raised when the database aborted a transaction that may succeed on retry.

    Covers deadlocks, serialization failures and lock-wait timeouts.
    """

    def __init__(self, message: str, *, sqlstate: str | None = None) -> None:
        self.sqlstate = sqlstate
        super().__init__(message)


class ConcurrencyExhaustedError(BookingEngineError):
    """Raised when retries for a transient failure are used up."""

    def __init__(self, operation: str, attempts: int) -> None:
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"{operation} failed after {attempts} attempts due to database contention"
        )
