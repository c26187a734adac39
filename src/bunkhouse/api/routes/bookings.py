"""Bookings endpoints.

POST /bookings                              → create (201)
PUT  /bookings/{id}                         → change dates/room/guest
POST /bookings/{id}/actions/cancel          → soft delete (idempotent)
POST /bookings/{id}/actions/restore         → undo soft delete
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Path
from pydantic import BaseModel, ConfigDict

from bunkhouse.api.errors import to_http_exception
from bunkhouse.domain.errors import BookingEngineError
from bunkhouse.domain.models import GuestInfo
from bunkhouse.observability.correlation import get_correlation_id
from bunkhouse.observability.logging import get_logger
from bunkhouse.observability.redaction import safe_log_context

router = APIRouter(prefix="/bookings", tags=["bookings"])

logger = get_logger(__name__)


class BookingRequest(BaseModel):
    """Request body for create and update."""

    model_config = ConfigDict(extra="forbid")

    room_id: int
    check_in: date
    check_out: date
    guest_name: str
    guest_email: str
    user_id: int | None = None

    def guest(self) -> GuestInfo:
        return GuestInfo(name=self.guest_name, email=self.guest_email, user_id=self.user_id)


class CancelBookingRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    actor_id: int | None = None


@router.post("", status_code=201)
def create_booking_endpoint(body: BookingRequest) -> dict:
    """Book a room for [check_in, check_out).

    422 on invalid input or overlap with an active booking, 404 if the room
    does not exist, 503 when the database stayed contended through retries.
    """
    from bunkhouse.domain.bookings import create_booking

    try:
        booking = create_booking(
            room_id=body.room_id,
            check_in=body.check_in,
            check_out=body.check_out,
            guest=body.guest(),
        )
    except BookingEngineError as exc:
        raise to_http_exception(exc) from exc

    return booking.to_dict()


@router.put("/{booking_id}")
def update_booking_endpoint(
    body: BookingRequest,
    booking_id: int = Path(..., description="Booking ID"),
) -> dict:
    """Replace dates, room and guest details of an active booking."""
    from bunkhouse.domain.bookings import update_booking

    try:
        booking = update_booking(
            booking_id=booking_id,
            room_id=body.room_id,
            check_in=body.check_in,
            check_out=body.check_out,
            guest=body.guest(),
        )
    except BookingEngineError as exc:
        raise to_http_exception(exc) from exc

    return booking.to_dict()


@router.post("/{booking_id}/actions/cancel")
def cancel_booking_endpoint(
    booking_id: int = Path(..., description="Booking ID"),
    body: CancelBookingRequest | None = None,
) -> dict:
    """Cancel (soft delete) a booking. Repeating the call is a no-op."""
    from bunkhouse.domain.bookings import cancel_booking

    actor_id = body.actor_id if body is not None else None

    try:
        result = cancel_booking(booking_id=booking_id, actor_id=actor_id)
    except BookingEngineError as exc:
        raise to_http_exception(exc) from exc

    logger.info(
        "cancel booking completed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                booking_id=booking_id,
                status=result["status"],
            )
        },
    )
    return result


@router.post("/{booking_id}/actions/restore")
def restore_booking_endpoint(
    booking_id: int = Path(..., description="Booking ID"),
) -> dict:
    """Restore a cancelled booking if its nights are still free."""
    from bunkhouse.domain.bookings import restore_booking

    try:
        booking = restore_booking(booking_id=booking_id)
    except BookingEngineError as exc:
        raise to_http_exception(exc) from exc

    return booking.to_dict()
