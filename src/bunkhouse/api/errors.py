"""Translate booking engine errors into HTTP responses.

Every error body has the same shape:
    {"code": str, "message": str, "errors": dict}
"""

from __future__ import annotations

from fastapi import HTTPException

from bunkhouse.domain.errors import (
    BookingEngineError,
    ConcurrencyExhaustedError,
    ConcurrencyTransientError,
    ConflictError,
    NotFoundError,
    RoomInUseError,
    StaleVersionError,
    ValidationError,
)


def _detail(code: str, message: str, errors: dict | None = None) -> dict:
    return {"code": code, "message": message, "errors": errors or {}}


def to_http_exception(exc: BookingEngineError) -> HTTPException:
    """Map a domain error to the HTTPException a route should raise."""
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=422,
            detail=_detail("validation_error", "Invalid request", exc.errors),
        )
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=422,
            detail=_detail(
                "booking_conflict",
                "This room is already booked for the selected dates",
                {
                    "check_in": f"overlaps booking {exc.conflicting_booking_id} "
                    f"({exc.existing_check_in.isoformat()} to {exc.existing_check_out.isoformat()})"
                },
            ),
        )
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=_detail("not_found", str(exc)))
    if isinstance(exc, StaleVersionError):
        return HTTPException(
            status_code=409,
            detail=_detail(
                "stale_version",
                str(exc),
                {"lock_version": f"expected {exc.expected_version}, current {exc.actual_version}"},
            ),
        )
    if isinstance(exc, RoomInUseError):
        return HTTPException(status_code=409, detail=_detail("room_in_use", str(exc)))
    if isinstance(exc, (ConcurrencyExhaustedError, ConcurrencyTransientError)):
        return HTTPException(
            status_code=503,
            detail=_detail("busy", "The system is busy, please try again shortly"),
        )
    return HTTPException(status_code=500, detail=_detail("internal_error", "Unexpected error"))
