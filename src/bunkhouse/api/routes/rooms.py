"""Rooms endpoints.

POST   /rooms                         → create (201)
GET    /rooms/{id}                    → read, including lock_version
PATCH  /rooms/{id}                    → optimistic update (body carries lock_version)
DELETE /rooms/{id}?lock_version=N     → optimistic delete (204)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Path, Query, Response
from pydantic import BaseModel, ConfigDict

from bunkhouse.api.errors import to_http_exception
from bunkhouse.domain.errors import BookingEngineError

router = APIRouter(prefix="/rooms", tags=["rooms"])


# ── Schemas ───────────────────────────────────────────────────────────────────


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    price: Decimal
    max_guests: int
    status: Literal["available", "occupied", "maintenance"] = "available"


class UpdateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lock_version: int
    name: str | None = None
    price: Decimal | None = None
    max_guests: int | None = None
    status: Literal["available", "occupied", "maintenance"] | None = None


# ── POST /rooms ───────────────────────────────────────────────────────────────


@router.post("", status_code=201)
def create_room_endpoint(body: CreateRoomRequest) -> dict:
    """Create a room. New rooms start at lock_version 1."""
    from bunkhouse.domain.rooms import create_room

    try:
        room = create_room(
            name=body.name,
            price=body.price,
            max_guests=body.max_guests,
            status=body.status,
        )
    except BookingEngineError as exc:
        raise to_http_exception(exc) from exc

    return room.to_dict()


# ── GET /rooms/{room_id} ──────────────────────────────────────────────────────


@router.get("/{room_id}")
def get_room_endpoint(room_id: int = Path(..., description="Room ID")) -> dict:
    from bunkhouse.domain.rooms import get_room

    try:
        room = get_room(room_id)
    except BookingEngineError as exc:
        raise to_http_exception(exc) from exc

    return room.to_dict()


# ── PATCH /rooms/{room_id} ────────────────────────────────────────────────────


@router.patch("/{room_id}")
def update_room_endpoint(
    body: UpdateRoomRequest,
    room_id: int = Path(..., description="Room ID"),
) -> dict:
    """Partially update a room.

    Only the provided fields are changed. lock_version must be the value the
    client last read; 409 if the room changed since.
    """
    from bunkhouse.domain.rooms import update_room

    changes = body.model_dump(exclude_unset=True, exclude={"lock_version"})

    try:
        room = update_room(
            room_id=room_id,
            changes=changes,
            expected_lock_version=body.lock_version,
        )
    except BookingEngineError as exc:
        raise to_http_exception(exc) from exc

    return room.to_dict()


# ── DELETE /rooms/{room_id} ───────────────────────────────────────────────────


@router.delete("/{room_id}", status_code=204)
def delete_room_endpoint(
    room_id: int = Path(..., description="Room ID"),
    lock_version: int = Query(..., description="lock_version the client last read"),
) -> Response:
    """Delete a room. 409 if it changed since it was read or still has bookings."""
    from bunkhouse.domain.rooms import delete_room

    try:
        delete_room(room_id=room_id, expected_lock_version=lock_version)
    except BookingEngineError as exc:
        raise to_http_exception(exc) from exc

    return Response(status_code=204)
