"""Public-facing routes (APP_ROLE=public): health plus the booking API."""

from fastapi import APIRouter, HTTPException

from bunkhouse.api.routes import bookings, rooms

router = APIRouter()
router.include_router(bookings.router)
router.include_router(rooms.router)


@router.get("/health")
def health() -> dict:
    """Liveness: the process is up. Does not touch the database."""
    return {"status": "ok"}


@router.get("/health/db")
def health_db() -> dict:
    """Readiness: a connection can be opened and answers SELECT 1."""
    import psycopg2

    from bunkhouse.infra.db import txn

    try:
        with txn() as cur:
            cur.execute("SELECT 1")
            cur.fetchone()
    except (psycopg2.Error, RuntimeError):
        raise HTTPException(status_code=503, detail={"status": "unavailable"})
    return {"status": "ok", "database": "ok"}
