"""Worker/internal routes (APP_ROLE=worker)."""

from fastapi import APIRouter, Query

router = APIRouter()


@router.get("/tasks/health")
def tasks_health() -> dict:
    """Tasks subsystem health check."""
    return {"status": "ok", "subsystem": "tasks"}


@router.post("/tasks/bookings/prune")
def prune_bookings_task(
    older_than_days: int | None = Query(None, ge=1),
    dry_run: bool = Query(False),
) -> dict:
    """Permanently remove bookings soft-deleted before the retention cutoff."""
    from bunkhouse.domain.bookings import prune_soft_deleted_bookings

    result = prune_soft_deleted_bookings(older_than_days=older_than_days, dry_run=dry_run)
    return {
        "status": "ok",
        "cutoff": result["cutoff"].isoformat(),
        "count": result["count"],
        "dry_run": result["dry_run"],
    }
