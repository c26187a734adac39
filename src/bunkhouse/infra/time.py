"""Time utilities for consistent timestamp handling."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def today() -> date:
    """Return the current UTC calendar date used for stay validation.

    Independent of the host timezone, so "check_in in the past" flips at
    UTC midnight on every server.
    """
    return utc_now().date()
