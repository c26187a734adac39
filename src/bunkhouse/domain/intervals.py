"""Half-open date interval arithmetic.

A stay is [check_in, check_out): the guest sleeps every night from check_in
up to, but not including, check_out. Two stays on the same room collide iff

    a_start < b_end AND a_end > b_start

so a stay ending on day D and another starting on day D do not collide
(same-day turnover).
"""

from __future__ import annotations

from datetime import date

from bunkhouse.domain.errors import ValidationError


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Return True if [a_start, a_end) and [b_start, b_end) share a night.

    Callers must not pass empty or inverted ranges; validate_stay rejects
    those before any range reaches this function.
    """
    return a_start < b_end and a_end > b_start


def validate_stay(check_in: date, check_out: date, today: date) -> None:
    """Reject stays that are empty, inverted, or start in the past.

    Raises:
        ValidationError: With one entry per offending field.
    """
    errors: dict[str, str] = {}
    if check_out <= check_in:
        errors["check_out"] = "check_out must be after check_in"
    if check_in < today:
        errors["check_in"] = "check_in must not be in the past"
    if errors:
        raise ValidationError(errors)
