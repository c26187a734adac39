"""Booking engine settings loaded from the environment.

Optional env vars:
- BOOKING_RETRY_MAX_ATTEMPTS: attempts before giving up (default: 3)
- BOOKING_RETRY_BASE_DELAY_MS: first backoff delay in ms (default: 100)
- BOOKING_RETRY_JITTER_MS: upper bound of random jitter added per retry (default: 50)
- BOOKING_LOCK_TIMEOUT_MS: lock_timeout for booking transactions (default: 5000)
- BOOKING_SOFT_DELETE_RETENTION_DAYS: retention before pruning (default: 2555)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 100
DEFAULT_JITTER_MS = 50
DEFAULT_LOCK_TIMEOUT_MS = 5000
DEFAULT_RETENTION_DAYS = 2555  # 7 years


@dataclass(frozen=True)
class BookingSettings:
    """Tunables for the booking write path."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    jitter_ms: int = DEFAULT_JITTER_MS
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
    retention_days: int = DEFAULT_RETENTION_DAYS


def _int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}, got {value}")
    return value


def get_booking_settings() -> BookingSettings:
    """Build BookingSettings from environment variables.

    Raises:
        RuntimeError: If a variable is set but not a valid integer.
    """
    return BookingSettings(
        max_attempts=_int_env("BOOKING_RETRY_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, minimum=1),
        base_delay_ms=_int_env("BOOKING_RETRY_BASE_DELAY_MS", DEFAULT_BASE_DELAY_MS),
        jitter_ms=_int_env("BOOKING_RETRY_JITTER_MS", DEFAULT_JITTER_MS),
        lock_timeout_ms=_int_env("BOOKING_LOCK_TIMEOUT_MS", DEFAULT_LOCK_TIMEOUT_MS, minimum=1),
        retention_days=_int_env("BOOKING_SOFT_DELETE_RETENTION_DAYS", DEFAULT_RETENTION_DAYS, minimum=1),
    )
