"""Shared pytest fixtures for Bunkhouse tests."""
import sys
sys.dont_write_bytecode = True

from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402

from bunkhouse.infra.settings import BookingSettings  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_booking_env(monkeypatch):
    """Keep tunables from the developer's shell out of the tests."""
    for name in (
        "BOOKING_RETRY_MAX_ATTEMPTS",
        "BOOKING_RETRY_BASE_DELAY_MS",
        "BOOKING_RETRY_JITTER_MS",
        "BOOKING_LOCK_TIMEOUT_MS",
        "BOOKING_SOFT_DELETE_RETENTION_DAYS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fast_settings():
    """Three attempts, no backoff delay: retries without slowing the suite."""
    return BookingSettings(max_attempts=3, base_delay_ms=0, jitter_ms=0, lock_timeout_ms=5000)


@pytest.fixture
def cur():
    """Mocked psycopg2 cursor."""
    return MagicMock()
