"""Bounded retry with exponential backoff for transient database aborts.

Wraps a whole transaction. On ConcurrencyTransientError (deadlock,
serialization failure, lock-wait timeout) the transaction function is
invoked again from scratch; it is never resumed midway. Any other exception
propagates on first occurrence.

Delay before retry n (0-based): base_delay_ms * 2**n, plus uniform jitter in
[0, jitter_ms]. With the defaults (3 attempts, 100ms) that is 100ms, 200ms.
"""

from __future__ import annotations

import random
import time
from typing import Callable, TypeVar

from bunkhouse.domain.errors import ConcurrencyExhaustedError, ConcurrencyTransientError
from bunkhouse.observability.logging import get_logger
from bunkhouse.observability.redaction import safe_log_context

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 100


def backoff_delay_ms(
    attempt: int,
    base_delay_ms: int,
    jitter_ms: int = 0,
    *,
    rng: random.Random | None = None,
) -> float:
    """Delay in milliseconds to wait after the given failed attempt (0-based)."""
    delay = float(base_delay_ms * (2 ** attempt))
    if jitter_ms > 0:
        delay += (rng or random).uniform(0, jitter_ms)
    return delay


def with_retry(
    fn: Callable[[], T],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    jitter_ms: int = 0,
    operation: str = "transaction",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run fn, retrying the whole call on transient concurrency failures.

    Args:
        fn: Zero-argument callable that opens, runs and commits a transaction.
        max_attempts: Total attempts including the first one.
        base_delay_ms: Backoff base in milliseconds.
        jitter_ms: Upper bound of random jitter added to each delay.
        operation: Name used in logs and in the exhausted error.
        sleep: Sleep function (seconds); injectable for tests.

    Returns:
        Whatever fn returns on its first successful attempt.

    Raises:
        ConcurrencyExhaustedError: After max_attempts transient failures,
            chained to the last one.
        Exception: Any non-transient error raised by fn, unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error: ConcurrencyTransientError | None = None

    for attempt in range(max_attempts):
        try:
            return fn()
        except ConcurrencyTransientError as exc:
            last_error = exc
            logger.warning(
                "transient database failure, attempt %d/%d",
                attempt + 1,
                max_attempts,
                extra={
                    "extra_fields": safe_log_context(
                        operation=operation,
                        sqlstate=exc.sqlstate,
                        attempt=attempt + 1,
                    )
                },
            )
            if attempt + 1 >= max_attempts:
                break
            sleep(backoff_delay_ms(attempt, base_delay_ms, jitter_ms) / 1000.0)

    logger.error(
        "retries exhausted",
        extra={
            "extra_fields": safe_log_context(
                operation=operation,
                attempts=max_attempts,
                sqlstate=last_error.sqlstate if last_error else None,
            )
        },
    )
    raise ConcurrencyExhaustedError(operation, max_attempts) from last_error
