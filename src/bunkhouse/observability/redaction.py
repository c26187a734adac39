"""Redaction helpers for safe logging. Guest data must pass through these.

Values are always rendered as strings. Containers are summarized (keys or
length) rather than dumped, and guest identity fields are dropped entirely.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any

_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

# Keys whose values are never logged, whatever their content
_SENSITIVE_KEYS = frozenset({"guest_name", "guest_email", "email", "name"})

_REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Replace e-mail addresses in free text."""
    return _EMAIL_PATTERN.sub(_REDACTED, value)


def redact_value(value: Any) -> str:
    """Render one value for a log line."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={sorted(value.keys())})"
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build extra_fields for a log call with every value redacted."""
    return {
        key: _REDACTED if key in _SENSITIVE_KEYS else redact_value(value)
        for key, value in kwargs.items()
    }
