# src/smartwill_gate/utils/time.py
"""Time utilities shared by the credential stores."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def to_millis(moment: datetime) -> int:
    """Return ``moment`` as integer milliseconds since the Unix epoch."""
    return int(moment.timestamp() * 1000)
