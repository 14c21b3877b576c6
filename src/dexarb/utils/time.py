"""
Time utilities.

Wall-clock millisecond timestamps stamp quotes, analyses and
diagnoses. Latencies are measured on the monotonic performance
counter so that clock adjustments never produce negative durations.
"""

import time
from datetime import UTC, datetime


def get_timestamp_ms() -> int:
    """Current Unix time in milliseconds."""
    return time.time_ns() // 1_000_000


def monotonic_us() -> int:
    """Monotonic counter in microseconds, for measuring intervals."""
    return time.perf_counter_ns() // 1000


def format_timestamp_ms(timestamp_ms: int) -> str:
    """
    Format a millisecond timestamp as an ISO-8601 UTC string.

    Example:
        >>> format_timestamp_ms(1704067200123)
        '2024-01-01T00:00:00.123Z'
    """
    seconds, millis = divmod(timestamp_ms, 1000)
    dt = datetime.fromtimestamp(seconds, tz=UTC)
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{millis:03d}Z"


class LatencyTimer:
    """
    Context manager measuring elapsed microseconds on the monotonic clock.

    Example:
        >>> with LatencyTimer() as timer:
        ...     await fetch()
        >>> metrics.record_latency("source_fetch", timer.latency_us)
    """

    __slots__ = ("_start", "latency_us")

    def __init__(self) -> None:
        self._start = 0
        self.latency_us = 0

    def __enter__(self) -> "LatencyTimer":
        self._start = monotonic_us()
        return self

    def __exit__(self, *args: object) -> None:
        self.latency_us = monotonic_us() - self._start


_DURATION_UNITS = (
    (1_000_000, "s"),
    (1000, "ms"),
)


def format_duration_us(duration_us: int | float) -> str:
    """
    Format a duration in microseconds for display.

    Examples:
        >>> format_duration_us(500)
        '500μs'
        >>> format_duration_us(1500)
        '1.50ms'
    """
    for scale, unit in _DURATION_UNITS:
        if duration_us >= scale:
            return f"{duration_us / scale:.2f}{unit}"
    return f"{duration_us:.0f}μs"
