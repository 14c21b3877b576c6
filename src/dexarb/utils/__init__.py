"""Utility functions for the arbitrage scanner."""

from dexarb.utils.math import percent, safe_divide, safe_reciprocal
from dexarb.utils.time import (
    LatencyTimer,
    format_timestamp_ms,
    get_timestamp_ms,
    monotonic_us,
)


__all__ = [
    "LatencyTimer",
    "format_timestamp_ms",
    "get_timestamp_ms",
    "monotonic_us",
    "percent",
    "safe_divide",
    "safe_reciprocal",
]
