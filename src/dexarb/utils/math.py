"""
Mathematical utilities for price calculations.

Float arithmetic only: prices are compared, never settled, so bounded
precision loss is acceptable.
"""

import math


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Divide two numbers, returning default only when the divisor is zero.

    Tiny divisors are legitimate: normalized prices of low-value tokens
    can sit well below 1e-12.

    Args:
        numerator: The dividend.
        denominator: The divisor.
        default: Value to return if denominator is zero.

    Returns:
        Result of division or default value.
    """
    if denominator == 0:
        return default
    return numerator / denominator


def safe_reciprocal(value: float) -> float | None:
    """
    Reciprocal of a value, or ``None`` where it is undefined.

    Zero, NaN and results that overflow to infinity all yield ``None``
    so that callers never compare against a silent ``inf``.
    """
    if value == 0 or not math.isfinite(value):
        return None
    result = 1.0 / value
    return result if math.isfinite(result) else None


def percent(value: float) -> float:
    """Convert a percentage (0.5 == 0.5%) to a fraction."""
    return value / 100.0
