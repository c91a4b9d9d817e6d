# File: utils/math_utils.py
"""Math and calculation utilities for Momentum.

Pure Python math functions with ZERO Home Assistant dependencies.

Functions:
    - round_half_up: Integer rounding that matches user expectations (2.5 -> 3)
    - calculate_percentage: Whole-number progress percentage (0-100)
    - calculate_ratio: Unclamped completion ratio
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# Float precision for ratios exposed to callers
DATA_FLOAT_PRECISION = 4


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    Python's built-in round() uses banker's rounding (round(12.5) == 12),
    which would make progress percentages drift from what users expect.

    Examples:
        round_half_up(12.5) → 13
        round_half_up(66.666) → 67
        round_half_up(33.333) → 33
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_percentage(current: float, target: float) -> int:
    """Calculate a whole-number progress percentage.

    Args:
        current: Current progress value (e.g. completed steps)
        target: Target/total value (e.g. total steps)

    Returns:
        round_half_up(100 * current / target), or 0 if target is 0

    Examples:
        calculate_percentage(1, 3) → 33
        calculate_percentage(2, 3) → 67
        calculate_percentage(1, 8) → 13
        calculate_percentage(5, 0) → 0  # Division by zero protection
    """
    if target <= 0:
        return 0
    return round_half_up((current / target) * 100)


def calculate_ratio(
    numerator: float, denominator: float, precision: int = DATA_FLOAT_PRECISION
) -> float:
    """Return numerator / denominator rounded to precision, 0.0 for empty denominators.

    The ratio is deliberately not clamped: completing more instances than
    expected yields a value above 1.0.

    Examples:
        calculate_ratio(12, 10) → 1.2
        calculate_ratio(3, 4) → 0.75
        calculate_ratio(3, 0) → 0.0
    """
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator, precision)
