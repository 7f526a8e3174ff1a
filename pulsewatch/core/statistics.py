"""Small numeric helpers shared by baseline, health and scoring code."""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile over ascending values.

    The index is ``ceil(p / 100 * n) - 1`` clamped to ``[0, n - 1]``.

    Example:
        ```python
        percentile([10, 20, 30, 40, 50, 60, 70, 80, 90, 100], 50)  # 50
        ```
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = math.ceil(p / 100 * n) - 1
    index = max(0, min(index, n - 1))
    return sorted_values[index]


def population_std_deviation(values: Sequence[float]) -> float:
    """Standard deviation dividing by n (not n - 1)."""
    if not values:
        return 0.0
    avg = mean(values)
    variance = sum((value - avg) ** 2 for value in values) / len(values)
    return math.sqrt(variance)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (``round`` uses banker's rounding)."""
    return math.floor(value + 0.5)


def clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    return max(lower, min(upper, value))


def round_half_up_to(value: float, digits: int = 1) -> float:
    """
    Round to ``digits`` decimal places with .5 going up.

    Works on the shortest decimal form of ``value`` so that 31.25 becomes
    31.3 rather than the 31.2 that ``format(31.25, ".1f")`` prints.
    """
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))
