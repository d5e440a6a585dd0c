"""
Trend Analyzer.

Statistical primitives shared by challenge selection and Echo Score:
- Median of a sample
- Gini index of a distribution
- Least-squares slope of an ordered series
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp ``value`` into [low, high]."""
    return max(low, min(high, value))


def median(values: Iterable[float]) -> float:
    """
    Median of ``values``.

    Even-sized samples average the two middle values. Empty input returns 0.
    """
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return 0.0
    mid = n // 2
    if n % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return float(ordered[mid])


def gini_index(values: Iterable[float]) -> float:
    """
    Gini index of ``values``.

    Formula (ascending order, 0-based i):
        G = Σ (2(i+1) - n - 1)·v_i / (n²·mean)

    A single repeated value gives 0. Empty input, or a non-positive mean
    where the index is undefined, also gives 0.
    """
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return 0.0

    mean = sum(ordered) / n
    if mean <= 0:
        return 0.0

    weighted = sum((2 * (i + 1) - n - 1) * v for i, v in enumerate(ordered))
    return weighted / (n * n * mean)


def trend_slope(points: Sequence[tuple[float, float]]) -> float:
    """
    Least-squares slope of (x, y) points.

    Returns 0 for fewer than two points or when all x are equal.
    """
    n = len(points)
    if n < 2:
        return 0.0

    sum_x = sum(x for x, _ in points)
    sum_y = sum(y for _, y in points)
    sum_xy = sum(x * y for x, y in points)
    sum_xx = sum(x * x for x, _ in points)

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def series_slope(values: Sequence[float]) -> float:
    """Slope of an ordered series, using the index as x."""
    return trend_slope([(float(i), float(v)) for i, v in enumerate(values)])
