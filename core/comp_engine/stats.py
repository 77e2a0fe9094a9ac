"""
Numeric helpers shared by scoring, ranking and valuation.

Every function here is total over its declared domain: empty inputs and
zero denominators yield a safe fallback instead of raising.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Optional, Sequence

# Sentinel month count for missing or unparseable dates (saturates any decay)
UNKNOWN_MONTHS = 999


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity."""
    return int(math.floor(value + 0.5))


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a loosely-typed field to a finite float.

    Returns None for missing, boolean, non-numeric or non-finite values.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def weighted_mean(values: Sequence[float], weights: Sequence[float]) -> float:
    """Weight-weighted mean, falling back to the arithmetic mean when total weight is 0."""
    if not values:
        return 0.0
    total = 0.0
    weight_sum = 0.0
    for value, weight in zip(values, weights):
        total += value * weight
        weight_sum += weight
    if weight_sum > 0:
        return total / weight_sum
    return mean(values)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Linear-interpolation percentile.

    Args:
        sorted_values: Values in ascending order
        p: Fraction in [0, 1]
    """
    if not sorted_values:
        return 0.0
    idx = (len(sorted_values) - 1) * p
    lo = math.floor(idx)
    hi = math.ceil(idx)
    if lo == hi:
        return float(sorted_values[lo])
    w = idx - lo
    return sorted_values[lo] * (1 - w) + sorted_values[hi] * w


def stddev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    if len(values) <= 1:
        return 0.0
    m = mean(values)
    variance = sum((x - m) ** 2 for x in values) / len(values)
    return math.sqrt(variance)


def parse_date(value: Any) -> Optional[date]:
    """
    Parse an event date.

    Accepts date/datetime objects and ISO-8601 strings (date part only is
    used). Returns None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def months_between(event: date, reference: date) -> int:
    """Whole calendar months from event to reference, never negative."""
    months = (reference.year - event.year) * 12 + reference.month - event.month
    return max(0, months)


def months_since(value: Any, reference: date) -> int:
    """Calendar months since a loosely-typed date, UNKNOWN_MONTHS if unparseable."""
    parsed = parse_date(value)
    if parsed is None:
        return UNKNOWN_MONTHS
    return months_between(parsed, reference)
