"""Rounding helpers."""

import math
from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def round2(value: float) -> float:
    """Round to 2 decimal places, halves up, for reported money and percentages."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def percent(part: float, whole: float) -> float:
    """part / whole * 100, or 0.0 when whole is not positive."""
    if whole <= 0:
        return 0.0
    return part / whole * 100
