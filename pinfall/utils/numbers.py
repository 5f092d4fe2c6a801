"""
Numeric helpers shared by scoring and advancement
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, halves away from zero (376.5 -> 377)"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(value: int, percentage: Number) -> int:
    """value * percentage / 100 rounded half-up, computed exactly"""
    return round_half_up(Decimal(value) * Decimal(str(percentage)) / Decimal(100))
