# backend/rentdesk/domain/money.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal, str]

_UNIT = Decimal("1")


def to_decimal(v: Number) -> Decimal:
    if isinstance(v, Decimal):
        return v
    # str() first so 0.1 stays 0.1 instead of its binary expansion
    return Decimal(str(v))


def round_half_up(v: Number) -> int:
    """Whole currency units, .5 rounds away from zero."""
    return int(to_decimal(v).quantize(_UNIT, rounding=ROUND_HALF_UP))


def apply_percent(amount: Number, percent: Number) -> int:
    """amount * (1 + percent/100), rounded to whole units."""
    factor = Decimal(1) + to_decimal(percent) / Decimal(100)
    return round_half_up(to_decimal(amount) * factor)


def percent_of(amount: Number, percent: Number) -> int:
    return round_half_up(to_decimal(amount) * to_decimal(percent) / Decimal(100))
