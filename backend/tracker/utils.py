from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def coerce_minutes(value: Any) -> int:
    """Return a whole number of minutes for a loosely typed remote value.

    Missing, non-numeric and NaN values count as zero.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return round_half_up(number)


def format_hours(minutes: int, places: int = 1) -> str:
    """Render minutes as hours with a fixed number of decimals, halves rounded up."""
    hours = Decimal(minutes) / Decimal(60)
    return str(hours.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def format_duration(minutes: int) -> str:
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m"
