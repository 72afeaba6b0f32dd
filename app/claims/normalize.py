"""
Input normalisation for the claim wizard.

- Accident time: HH:mm or HH:mm:ss, anything else becomes 00:00:00
- GPS: lat/lng rounded to 6 dp, accuracy clamped to 0..9999.99 and rounded to 2 dp
- Rounding is decimal half-up on the shortest float repr (1.0005 -> 1.001)
"""

import math
import re
from datetime import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from pydantic import BaseModel


TIME_PATTERN = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")
MIDNIGHT = time(0, 0, 0)

# numeric(6,2) upper bound
ACCURACY_MAX = 9999.99


class NormalizedLocation(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None


def round_half_up(value: float, places: int) -> float:
    """Round to `places` decimals, halves away from zero."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def to_finite(value: Any) -> Optional[float]:
    """Coerce to float; None for missing, non-numeric or non-finite input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def normalize_time(raw: Optional[str]) -> time:
    """Normalise a wizard time string to a time value (seconds default to 00)."""
    if not raw or not TIME_PATTERN.match(raw):
        return MIDNIGHT
    parts = [int(p) for p in raw.split(":")]
    if len(parts) == 2:
        parts.append(0)
    hour, minute, second = parts
    try:
        return time(hour, minute, second)
    except ValueError:
        # 25:61 passes the pattern but is not a clock time
        return MIDNIGHT


def normalize_location(
    lat: Any = None,
    lng: Any = None,
    accuracy: Any = None,
) -> NormalizedLocation:
    latitude = to_finite(lat)
    longitude = to_finite(lng)
    acc = to_finite(accuracy)

    if acc is not None:
        acc = round_half_up(clamp(abs(acc), 0.0, ACCURACY_MAX), 2)

    return NormalizedLocation(
        latitude=None if latitude is None else round_half_up(latitude, 6),
        longitude=None if longitude is None else round_half_up(longitude, 6),
        accuracy=acc,
    )
