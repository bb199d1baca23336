"""Utility helpers for converting loosely-typed inputs into numeric values.

Socket payloads arrive as whatever the browser serialised, so votes and
results are parsed here in one place and never allowed to become ``NaN``.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional


def safe_float(value: Any, *, default: float | None = None) -> float | None:
    """Best-effort conversion to a finite ``float`` with optional default on failure."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return default
        try:
            result = float(stripped)
        except (ValueError, TypeError):
            return default
    else:
        return default
    if not math.isfinite(result):
        return default
    return result


def coerce_points(value: Any, allowed: Iterable[int]) -> Optional[int]:
    """Return ``value`` as an allowed point value, or ``None`` if it is not one.

    Accepts ints, integral floats (``5.0``) and numeric strings (``"5"``).
    """
    number = safe_float(value)
    if number is None or not number.is_integer():
        return None
    points = int(number)
    if points not in tuple(allowed):
        return None
    return points


def format_result(value: Any) -> Optional[str]:
    """Display form of a tally result: integer if whole, else one decimal place.

    Returns ``None`` when the value is not numeric.
    """
    number = safe_float(value)
    if number is None:
        return None
    if number.is_integer():
        return str(int(number))
    return f"{number:.1f}"
