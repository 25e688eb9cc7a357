"""
Lenient numeric coercion.

Monetary and quantity values reach us as Decimal (numeric columns), as
strings (JSON payloads written by older clients) or not at all. Anything
that is not a finite number counts as zero.
"""
import math
from decimal import Decimal, InvalidOperation
from typing import Any


def to_float(value: Any) -> float:
    """Coerce a value to float, returning 0.0 for None, NaN and garbage."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, Decimal):
        try:
            value = float(value)
        except (InvalidOperation, ValueError):
            return 0.0
    elif isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0.0
    elif not isinstance(value, (int, float)):
        return 0.0

    result = float(value)
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def to_int(value: Any) -> int:
    """Coerce a value to int (truncating), returning 0 for garbage."""
    return int(to_float(value))
