"""
Answer value helpers.

Answers arrive from browsers and embedded widgets, so comparisons follow the
coercion rules of the JavaScript renderer: String() for text comparisons and
Number() for numeric ones.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
import math
import re

NAN = float('nan')

_DECIMAL_PATTERN = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
_HEX_PATTERN = re.compile(r'^0[xX][0-9a-fA-F]+$')
_INFINITY_PATTERN = re.compile(r'^[+-]?Infinity$')


def is_empty(value: Any) -> bool:
    """
    Emptiness as used by is_empty conditions and required checks.

    None, whitespace-only strings and empty lists are empty. Booleans and
    every other value (including 0 and empty dicts) are not.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def to_number(value: Any) -> float:
    """
    Coerce a value to a float the way JavaScript's Number() does.

    Returns NaN when the value has no numeric reading.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0

    if isinstance(value, (int, float, Decimal)):
        return float(value)

    if isinstance(value, str):
        text = value.strip()
        if text == '':
            return 0.0
        if _DECIMAL_PATTERN.match(text):
            return float(text)
        if _HEX_PATTERN.match(text):
            return float(int(text, 16))
        if _INFINITY_PATTERN.match(text):
            return float('-inf') if text.startswith('-') else float('inf')
        return NAN

    if isinstance(value, datetime):
        return value.timestamp() * 1000

    return NAN


def is_nan(value: float) -> bool:
    return isinstance(value, float) and math.isnan(value)


def to_display_string(value: Any) -> str:
    """Render a value the way JavaScript's String() does."""
    if value is None:
        return 'null'

    if isinstance(value, bool):
        return 'true' if value else 'false'

    if isinstance(value, float):
        if math.isnan(value):
            return 'NaN'
        if math.isinf(value):
            return 'Infinity' if value > 0 else '-Infinity'
        if value.is_integer():
            return str(int(value))
        return repr(value)

    if isinstance(value, Decimal):
        return to_display_string(float(value))

    if isinstance(value, (list, tuple)):
        return ','.join('' if item is None else to_display_string(item) for item in value)

    if isinstance(value, dict):
        return '[object Object]'

    if isinstance(value, (datetime, date, time)):
        return value.isoformat()

    return str(value)
