"""
Canonical JSON encoding of a ReadingSet.

Produces one compact JSON object per reading, keys in insertion order.
Text values stay JSON strings and numbers added by the gateway stay JSON
numbers, so the encoding keeps the type each value was received or derived
with.  The output is a deterministic function of the input, which keeps the
append-only log diffable.

``Decimal`` values are JSON numbers too: integral ones are written as
integers with every digit, others as the nearest float (``Decimal("1.50")``
becomes ``1.5``).  Non-finite Decimals have no JSON number form and are
written as their text.

CHANGELOG:
- 2026-10-19: Encode Decimal values as JSON numbers
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from decimal import Decimal

_ENCODER = json.JSONEncoder(ensure_ascii=True, separators=(",", ":"), default=str)


def _json_value(value: object) -> object:
    if not isinstance(value, Decimal):
        return value
    if not value.is_finite():
        return str(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def serialize(readings: Mapping[str, object]) -> bytes:
    """Encode *readings* as a compact UTF-8 JSON object.

    Other values that JSON has no type for are written as their ``str()``
    text.

    Args:
        readings: Any ordered mapping, typically a ReadingSet.

    Returns:
        The JSON bytes, with no trailing newline.
    """
    document = {name: _json_value(value) for name, value in readings.items()}
    return _ENCODER.encode(document).encode("utf-8")
