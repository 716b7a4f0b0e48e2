"""
Tolerant access to loosely structured webhook payloads.

Uptime Kuma payloads carry no fixed schema: any field may be missing, null,
nested differently or of an unexpected type. Everything here resolves such
cases to ``None`` instead of raising.

Numbers are decoded without going through binary floats, so the text shown
in a notification matches what the sender put on the wire.
"""

import json
import math
from decimal import Decimal
from typing import Any, Optional

# Beyond this many digits a number is shown in scientific notation.
MAX_PLAIN_DIGITS = 40


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Unsupported JSON constant: {name}")


def decode_payload(raw: bytes) -> dict:
    """
    Decode a webhook body into a JSON object.

    Raises ValueError when the body is not valid JSON or its top-level value
    is not an object. Non-integral numbers become ``Decimal``.
    """
    try:
        value = json.loads(raw, parse_float=Decimal, parse_constant=_reject_constant)
    except RecursionError as exc:
        raise ValueError("JSON nesting too deep") from exc
    if not isinstance(value, dict):
        raise ValueError(f"Expected a JSON object, got {type(value).__name__}")
    return value


def number_text(value: Decimal) -> str:
    """Render a decimal without spurious ``.0`` or exponent artifacts."""
    if not value.is_finite() or abs(value.adjusted()) > MAX_PLAIN_DIGITS:
        return str(value)
    integral = value.to_integral_value()
    if value == integral:
        return format(integral, "f")
    return format(value, "f")


def scalar_text(value: Any) -> Optional[str]:
    """
    Convert a JSON scalar to display text.

    - Strings are stripped; empty strings count as absent.
    - Integers and decimals are rendered exactly.
    - Booleans, null, lists and objects are absent.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        return number_text(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return number_text(Decimal(repr(value)))
    return None


def lookup(payload: Any, *path: str) -> Optional[str]:
    """
    Follow ``path`` through nested objects and return the scalar found there.

    ``lookup(payload, "monitor", "name")`` returns ``None`` if ``payload`` is
    not an object, ``monitor`` is missing or not an object, or ``name`` is
    missing or not a scalar.
    """
    current = payload
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return scalar_text(current)
