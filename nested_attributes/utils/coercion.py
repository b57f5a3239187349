"""
Type coercion utilities for nested attribute payloads.

Payloads usually come straight from JSON or form data, so flags and keys
arrive as strings as often as they arrive as native values.
"""

from decimal import Decimal
from typing import Any

TRUE_STRINGS = ("true", "1", "yes", "on")


def coerce_bool(value: Any, default: bool = False) -> bool:
    """
    Coerce a value to a boolean.

    Only booleans, numbers and the strings in ``TRUE_STRINGS`` can be true.
    Any other type falls back to ``default``.

    Examples:
        >>> coerce_bool("1")
        True
        >>> coerce_bool("false")
        False
        >>> coerce_bool(None)
        False
        >>> coerce_bool([1])
        False
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return default


def coerce_pk(value: Any) -> Any:
    """
    Coerce a primary key coming from a payload.

    Digit strings become integers, everything else is returned unchanged.

    Examples:
        >>> coerce_pk("42")
        42
        >>> coerce_pk("a1b2")
        'a1b2'
    """
    if isinstance(value, str) and value.isdigit():
        try:
            return int(value)
        except (TypeError, ValueError):
            pass
    return value


def is_blank(value: Any) -> bool:
    """Return True for values that do not identify a row (None, "", 0, empty)."""
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) == 0
    if isinstance(value, (int, float, Decimal)):
        return value == 0
    return False
