# =============================================================================
# Report Relay - Sanitizer
# =============================================================================
"""
Pure functions that normalize and bound untrusted input.

Nothing in this module raises on bad input: every function is total and
falls back to a documented default instead.
"""

import math
import re
from typing import Any

# ASCII control characters (code points 0-31)
_CONTROL_CHARS = re.compile(r"[\x00-\x1f]")


def sanitize(value: Any, max_len: int) -> str:
    """
    Strip control characters and cap the length of a string.

    Args:
        value: Untrusted input
        max_len: Maximum number of characters kept (prefix preserved)

    Returns:
        str: Cleaned string, or "" when value is not a str
    """
    if not isinstance(value, str):
        return ""
    cleaned = _CONTROL_CHARS.sub("", value)
    return cleaned[: max(max_len, 0)]


def _number_to_text(value: float) -> str:
    if math.isnan(value):
        return ""
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def coerce_entry(value: Any, max_len: int) -> str:
    """
    Coerce a single list entry to sanitized text.

    | input                         | output                      |
    |-------------------------------|-----------------------------|
    | None, "", 0, False            | ""                          |
    | str                           | sanitize(value)             |
    | True                          | "true"                      |
    | int                           | decimal text                |
    | float                         | shortest text, 3.0 -> "3"   |
    | NaN                           | ""                          |
    | list, dict, other objects     | ""                          |
    """
    if isinstance(value, bool):
        return "true" if value else ""
    if isinstance(value, str):
        return sanitize(value, max_len)
    if isinstance(value, int):
        return sanitize(str(value), max_len) if value else ""
    if isinstance(value, float):
        return sanitize(_number_to_text(value), max_len) if value else ""
    return ""


def coerce_text(value: Any, max_len: int, default: str) -> str:
    """
    Coerce an optional text field, falling back to ``default``.

    | input                         | output                      |
    |-------------------------------|-----------------------------|
    | missing, None, "", 0, False   | sanitize(default)           |
    | str                           | sanitize(value)             |
    | True, non-zero int/float      | coerce_entry(value)         |
    | NaN                           | sanitize(default)           |
    | list, dict, other objects     | sanitize(default)           |

    A non-empty string that sanitizes down to "" stays "".
    """
    if isinstance(value, (str, bool, int, float)) and value and not (
        isinstance(value, float) and math.isnan(value)
    ):
        return coerce_entry(value, max_len)
    return sanitize(default, max_len)


def coerce_player_count(value: Any) -> int:
    """
    Coerce a player count to a non-negative integer.

    | input                                   | output             |
    |-----------------------------------------|--------------------|
    | missing, None                           | 0                  |
    | True / False                            | 1 / 0              |
    | finite int or float >= 0                | int(value)         |
    | negative, NaN, infinite                 | 0                  |
    | str holding a decimal literal           | parsed, as above   |
    | blank or non-numeric str                | 0                  |
    | list, dict, other objects               | 0                  |
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text or "_" in text:
            return 0
        try:
            value = float(text)
        except ValueError:
            return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return int(value) if value > 0 else 0
    return 0
