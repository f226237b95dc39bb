"""
Permissive parsers for untrusted request values (query strings, form-ish JSON).

None of these raise: malformed input degrades to ``None`` or to the caller's
fallback, so a bad parameter never turns into an error response.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

_INT_PREFIX_RE = re.compile(r"^\s*([+-]?\d+)")

TRUTHY = frozenset({"true", "1", "yes"})
FALSY = frozenset({"false", "0", "no"})


def _scalar(value: Any) -> Any:
    # Repeated query parameters arrive as lists; the first occurrence wins
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def parse_int(value: Any) -> Optional[int]:
    """Parse the leading integer of *value* (``"12abc"`` → 12, ``"abc"`` → None)."""
    value = _scalar(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = _INT_PREFIX_RE.match(str(value))
    if match is None:
        return None
    return int(match.group(1))


def clamp_int(value: Any, minimum: int, maximum: int, fallback: int) -> int:
    """Parse *value* as an int and clamp it into ``[minimum, maximum]``.

    Unparseable input returns *fallback* unchanged.
    """
    parsed = parse_int(value)
    if parsed is None:
        return fallback
    return max(minimum, min(maximum, parsed))


def parse_bool(value: Any) -> Optional[bool]:
    """Parse ``true/1/yes`` and ``false/0/no`` (case-insensitive); else ``None``."""
    value = _scalar(value)
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    if lowered in TRUTHY:
        return True
    if lowered in FALSY:
        return False
    return None


def parse_text(value: Any) -> Optional[str]:
    """Stripped string form of *value*, or ``None`` when absent or blank."""
    value = _scalar(value)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_decimal(value: Any) -> Optional[float]:
    """Parse a finite number that may use a decimal comma (``"12,5"`` → 12.5)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".", 1)
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None
