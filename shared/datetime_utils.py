"""
Date/time helpers, framework-agnostic.

All datetimes handled by the service are timezone-aware UTC. Documents read
back from MongoDB may carry naive datetimes (stored as UTC), so comparisons go
through ``ensure_utc`` first.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_month_utc(value: Any) -> Optional[datetime]:
    """Parse a ``"YYYY-MM"`` string into the first instant of that UTC month.

    Surrounding whitespace is ignored. Anything else (wrong shape, month
    outside 1..12, non-string input) yields ``None``.

    Example:
        >>> parse_month_utc("2024-03")
        datetime.datetime(2024, 3, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if not isinstance(value, str):
        return None
    match = _MONTH_RE.match(value.strip())
    if match is None:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        return None
    return datetime(year, month, 1, tzinfo=timezone.utc)


def add_months_utc(value: datetime, months: int) -> datetime:
    """Return the first instant of the month *months* after *value*'s month."""
    index = value.year * 12 + (value.month - 1) + months
    return datetime(index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)


def to_iso(value: Any) -> Any:
    """ISO-8601 render for datetimes (``Z`` suffix); other values pass through."""
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat().replace("+00:00", "Z")
    return value
